"""A tester that runs the Kubernetes e2e suite with the ginkgo binary."""

from __future__ import annotations

import argparse
import hashlib
import json
import logging
import os
import platform
import shlex
import shutil
import subprocess
import sys
import tarfile
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# Set by the build to the released version string.
GIT_TAG = ""

_COMMON_TEST_BINARIES = ("e2e.test", "ginkgo", "kubectl")

_ARCH_ALIASES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "386",
    "i686": "386",
}


def _goos() -> str:
    return platform.system().lower()


def _goarch() -> str:
    machine = platform.machine().lower()
    return _ARCH_ALIASES.get(machine, machine)


def _artifacts_dir() -> str:
    return os.environ.get("ARTIFACTS") or os.path.join(os.getcwd(), "_artifacts")


def _artifacts_run_dir() -> str:
    return os.environ.get("KUBETEST2_RUN_DIR") or os.path.join(os.getcwd(), "_rundir")


def _write_version_to_metadata(version: str) -> None:
    base = Path(_artifacts_dir())
    base.mkdir(parents=True, exist_ok=True)
    path = base / "metadata.json"
    metadata = {}
    if path.exists():
        text = path.read_text()
        if text.strip():
            metadata = json.loads(text)
    metadata["tester-version"] = version
    path.write_text(json.dumps(metadata))


def _user_cache_dir() -> str:
    if os.name == "nt":
        local = os.environ.get("LOCALAPPDATA")
        if not local:
            raise OSError("%LocalAppData% is not defined")
        return local
    if sys.platform == "darwin":
        return str(Path.home() / "Library" / "Caches")
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return xdg
    return str(Path.home() / ".cache")


def _output(cmd: list[str]) -> str:
    return subprocess.run(cmd, stdout=subprocess.PIPE, text=True, check=True).stdout


def _parse_bool(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("1", "t", "true"):
        return True
    if lowered in ("0", "f", "false"):
        return False
    raise argparse.ArgumentTypeError(f"invalid boolean value: {value!r}")


class _FlagParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ValueError(message)


def sha256sum(path: str | os.PathLike[str]) -> str:
    """Return the hex SHA-256 digest of the file at ``path``."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1 << 16), b""):
            digest.update(chunk)
    return digest.hexdigest()


@dataclass
class Tester:
    """Options and state for a ginkgo e2e test run."""

    flake_attempts: int = 1
    ginkgo_args: str = ""
    parallel: int = 1
    skip_regex: str = ""
    focus_regex: str = ""
    test_package_version: str = ""
    test_package_bucket: str = "kubernetes-release"
    test_package_dir: str = "release"
    test_package_marker: str = "latest.txt"
    test_args: str = ""
    use_built_binaries: bool = False
    use_binaries_from_path: bool = False
    env: list[str] = field(default_factory=list)

    _kubeconfig_path: str = field(default="", init=False, repr=False)
    _run_dir: str = field(default="", init=False, repr=False)
    _e2e_test_path: str = field(default="", init=False, repr=False)
    _ginkgo_path: str = field(default="", init=False, repr=False)
    _kubectl_path: str = field(default="", init=False, repr=False)

    def test(self) -> None:
        """Run the e2e suite with ginkgo."""
        _write_version_to_metadata(GIT_TAG)
        self._pretest_setup()

        e2e_args = [
            "--kubeconfig=" + self._kubeconfig_path,
            "--kubectl-path=" + self._kubectl_path,
            "--ginkgo.skip=" + self.skip_regex,
            "--ginkgo.focus=" + self.focus_regex,
            "--report-dir=" + _artifacts_dir(),
        ]
        major = self._ginkgo_major_version()
        if major == "1":
            e2e_args.append(f"--ginkgo.flakeAttempts={self.flake_attempts}")
        elif major == "2":
            e2e_args.append(f"--ginkgo.flake-attempts={self.flake_attempts}")
        else:
            raise RuntimeError(f"unsupported ginkgo version: {major}")

        try:
            e2e_args.extend(shlex.split(self.test_args))
        except ValueError as err:
            raise ValueError(f"error parsing --test-args: {err}") from err
        try:
            ginkgo_args = shlex.split(self.ginkgo_args)
        except ValueError as err:
            raise ValueError(f"error parsing --gingko-args: {err}") from err

        ginkgo_args += [f"--nodes={self.parallel}", self._e2e_test_path, "--"]
        ginkgo_args += e2e_args

        logger.info("Running ginkgo test as %s %r", self._ginkgo_path, ginkgo_args)
        env = None
        if self.env:
            env = dict(entry.partition("=")[::2] for entry in self.env)
        subprocess.run([self._ginkgo_path, *ginkgo_args], env=env, check=True)

    def _pretest_setup(self) -> None:
        config = os.environ.get("KUBECONFIG", "")
        if config:
            if not os.path.isabs(config):
                config = os.path.abspath(config)
                logger.info(
                    "Ginkgo tester received a non-absolute path for KUBECONFIG. Updating to: %s",
                    config,
                )
            self._kubeconfig_path = config
        else:
            try:
                home = Path.home()
            except RuntimeError as err:
                raise RuntimeError(f"failed to find home directory: {err}") from err
            self._kubeconfig_path = str(home / ".kube" / "config")
        logger.info("Using kubeconfig at %s", self._kubeconfig_path)

        if self.use_built_binaries:
            self._validate_local_binaries()
            return
        if self.use_binaries_from_path:
            self._validate_binaries_from_path()
            return
        try:
            self.acquire_test_package()
        except (RuntimeError, OSError, subprocess.CalledProcessError) as err:
            raise RuntimeError(
                f"failed to get ginkgo test package from published releases: {err}"
            ) from err

    def _validate_local_binaries(self) -> None:
        logger.debug("checking existing test binaries ...")
        for binary in _COMMON_TEST_BINARIES:
            path = os.path.join(self._run_dir, binary)
            if not os.path.exists(path):
                raise RuntimeError(
                    f"failed to validate pre-built binary {binary} "
                    f"(checked at {os.path.abspath(path)!r}): file does not exist"
                )
            logger.debug("found existing %s at %s", binary, path)
        self._e2e_test_path = os.path.join(self._run_dir, "e2e.test")
        self._ginkgo_path = os.path.join(self._run_dir, "ginkgo")
        self._kubectl_path = os.path.join(self._run_dir, "kubectl")

    def _validate_binaries_from_path(self) -> None:
        logger.debug("checking for test binaries on PATH...")
        found = {}
        for binary in _COMMON_TEST_BINARIES:
            path = shutil.which(binary)
            if path is None:
                raise RuntimeError(
                    f"failed to validate binary {binary} from PATH: "
                    "executable file not found in $PATH"
                )
            logger.debug("found existing %s at %s", binary, path)
            found[binary] = path
        self._e2e_test_path = found["e2e.test"]
        self._ginkgo_path = found["ginkgo"]
        self._kubectl_path = found["kubectl"]

    def _ginkgo_major_version(self) -> str:
        """Return the ginkgo major version, or an empty string if unknown."""
        logger.debug("checking ginkgo version ...")
        try:
            lines = _output([self._ginkgo_path, "version"]).splitlines()
        except (subprocess.CalledProcessError, OSError):
            return ""
        if len(lines) != 1:
            return ""
        # e.g. "Ginkgo Version 2.1.4"
        parts = lines[0].split(" ")
        if len(parts) != 3:
            return ""
        versions = parts[2].split(".")
        if len(versions) != 3:
            return ""
        return versions[0]

    def execute(self, argv: list[str] | None = None) -> None:
        """Parse command-line flags into this tester and run it."""
        if argv is None:
            argv = sys.argv[1:]
        parser = self._flag_parser()
        namespace, extra = parser.parse_known_args(argv)
        unknown = [arg for arg in extra if arg.startswith("-")]
        if unknown:
            raise ValueError(f"failed to parse flags: unknown flag: {unknown[0]}")
        if namespace.help:
            parser.print_help(sys.stdout)
            return
        for name in (
            "flake_attempts",
            "ginkgo_args",
            "parallel",
            "skip_regex",
            "focus_regex",
            "test_package_version",
            "test_package_bucket",
            "test_package_dir",
            "test_package_marker",
            "test_args",
            "use_built_binaries",
            "use_binaries_from_path",
        ):
            setattr(self, name, getattr(namespace, name))
        if namespace.env is not None:
            self.env = [
                item for value in namespace.env for item in value.split(",") if item
            ]
        self._init_kubetest2_info()
        self.test()

    def _flag_parser(self) -> _FlagParser:
        parser = _FlagParser(prog="ginkgo", add_help=False)
        parser.add_argument("-h", "--help", action="store_true")
        parser.add_argument("--flake-attempts", type=int, default=self.flake_attempts,
                            help="Make up to this many attempts to run each spec.")
        parser.add_argument("--ginkgo-args", default=self.ginkgo_args,
                            help="Additional arguments supported by the ginkgo binary.")
        parser.add_argument("--parallel", type=int, default=self.parallel,
                            help="Run this many tests in parallel at once.")
        parser.add_argument("--skip-regex", default=self.skip_regex,
                            help="Regular expression of jobs to skip.")
        parser.add_argument("--focus-regex", default=self.focus_regex,
                            help="Regular expression of jobs to focus on.")
        parser.add_argument("--test-package-version", default=self.test_package_version,
                            help="Release whose test package is downloaded. Defaults to latest.")
        parser.add_argument("--test-package-bucket", default=self.test_package_bucket,
                            help="The bucket which release tars will be downloaded from.")
        parser.add_argument("--test-package-dir", default=self.test_package_dir,
                            help="The directory in the bucket for the type of release.")
        parser.add_argument("--test-package-marker", default=self.test_package_marker,
                            help="The version marker file used when no version is given.")
        parser.add_argument("--test-args", default=self.test_args,
                            help="Additional arguments supported by the e2e test framework.")
        parser.add_argument("--use-built-binaries", type=_parse_bool, nargs="?", const=True,
                            default=self.use_built_binaries,
                            help="Look for binaries in the run directory.")
        parser.add_argument("--use-binaries-from-path", type=_parse_bool, nargs="?", const=True,
                            default=self.use_binaries_from_path,
                            help="Look for binaries in the $PATH.")
        parser.add_argument("--env", action="append", default=None,
                            help="List of env variables to pass to ginkgo libraries.")
        return parser

    def _init_kubetest2_info(self) -> None:
        if self.use_built_binaries and self.use_binaries_from_path:
            raise ValueError(
                "--use-built-binaries and --use-binaries-from-path are mutually exclusive"
            )
        run_dir = os.environ.get("KUBETEST2_RUN_DIR")
        if run_dir is not None:
            self._run_dir = run_dir
        elif self.use_built_binaries:
            self._run_dir = _artifacts_run_dir()
        else:
            self._run_dir = os.getcwd()

    def set_run_dir(self, directory: str) -> None:
        self._run_dir = directory

    def acquire_test_package(self) -> None:
        """Download ginkgo, e2e.test and kubectl into the run directory."""
        if not self.test_package_version:
            marker = f"gs://{self.test_package_bucket}/{self.test_package_dir}/{self.test_package_marker}"
            try:
                lines = _output(["gsutil", "cat", marker]).splitlines()
            except (subprocess.CalledProcessError, OSError) as err:
                raise RuntimeError(f"failed to get latest release name: {err}") from err
            if not lines:
                raise RuntimeError("getting latest release name had no output")
            self.test_package_version = lines[0]
            logger.info(
                "Test package version was not specified. Defaulting to version from %s: %s",
                self.test_package_marker,
                self.test_package_version,
            )

        release_tar = f"kubernetes-test-{_goos()}-{_goarch()}.tar.gz"
        try:
            download_dir = _user_cache_dir()
        except OSError as err:
            raise RuntimeError(f"failed to get user cache directory: {err}") from err
        download_path = os.path.join(download_dir, release_tar)

        self._ensure_release_tar(download_path, release_tar)
        self._extract_binaries(download_path)

        self._kubectl_path = os.path.join(_artifacts_run_dir(), "kubectl")
        self._ensure_kubectl(self._kubectl_path)

    def _extract_binaries(self, download_path: str) -> None:
        os.makedirs(_artifacts_dir(), exist_ok=True)
        run_dir = _artifacts_run_dir()
        os.makedirs(run_dir, exist_ok=True)

        self._e2e_test_path = os.path.join(run_dir, "e2e.test")
        self._ginkgo_path = os.path.join(run_dir, "ginkgo")
        extract = {
            "kubernetes/test/bin/e2e.test": self._e2e_test_path,
            "kubernetes/test/bin/ginkgo": self._ginkgo_path,
        }
        extracted: set[str] = set()

        try:
            f = open(download_path, "rb")
        except OSError as err:
            raise RuntimeError(
                f"failed to open downloaded tar at {download_path}: {err}"
            ) from err
        with f:
            try:
                archive = tarfile.open(fileobj=f, mode="r:gz")
            except (tarfile.TarError, OSError, EOFError) as err:
                raise RuntimeError(f"failed to create gzip reader: {err}") from err
            with archive:
                members = iter(archive)
                while len(extracted) < len(extract):
                    try:
                        member = next(members)
                    except StopIteration:
                        break
                    except (tarfile.TarError, OSError, EOFError) as err:
                        raise RuntimeError(f"error during tar read: {err}") from err
                    dest = extract.get(member.name)
                    if not dest:
                        continue
                    self._write_member(archive, member, dest)
                    extracted.add(member.name)

        for name in extract:
            if name not in extracted:
                raise RuntimeError(f"failed to find {name} in {download_path}")

    @staticmethod
    def _write_member(archive: tarfile.TarFile, member: tarfile.TarInfo, dest: str) -> None:
        try:
            out = open(dest, "wb")
        except OSError as err:
            raise RuntimeError(f"error creating file at {dest}: {err}") from err
        with out:
            try:
                os.chmod(dest, 0o700)
            except OSError as err:
                raise RuntimeError(f"failed to make {dest} executable: {err}") from err
            try:
                source = archive.extractfile(member)
                if source is not None:
                    shutil.copyfileobj(source, out)
            except (tarfile.TarError, OSError, EOFError) as err:
                raise RuntimeError(
                    f"error reading data from tar with header name {member.name}: {err}"
                ) from err

    def _ensure_kubectl(self, download_path: str) -> None:
        remote = (
            f"gs://{self.test_package_bucket}/{self.test_package_dir}/"
            f"{self.test_package_version}/bin/{_goos()}/{_goarch()}/kubectl"
        )
        if os.path.exists(download_path):
            logger.info("Found existing kubectl at %s", download_path)
            try:
                self._compare_sha(download_path, remote)
                logger.info("Validated hash for existing kubectl at %s", download_path)
                return
            except RuntimeError as err:
                logger.warning("%s", err)
        try:
            subprocess.run(["gsutil", "cp", remote, download_path], check=True)
        except (subprocess.CalledProcessError, OSError) as err:
            raise RuntimeError(
                f"failed to download kubectl for release {self.test_package_version}: {err}"
            ) from err
        try:
            os.chmod(download_path, 0o700)
        except OSError as err:
            raise RuntimeError(f"failed to make {download_path} executable: {err}") from err

    def _ensure_release_tar(self, download_path: str, release_tar: str) -> None:
        remote = (
            f"gs://{self.test_package_bucket}/{self.test_package_dir}/"
            f"{self.test_package_version}/{release_tar}"
        )
        if os.path.exists(download_path):
            logger.info("Found existing tar at %s", download_path)
            try:
                self._compare_sha(download_path, remote)
                logger.info("Validated hash for existing tar at %s", download_path)
                return
            except RuntimeError as err:
                logger.warning("%s", err)
        try:
            subprocess.run(["gsutil", "cp", remote, download_path], check=True)
        except (subprocess.CalledProcessError, OSError) as err:
            raise RuntimeError(
                f"failed to download release tar {release_tar} "
                f"for release {self.test_package_version}: {err}"
            ) from err

    def _compare_sha(self, download_path: str, remote_path: str) -> None:
        try:
            expected = _output(["gsutil", "cat", f"{remote_path}.sha256"])
        except (subprocess.CalledProcessError, OSError) as err:
            raise RuntimeError(
                f"failed to get sha256 for file {remote_path} "
                f"for release {self.test_package_version}: {err}"
            ) from err
        expected = expected.removesuffix("\n")
        try:
            actual = sha256sum(download_path)
        except OSError as err:
            raise RuntimeError(f"failed to compute sha256 for {download_path!r}: {err}") from err
        if actual != expected:
            raise RuntimeError("sha256 does not match")


def new_default_tester() -> Tester:
    """Return a tester with the default option values."""
    return Tester()


def main(argv: list[str] | None = None) -> None:
    tester = new_default_tester()
    try:
        tester.execute(argv)
    except (RuntimeError, ValueError, OSError, subprocess.CalledProcessError) as err:
        logger.critical("failed to run ginkgo tester: %s", err)
        raise SystemExit(f"failed to run ginkgo tester: {err}") from err