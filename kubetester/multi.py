"""A tester that runs several other kubetest2 testers one after another."""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import shutil
import subprocess
import sys
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from .eksctl import VERSION

logger = logging.getLogger(__name__)

TESTER_NAME = "multi"
TESTER_BINARY_PREFIX = "kubetest2-tester-"
SEPARATOR = "--"

USAGE = """kubetest2 --test=multi -- [MultiTesterDriverArgs] -- [TesterName] [TesterArgs] -- ...

  MultiTesterDriverArgs: arguments passed to the multi-tester driver

  TesterName: the name of the tester to run
  TesterArgs: arguments passed to tester

  Each tester clause is separated by "--".
"""

# $name, ${name}, or a single special shell character such as $1 or $*.
_VARIABLE = re.compile(r"\$(?:\{([^}]*)\}|([A-Za-z_][A-Za-z0-9_]*)|([*#$@!?\-0-9]))")


@dataclass
class TesterClause:
    """One tester to run: its name, executable path and arguments."""

    name: str
    path: str
    args: list[str] = field(default_factory=list)

    def run(self) -> None:
        """Run the tester with this process's environment.

        Raises :class:`subprocess.CalledProcessError` on a non-zero exit.
        """
        logger.info("running tester: %r", self)
        subprocess.run([self.path, *self.args], env=dict(os.environ), check=True)


def split_arguments(argv: Sequence[str]) -> tuple[list[str], list[list[str]]]:
    """Split ``argv`` at each ``--`` into driver arguments and tester clauses."""
    clauses: list[list[str]] = [[]]
    for arg in argv:
        if arg == SEPARATOR:
            clauses.append([])
        else:
            clauses[-1].append(arg)
    return clauses[0], clauses[1:]


def _expand(arg: str) -> str:
    def substitute(match: re.Match[str]) -> str:
        name = next(group for group in match.groups() if group is not None)
        return os.environ.get(name, "")

    return _VARIABLE.sub(substitute, arg)


def expand_env(args: Iterable[str]) -> list[str]:
    """Expand ``$VAR`` and ``${VAR}`` in each argument from the environment.

    Unset variables expand to the empty string. An argument holding ``\\$``
    is not expanded; each ``\\$`` in it becomes a literal ``$`` instead.
    """
    return [arg.replace("\\$", "$") if "\\$" in arg else _expand(arg) for arg in args]


def _find_tester(name: str) -> str:
    binary = TESTER_BINARY_PREFIX + name
    path = shutil.which(binary)
    if path is None:
        raise FileNotFoundError(f"could not find kubetest2 tester {name!r} ({binary}) in $PATH")
    return path


def prepare_testers(tester_clauses: Iterable[Sequence[str]]) -> list[TesterClause]:
    """Resolve each clause ``[name, *args]`` into a runnable tester."""
    testers = []
    for clause in tester_clauses:
        if not clause:
            raise ValueError("empty tester clause")
        name, *args = clause
        if name == TESTER_NAME:
            raise ValueError(f"nesting isn't possible with the {TESTER_NAME} tester")
        testers.append(TesterClause(name=name, path=_find_tester(name), args=expand_env(args)))
    return testers


def _artifacts_dir() -> str:
    return os.environ.get("ARTIFACTS") or os.path.join(os.getcwd(), "_artifacts")


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


def run_testers(testers: Iterable[TesterClause], fail_fast: bool) -> None:
    """Run each tester in turn, keeping the driver's metadata.json intact.

    Raises an :class:`ExceptionGroup` holding every tester failure.
    """
    metadata_path = os.path.join(_artifacts_dir(), "metadata.json")
    backup_path = metadata_path + ".bak"
    try:
        os.replace(metadata_path, backup_path)
    except OSError as err:
        logger.error("failed to backup driver metadata: %s", err)

    errors: list[Exception] = []
    for tester in testers:
        try:
            tester.run()
        except (subprocess.CalledProcessError, OSError) as err:
            logger.error("tester failed: %r: %s", tester, err)
            errors.append(RuntimeError(f"{tester!r}: {err}"))
            if fail_fast:
                break
        # Testers write their own tester-version key; drop it before the next one.
        try:
            os.remove(metadata_path)
        except OSError as err:
            raise RuntimeError(f"failed to delete tester metadata: {err}") from err

    try:
        os.replace(backup_path, metadata_path)
    except OSError as err:
        raise RuntimeError(f"failed to restore driver metadata: {err}") from err
    if errors:
        raise ExceptionGroup("tester(s) failed", errors)


class _DriverParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise ValueError(message)


def _execute(argv: Sequence[str]) -> None:
    driver_args, clauses = split_arguments(argv)
    if not clauses:
        print(USAGE, end="")
        return
    parser = _DriverParser(prog="multi", add_help=False)
    parser.add_argument("-h", "--help", action="store_true")
    parser.add_argument("--fail-fast", action="store_true",
                        help="Exit immediately if any tester fails")
    try:
        options = parser.parse_args(driver_args)
    except ValueError:
        print(USAGE, end="")
        raise
    if options.help:
        print(USAGE, end="")
        return
    _write_version_to_metadata(VERSION)
    run_testers(prepare_testers(clauses), options.fail_fast)


def main(argv: Sequence[str] | None = None) -> None:
    """Run the multi tester from command-line arguments."""
    if argv is None:
        argv = sys.argv[1:]
    try:
        _execute(argv)
    except (ValueError, RuntimeError, OSError, ExceptionGroup) as err:
        logger.critical("failed to run multi tester: %s", err)
        raise SystemExit(f"failed to run multi tester: {err}") from err