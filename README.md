# kubetester

kubetester brings up Kubernetes clusters on Amazon EKS and runs end-to-end
test suites against them. It contains:

- `kubetester.eksctl.EksctlDeployer`, a cluster deployer driven by the
  `eksctl` command. It renders an eksctl `ClusterConfig` from `UpOptions`,
  creates the cluster (`up`), deletes it (`down`) and reports whether it is
  active (`is_up`);
- `kubetester.ginkgo.Tester`, which finds or downloads the `ginkgo`,
  `e2e.test` and `kubectl` binaries, checks downloads against their SHA-256
  sums, and runs the e2e suite with the flake-attempts flag spelled for
  Ginkgo 1.x or 2.x;
- `kubetester.multi`, a driver that runs several testers one after another;
- smaller helpers:
  - `kubetester.headers.parse_http_headers` splits `Key: Value` strings and
    raises `MalformedHeaderError` on anything else;
  - `kubetester.paths.look_path` finds a regular file (not only an
    executable) on `$PATH`, raising `FileNotFoundInPathError`;
  - `kubetester.versions.detect_kubernetes_version` reads
    `kubernetes-version.txt` from `$PATH`; `parse_minor_version` keeps the
    `major.minor` part of a version;
  - `kubetester.mpijobs` builds MPIJob objects as plain dicts
    (`new_unstructured`) and checks whether one has succeeded
    (`mpi_job_succeeded`);
  - `kubetester.vpccni.compact_patch` returns the strategic-merge patch that
    tunes the `aws-node` DaemonSet;
  - `kubetester.metrics` holds metric registries (`NoopMetricRegistry`,
    `CloudWatchRegistry`);
  - `kubetester.kubectl.api_server_url` asks `kubectl` for the API server URL
    of the current context;
  - `kubetester.shell.execute_command` runs a command with inherited output.

Python 3.11 or later is required. The package has no third-party
dependencies; the commands it drives (`eksctl`, `gsutil`, `kubectl`,
`ginkgo`) must be installed separately.

## Commands

Installing the package provides two commands.

### kubetester-ginkgo

Runs the Kubernetes e2e suite with Ginkgo.

    kubetester-ginkgo --help

The kubeconfig is taken from `$KUBECONFIG` (made absolute if it is relative),
or `~/.kube/config` when it is unset. The binaries come from one of three
places:

- by default they are downloaded with `gsutil` from the release bucket
  (`--test-package-bucket`, `--test-package-dir`, `--test-package-version`;
  with no version the one named in `--test-package-marker` is used). The test
  tarball is cached in the user cache directory and reused when its SHA-256
  sum still matches;
- with `--use-built-binaries` they are taken from the run directory
  (`$KUBETEST2_RUN_DIR`);
- with `--use-binaries-from-path` they are looked up on `$PATH`.

The last two options cannot be combined. Other options: `--flake-attempts`,
`--parallel`, `--skip-regex`, `--focus-regex`, `--test-args` and
`--ginkgo-args` (both split like a shell command line), and `--env`
(`NAME=value` entries, comma separated or repeated) for the environment of the
ginkgo process. Reports go to `$ARTIFACTS` (default `./_artifacts`), where the
tester version is also written to `metadata.json`.

### kubetester-multi

Runs several testers in sequence. Arguments are split into clauses by `--`:
the first clause holds options for the driver itself, each following clause
names a tester and its arguments. A tester named `NAME` is the executable
`kubetest2-tester-NAME` found on `$PATH`; the `multi` tester cannot be nested.
Arguments in tester clauses have `$VAR` and `${VAR}` expanded from the
environment; an argument containing `\$` is left unexpanded, with each `\$`
turned into a literal `$`.

    kubetester-multi --fail-fast -- ginkgo --focus-regex=Conformance -- ginkgo --parallel=4

With `--fail-fast` the driver stops at the first tester that fails;
otherwise every tester runs and all failures are reported together. Without
any tester clause, or with `--help`, it prints its usage. The driver's
`metadata.json` in `$ARTIFACTS` is set aside while the testers run and put
back afterwards.

## Library use

```python
from kubetester.headers import parse_http_headers
from kubetester.versions import parse_minor_version
from kubetester.mpijobs import mpi_job_succeeded, new_unstructured

headers = parse_http_headers(["Content-Type: application/json"])
minor = parse_minor_version("1.29.3")          # "1.29"

job = new_unstructured("pytorch-training", "default")
job["status"] = {"conditions": [{"type": "Succeeded", "status": "True"}]}
assert mpi_job_succeeded(job)
```

Metrics are collected in a registry and sent in one go:

```python
from kubetester.metrics import MetricSpec, NoopMetricRegistry

registry = NoopMetricRegistry()
registry.record(MetricSpec(namespace="tests", metric="duration", unit="Seconds"), 12.5, {})
registry.emit()
```

`CloudWatchRegistry` takes a client with a
`put_metric_data(Namespace=..., MetricData=...)` method and sends the
recorded values per namespace in batches of at most 1000;
`registered_count()` tells how many are waiting.

The eksctl deployer is used from Python:

```python
from kubetester.eksctl import EksctlDeployer, UpOptions

deployer = EksctlDeployer(
    run_id="my-test-cluster",
    run_dir="/tmp/run",
    aws_region="us-west-2",
    up_options=UpOptions(kubernetes_version="1.29", nodes=3),
)
print(deployer.render_cluster_config().decode())
deployer.up()      # runs `eksctl create cluster`
deployer.down()    # runs `eksctl delete cluster --wait`
```

When `kubernetes_version` is empty, `up` reads it from
`kubernetes-version.txt` on `$PATH`; a node count of 0 becomes 4.
`is_up` needs an `eks_client` whose `describe_cluster(name=...)` returns a
mapping with `["cluster"]["status"]`.

## What it does not do

- The eksctl deployer has no command of its own; it is driven from Python.
  `dump_cluster_logs` collects nothing and `build` does nothing.
- The package makes no AWS API calls itself: CloudWatch and EKS clients are
  supplied by the caller.
- `compact_patch` only builds the VPC CNI patch; applying it to a cluster is
  left to the caller.

## Running the tests

The test suite uses pytest, available through the `test` extra:

    pip install -e .[test]
    pytest