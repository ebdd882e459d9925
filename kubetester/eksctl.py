"""A cluster deployer that drives the ``eksctl`` command-line tool."""

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass, field
from typing import Any, Protocol

from . import shell
from .versions import detect_kubernetes_version as _detect_full_version
from .versions import parse_minor_version

logger = logging.getLogger(__name__)

DEPLOYER_NAME = "eksctl"

# Set by the build to the released version string.
VERSION = ""

_DEFAULT_NODES = 4


class EKSClient(Protocol):
    def describe_cluster(self, *, name: str) -> Any: ...


@dataclass
class UpOptions:
    """Options controlling the cluster that ``up`` creates."""

    region: str = ""
    kubernetes_version: str = ""
    nodes: int = 0
    ami: str = ""
    instance_types: list[str] = field(default_factory=list)


def detect_kubernetes_version() -> str:
    """Return the ``major.minor`` Kubernetes version from the version file on ``PATH``."""
    return parse_minor_version(_detect_full_version())


@dataclass
class EksctlDeployer:
    """Creates and deletes EKS clusters with eksctl."""

    run_id: str
    run_dir: str
    aws_region: str = ""
    eks_client: EKSClient | None = None
    up_options: UpOptions = field(default_factory=UpOptions)
    kubeconfig_path: str = ""

    def build(self) -> None:
        """Nothing needs to be built for this deployer."""
        return None

    def render_cluster_config(self) -> bytes:
        """Render the eksctl ClusterConfig YAML for this run."""
        opts = self.up_options
        name = self.run_id
        logger.info(
            "rendering cluster config template with params: %r, cluster=%s, region=%s",
            opts, name, self.aws_region,
        )
        lines = [
            "",
            "---",
            "apiVersion: eksctl.io/v1alpha5",
            "kind: ClusterConfig",
            "metadata:",
            f'  name: "{name}"',
            f'  region: "{self.aws_region}"',
        ]
        if opts.kubernetes_version:
            lines.append(f'  version: "{opts.kubernetes_version}"')
        lines += ["managedNodeGroups:", "  - name: managed"]
        if opts.ami:
            lines.append(f'    ami: "{opts.ami}"')
        lines.append("    amiFamily: AmazonLinux2")
        if opts.instance_types:
            lines.append("    instanceTypes:")
            lines.extend(f'      - "{instance_type}"' for instance_type in opts.instance_types)
        if opts.nodes > 0:
            lines += [
                f"    minSize: {opts.nodes}",
                f"    maxSize: {opts.nodes}",
                f"    desiredCapacity: {opts.nodes}",
            ]
        if opts.ami:
            lines += [
                "    overrideBootstrapCommand: |",
                "      #!/bin/bash",
                "      source /var/lib/cloud/scripts/eksctl/bootstrap.helper.sh",
                f'      /etc/eks/bootstrap.sh {name} --kubelet-extra-args "--node-labels=${{NODE_LABELS}}"',
            ]
        return ("\n".join(lines) + "\n").encode("utf-8")

    def dump_cluster_logs(self) -> None:
        """Cluster log collection is not supported; does nothing."""
        return None

    def kubeconfig(self) -> str:
        """Return the kubeconfig path, defaulting to ``<run_dir>/kubeconfig``."""
        if self.kubeconfig_path:
            return self.kubeconfig_path
        return os.path.join(self.run_dir, "kubeconfig")

    def version(self) -> str:
        return VERSION

    def verify_up_flags(self) -> None:
        """Validate the up options, filling in the version and node count defaults."""
        opts = self.up_options
        if not opts.kubernetes_version:
            logger.info("--kubernetes-version is empty, attempting to detect it...")
            try:
                detected = detect_kubernetes_version()
            except (OSError, ValueError) as err:
                raise ValueError(
                    "unable to detect --kubernetes-version, flag cannot be empty"
                ) from err
            logger.info("detected --kubernetes-version=%s", detected)
            opts.kubernetes_version = detected
        if opts.nodes < 0:
            raise ValueError("number of nodes must be greater than zero")
        if opts.nodes == 0:
            opts.nodes = _DEFAULT_NODES
            logger.debug("Using default number of nodes: %d", opts.nodes)

    def up(self) -> None:
        """Create the cluster with ``eksctl create cluster``."""
        try:
            self.verify_up_flags()
        except ValueError as err:
            raise ValueError(f"up flags are invalid: {err}") from err
        logger.info("creating cluster: %s", self.run_id)
        kubeconfig = self.kubeconfig()
        cluster_config = self.render_cluster_config()
        logger.info("rendered cluster config: %s", cluster_config.decode("utf-8"))
        with tempfile.NamedTemporaryFile(
            prefix="kubetest2-eksctl-cluster-config", delete=False
        ) as config_file:
            config_file.write(cluster_config)
        try:
            shell.execute_command(
                "eksctl",
                "create",
                "cluster",
                "--install-nvidia-plugin=false",
                "--install-neuron-plugin=false",
                "--config-file", config_file.name,
                "--kubeconfig", kubeconfig,
            )
        except (subprocess.CalledProcessError, OSError) as err:
            raise RuntimeError(f"failed to create cluster: {err}") from err

    def down(self) -> None:
        """Delete the cluster with ``eksctl delete cluster``, waiting for completion."""
        logger.info("deleting cluster %s", self.run_id)
        shell.execute_command("eksctl", "delete", "cluster", "--name", self.run_id, "--wait")
        logger.info("deleted cluster: %s", self.run_id)

    def is_up(self) -> bool:
        """Return True if the cluster is active, False while it is being created."""
        if self.eks_client is None:
            raise RuntimeError("no EKS client configured")
        result = self.eks_client.describe_cluster(name=self.run_id)
        status = result["cluster"]["status"]
        if status == "ACTIVE":
            return True
        if status == "CREATING":
            return False
        raise RuntimeError(f"cluster status is: {status}")