"""Queries against the local kubectl configuration."""

from __future__ import annotations

import subprocess

KUBECTL = "kubectl"


def _exec_and_result(command: str, *args: str) -> str:
    """Run ``command`` and return its entire standard output.

    Standard error is shared with this process. Raises
    :class:`subprocess.CalledProcessError` on a non-zero exit status.
    """
    result = subprocess.run(
        [command, *args], stdout=subprocess.PIPE, text=True, check=True
    )
    return result.stdout


def api_server_url() -> str:
    """Return the URL of the API server of the current kubectl context."""
    try:
        kubecontext = _exec_and_result(
            KUBECTL, "config", "view", "-o", 'jsonpath="{.current-context}"'
        )
    except (subprocess.CalledProcessError, OSError) as err:
        raise RuntimeError(f"Could not get kube context: {err}") from err

    try:
        cluster_name = _exec_and_result(
            KUBECTL,
            "config",
            "view",
            "-o",
            f'jsonpath="{{.contexts[?(@.name == {kubecontext})].context.cluster}}"',
        )
    except (subprocess.CalledProcessError, OSError) as err:
        raise RuntimeError(f"Could not get cluster name: {err}") from err

    return _exec_and_result(
        KUBECTL,
        "config",
        "view",
        "-o",
        f"jsonpath={{.clusters[?(@.name == {cluster_name})].cluster.server}}",
    )