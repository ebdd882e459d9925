"""Tuning patch for the VPC CNI DaemonSet."""

from __future__ import annotations

import json
from typing import Any

VPC_CNI_DAEMONSET_NAME = "aws-node"
VPC_CNI_DAEMONSET_NAMESPACE = "kube-system"

# Environment settings applied to the CNI container, in the order they are sent.
VPC_CNI_ENV = {
    "ENABLE_PREFIX_DELEGATION": "true",
    "MINIMUM_IP_TARGET": "80",
    "WARM_IP_TARGET": "10",
}


def _patch_document() -> dict[str, Any]:
    container = {
        "name": VPC_CNI_DAEMONSET_NAME,
        "env": [{"name": name, "value": value} for name, value in VPC_CNI_ENV.items()],
    }
    return {"spec": {"template": {"spec": {"containers": [container]}}}}


def compact_patch() -> bytes:
    """Return the strategic-merge patch for the ``aws-node`` DaemonSet as compact JSON.

    The patch helps prevent test flakiness by enabling prefix delegation and
    keeping a warm pool of IP addresses.
    """
    return json.dumps(_patch_document(), separators=(",", ":")).encode("utf-8")