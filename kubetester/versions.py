"""Kubernetes version discovery helpers."""

from __future__ import annotations

from pathlib import Path

from .paths import look_path

KUBERNETES_VERSION_FILE = "kubernetes-version.txt"


def detect_kubernetes_version() -> str:
    """Read the Kubernetes version from the version file found on ``PATH``.

    The file holds a tag such as ``v1.2.3``; every ``v`` is removed.
    """
    version_file = look_path(KUBERNETES_VERSION_FILE)
    version_tag = Path(version_file).read_text()
    return version_tag.replace("v", "")


def parse_minor_version(semantic_version: str) -> str:
    """Return the ``major.minor`` part of a semantic version string."""
    parts = semantic_version.split(".")
    if len(parts) < 2:
        raise ValueError(f"malformed semantic version: '{semantic_version}'")
    return ".".join(parts[:2])