"""Helpers for Kubeflow MPIJob objects in unstructured (dict) form."""

from __future__ import annotations

from typing import Any

MPI_JOB_GROUP = "kubeflow.org"
MPI_JOB_VERSION = "v2beta1"
MPI_JOB_KIND = "MPIJob"


class SchemaError(ValueError):
    """Raised when an MPIJob does not match the expected schema."""

    def __init__(self, detail: str) -> None:
        super().__init__(f"MPIJob does not match expected schema: {detail}")


def _nested(obj: dict[str, Any], *fields: str) -> tuple[Any, bool]:
    current: Any = obj
    for index, name in enumerate(fields):
        if not isinstance(current, dict):
            path = ".".join(fields[:index])
            raise SchemaError(
                f"{path} accessor error: {current!r} is of the type "
                f"{type(current).__name__}, expected a mapping"
            )
        if name not in current:
            return None, False
        current = current[name]
    return current, True


def _nested_string(obj: dict[str, Any], name: str) -> tuple[str | None, bool]:
    value, found = _nested(obj, name)
    if found and not isinstance(value, str):
        raise SchemaError(f"{name} accessor error: {value!r} is not a string")
    return value, found


def mpi_job_succeeded(obj: dict[str, Any]) -> bool:
    """Return True if ``.status.conditions`` has type ``Succeeded`` with status ``True``."""
    conditions, found = _nested(obj, "status", "conditions")
    if not found:
        return False
    if not isinstance(conditions, list):
        raise SchemaError(f"status.conditions accessor error: {conditions!r} is not a list")
    for condition in conditions:
        if not isinstance(condition, dict):
            raise SchemaError(f"condition {condition!r} is not a mapping")
        condition_type, found = _nested_string(condition, "type")
        if not found:
            continue
        if condition_type == "Succeeded":
            status, found = _nested_string(condition, "status")
            if not found:
                continue
            return status == "True"
    return False


def new_unstructured(name: str, namespace: str) -> dict[str, Any]:
    """Return an unstructured MPIJob object with the given name and namespace."""
    return {
        "apiVersion": f"{MPI_JOB_GROUP}/{MPI_JOB_VERSION}",
        "kind": MPI_JOB_KIND,
        "metadata": {"name": name, "namespace": namespace},
    }