"""Metric registries that buffer values and emit them to CloudWatch."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol

logger = logging.getLogger(__name__)

# CloudWatch accepts at most this many values per PutMetricData call.
_MAX_DATA_PER_REQUEST = 1000


@dataclass(frozen=True)
class MetricSpec:
    """Identifies a metric: its namespace, name and unit."""

    namespace: str
    metric: str
    unit: str = "None"


class MetricRegistry(ABC):
    """A buffer of metric values that can be flushed to a backend."""

    @abstractmethod
    def record(self, spec: MetricSpec, value: float, dimensions: Mapping[str, str]) -> None:
        """Add a new metric value to the registry."""

    @abstractmethod
    def emit(self) -> None:
        """Send all recorded values to the backend, emptying the registry."""


class NoopMetricRegistry(MetricRegistry):
    """A registry that discards everything."""

    def record(self, spec: MetricSpec, value: float, dimensions: Mapping[str, str]) -> None:
        pass

    def emit(self) -> None:
        return None


class CloudWatchClient(Protocol):
    def put_metric_data(self, *, Namespace: str, MetricData: list[dict[str, Any]]) -> Any: ...


@dataclass
class _Datum:
    spec: MetricSpec
    value: float
    dimensions: dict[str, str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_cloudwatch(self) -> dict[str, Any]:
        return {
            "MetricName": self.spec.metric,
            "Value": self.value,
            "Dimensions": [{"Name": k, "Value": v} for k, v in self.dimensions.items()],
            "Timestamp": self.timestamp,
        }


class CloudWatchRegistry(MetricRegistry):
    """Buffers metric values per namespace and emits them with a CloudWatch client."""

    def __init__(self, client: CloudWatchClient) -> None:
        self._client = client
        self._lock = threading.Lock()
        self._data: defaultdict[str, list[_Datum]] = defaultdict(list)

    def record(self, spec: MetricSpec, value: float, dimensions: Mapping[str, str]) -> None:
        with self._lock:
            self._data[spec.namespace].append(_Datum(spec, value, dict(dimensions or {})))

    def emit(self) -> None:
        with self._lock:
            for namespace, data in self._data.items():
                for start in range(0, len(data), _MAX_DATA_PER_REQUEST):
                    batch = data[start:start + _MAX_DATA_PER_REQUEST]
                    self._client.put_metric_data(
                        Namespace=namespace,
                        MetricData=[datum.to_cloudwatch() for datum in batch],
                    )
                logger.info("emitted %d metrics to namespace: %s", len(data), namespace)
            self._data = defaultdict(list)

    def registered_count(self) -> int:
        """Return how many values are waiting to be emitted."""
        with self._lock:
            return sum(len(data) for data in self._data.values())