import pytest

from kubetester.metrics import (
    CloudWatchRegistry,
    MetricSpec,
    NoopMetricRegistry,
)


class FakeClient:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def put_metric_data(self, *, Namespace, MetricData):
        if self.fail:
            raise RuntimeError("boom")
        self.calls.append((Namespace, MetricData))
        return {}


def test_record_counts_values():
    registry = CloudWatchRegistry(FakeClient())
    spec = MetricSpec(namespace="ns", metric="m")
    registry.record(spec, 1.0, {})
    registry.record(spec, 2.0, {})
    registry.record(MetricSpec(namespace="other", metric="m"), 3.0, {})
    assert registry.registered_count() == 3


def test_emit_sends_datum_and_clears():
    client = FakeClient()
    registry = CloudWatchRegistry(client)
    spec = MetricSpec(namespace="ns", metric="latency")
    registry.record(spec, 4.5, {"cluster": "c1"})
    registry.emit()
    assert registry.registered_count() == 0
    assert len(client.calls) == 1
    namespace, data = client.calls[0]
    assert namespace == "ns"
    assert data[0]["MetricName"] == "latency"
    assert data[0]["Value"] == 4.5
    assert data[0]["Dimensions"] == [{"Name": "cluster", "Value": "c1"}]
    assert data[0]["Timestamp"].tzinfo is not None


def test_emit_batches_at_most_1000():
    client = FakeClient()
    registry = CloudWatchRegistry(client)
    spec = MetricSpec(namespace="ns", metric="m")
    total = 2345
    for i in range(total):
        registry.record(spec, float(i), {})
    registry.emit()
    sizes = [len(data) for _, data in client.calls]
    assert sum(sizes) == total
    assert max(sizes) == 1000
    values = [d["Value"] for _, data in client.calls for d in data]
    assert values == [float(i) for i in range(total)]


def test_emit_separates_namespaces():
    client = FakeClient()
    registry = CloudWatchRegistry(client)
    registry.record(MetricSpec(namespace="a", metric="m"), 1.0, {})
    registry.record(MetricSpec(namespace="b", metric="m"), 2.0, {})
    registry.emit()
    assert sorted(ns for ns, _ in client.calls) == ["a", "b"]


def test_emit_failure_keeps_data():
    registry = CloudWatchRegistry(FakeClient(fail=True))
    registry.record(MetricSpec(namespace="ns", metric="m"), 1.0, {})
    with pytest.raises(RuntimeError):
        registry.emit()
    assert registry.registered_count() == 1


def test_emit_empty_makes_no_calls():
    client = FakeClient()
    CloudWatchRegistry(client).emit()
    assert client.calls == []


def test_noop_registry_emits_nothing():
    registry = NoopMetricRegistry()
    registry.record(MetricSpec(namespace="ns", metric="m"), 1.0, {"k": "v"})
    assert registry.emit() is None