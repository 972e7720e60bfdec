"""Pod watch fan-in and subscription lifetime"""
import queue
import time

import pytest
from kubernetes.client.rest import ApiException

from portsync.errors import WatchSourceError
from portsync.watch_aggregator import PodSelector, PodWatchAggregator
from tests.helpers.fakes import FakeWatch, FakeWatchFactory
from tests.helpers.pods import make_pod


class FakeCoreV1:
    def list_namespaced_pod(self, namespace, **kwargs):
        raise AssertionError("the fake watch never calls the list function")


def drain(events, count, timeout=2.0):
    received = []
    deadline = time.monotonic() + timeout
    while len(received) < count and time.monotonic() < deadline:
        try:
            received.append(events.get(timeout=0.05))
        except queue.Empty:
            continue
    return received


@pytest.mark.quick
def test_merges_sources_preserving_per_source_order():
    w1, w2 = FakeWatch(), FakeWatch()
    core_v1 = FakeCoreV1()
    aggregator = PodWatchAggregator(core_v1, watch_factory=FakeWatchFactory([w1, w2]))
    events = queue.Queue()

    stop = aggregator.start([PodSelector("ns1"), PodSelector("ns2", "app=web")], events)
    try:
        for rv in ("1", "2", "3"):
            w1.action("MODIFIED", make_pod(namespace="ns1", resource_version=rv))
        w2.action("ADDED", make_pod(namespace="ns2", resource_version="10"))

        received = drain(events, 4)
    finally:
        stop()

    assert len(received) == 4
    ns1_versions = [e["object"].metadata.resource_version for e in received if e["object"].metadata.namespace == "ns1"]
    assert ns1_versions == ["1", "2", "3"]

    assert w1.stream_calls[0][0] == core_v1.list_namespaced_pod
    assert w1.stream_calls[0][1] == {"namespace": "ns1"}
    assert w2.stream_calls[0][1] == {"namespace": "ns2", "label_selector": "app=web"}


@pytest.mark.quick
def test_watch_timeout_is_passed_to_the_stream():
    w = FakeWatch()
    aggregator = PodWatchAggregator(FakeCoreV1(), watch_factory=FakeWatchFactory([w]), timeout_seconds=300)

    stop = aggregator.start([PodSelector("ns1")], queue.Queue())
    assert w.started.wait(2)
    stop()

    assert w.stream_calls[0][1] == {"namespace": "ns1", "timeout_seconds": 300}


@pytest.mark.quick
def test_stop_is_idempotent_and_stops_every_watch():
    w1, w2 = FakeWatch(), FakeWatch()
    aggregator = PodWatchAggregator(FakeCoreV1(), watch_factory=FakeWatchFactory([w1, w2]))

    stop = aggregator.start([PodSelector("ns1"), PodSelector("ns2")], queue.Queue())
    stop()
    stop()

    assert w1.stopped and w2.stopped


@pytest.mark.quick
def test_failing_source_does_not_stop_the_others():
    broken = FakeWatch(fail_with=ApiException(status=403, reason="Forbidden"))
    healthy = FakeWatch()
    aggregator = PodWatchAggregator(FakeCoreV1(), watch_factory=FakeWatchFactory([broken, healthy]))
    events = queue.Queue()

    stop = aggregator.start([PodSelector("locked"), PodSelector("ns2")], events)
    try:
        assert broken.started.wait(2)
        healthy.action("ADDED", make_pod(namespace="ns2"))
        received = drain(events, 1)
    finally:
        stop()

    assert [e["object"].metadata.namespace for e in received] == ["ns2"]


@pytest.mark.quick
def test_no_selectors_is_an_error():
    aggregator = PodWatchAggregator(FakeCoreV1(), watch_factory=FakeWatchFactory([]))
    with pytest.raises(WatchSourceError):
        aggregator.start([], queue.Queue())


@pytest.mark.quick
def test_watch_creation_failure_stops_started_watches():
    created = FakeWatch()
    calls = []

    def factory():
        calls.append(1)
        if len(calls) > 1:
            raise RuntimeError("no client")
        return created

    aggregator = PodWatchAggregator(FakeCoreV1(), watch_factory=factory)
    with pytest.raises(WatchSourceError, match="no client"):
        aggregator.start([PodSelector("ns1"), PodSelector("ns2")], queue.Queue())

    assert created.stopped


def test_selector_str():
    assert str(PodSelector("dev")) == "dev"
    assert str(PodSelector("dev", "app=web")) == "dev (app=web)"
