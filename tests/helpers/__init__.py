"""
Test helpers package for the portsync test suite.

Submodules:
    - pods: kubernetes.client pod/container builders and watch events
    - fakes: fake forwarding backend, allocator, watch and aggregator
"""

from tests.helpers.pods import (
    make_container,
    make_pod,
    watch_event,
)

from tests.helpers.fakes import (
    FakeAggregator,
    FakeAllocator,
    FakeForwarder,
    FakeWatch,
    FakeWatchFactory,
)

__all__ = [
    # pods
    'make_container',
    'make_pod',
    'watch_event',
    # fakes
    'FakeAggregator',
    'FakeAllocator',
    'FakeForwarder',
    'FakeWatch',
    'FakeWatchFactory',
]
