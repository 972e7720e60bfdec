"""
portsync: keep local ports in sync with container ports of a dev session.

Submodules:
    - port_allocator: free local port selection
    - entry: forwarding targets and entries
    - entry_manager: registries and the create/update/skip/terminate logic
    - watch_aggregator: fan-in of pod watch streams
    - pod_forwarder: the consume loop driving the entry manager
    - kubectl_forwarder: kubectl port-forward backend
    - diagnostics: error to suggestion classification
"""

from portsync.diagnostics import Phase, actionable_error, describe
from portsync.entry import EntryState, ForwardingEntry, ForwardingTarget
from portsync.entry_manager import EntryManager
from portsync.errors import (
    ForwardSessionError,
    InvalidResourceVersionError,
    PortExhaustedError,
    PortForwardError,
    WatchSourceError,
)
from portsync.images import TrackedImages
from portsync.pod_forwarder import WatchingPodForwarder
from portsync.port_allocator import PortAllocator
from portsync.session import create_pod_forwarder, forward_pods
from portsync.watch_aggregator import PodSelector, PodWatchAggregator

__version__ = "0.1.0"

__all__ = [
    # data model
    'EntryState',
    'ForwardingEntry',
    'ForwardingTarget',
    # components
    'EntryManager',
    'PodSelector',
    'PodWatchAggregator',
    'PortAllocator',
    'TrackedImages',
    'WatchingPodForwarder',
    'create_pod_forwarder',
    'forward_pods',
    # errors
    'PortForwardError',
    'InvalidResourceVersionError',
    'PortExhaustedError',
    'ForwardSessionError',
    'WatchSourceError',
    # diagnostics
    'Phase',
    'actionable_error',
    'describe',
]
