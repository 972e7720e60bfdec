"""Wiring of a watching pod forwarder for one development session."""
import logging

from portsync.config import load_settings
from portsync.entry_manager import EntryManager
from portsync.kube import load_core_v1
from portsync.kubectl_forwarder import KubectlForwarder
from portsync.log import configure_logging
from portsync.pod_forwarder import WatchingPodForwarder
from portsync.port_allocator import PortAllocator
from portsync.watch_aggregator import PodSelector, PodWatchAggregator

logger = logging.getLogger(__name__)


def create_pod_forwarder(images, settings=None, core_v1=None, forwarder=None):
    """
    Build a WatchingPodForwarder ready to start().

    Args:
        images: TrackedImages of the current session
        settings: Settings (default: load_settings())
        core_v1: CoreV1Api client (default: load_core_v1(settings.kube_context))
        forwarder: EntryForwarder backend (default: KubectlForwarder from settings)

    Returns:
        WatchingPodForwarder: Forwarder wired to the cluster
    """
    if settings is None:
        settings = load_settings()
    if core_v1 is None:
        core_v1 = load_core_v1(settings.kube_context)
    if forwarder is None:
        forwarder = KubectlForwarder(
            kubectl=settings.kubectl,
            kube_context=settings.kube_context,
            address=settings.address,
        )

    entry_manager = EntryManager(
        forwarder,
        allocator=PortAllocator(pool=settings.port_range, address=settings.address),
        forwarding_timeout=settings.forwarding_timeout,
    )
    selectors = [PodSelector(ns, settings.label_selector) for ns in settings.namespaces]
    aggregator = PodWatchAggregator(core_v1, timeout_seconds=settings.watch_timeout)

    logger.debug(
        f"Pod forwarder for namespaces={settings.namespaces}, "
        f"timeout={settings.forwarding_timeout}s, ports={settings.port_range.start}-{settings.port_range.stop - 1}"
    )
    return WatchingPodForwarder(entry_manager, images, selectors, aggregator)


def forward_pods(images, stop_event, settings=None, **kwargs):
    """
    Forward session pods until *stop_event* is set, then clean up.

    Args:
        images: TrackedImages of the current session
        stop_event: threading.Event ending the session when set
        settings: Settings (default: load_settings())
        **kwargs: Passed to create_pod_forwarder (core_v1, forwarder)
    """
    if settings is None:
        settings = load_settings()
    configure_logging(settings.log_level)

    pod_forwarder = create_pod_forwarder(images, settings=settings, **kwargs)
    with pod_forwarder:
        stop_event.wait()
