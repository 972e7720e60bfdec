"""
Watching pod forwarder.

Consumes the aggregated pod watch stream on a single thread, filters events
down to running pods whose containers run images of the current session,
and hands every declared container port to the entry manager.
"""
import logging
import queue
import threading

from kubernetes import client

from portsync.diagnostics import Phase, describe
from portsync.entry import ForwardingTarget, parse_resource_version
from portsync.errors import InvalidResourceVersionError, PortForwardError

logger = logging.getLogger(__name__)

ADDED = "ADDED"
MODIFIED = "MODIFIED"
DELETED = "DELETED"

POD_RUNNING = "Running"

_STOP = object()


def _pod_containers(pod):
    return (pod.spec.containers if pod.spec else None) or []


class WatchingPodForwarder:
    """Automatically port-forwards pods of the current session as they appear."""

    def __init__(self, entry_manager, images, selectors, aggregator):
        """
        Initialize the forwarder.

        Args:
            entry_manager: EntryManager owning the forwarded entries
            images: TrackedImages of the current session
            selectors: PodSelector list to watch
            aggregator: PodWatchAggregator merging the watches
        """
        self.entry_manager = entry_manager
        self.images = images
        self.selectors = list(selectors)
        self.aggregator = aggregator
        self._events = None
        self._thread = None
        self._stop_watching = None
        self._lock = threading.Lock()
        self._stopped = False

    def start(self):
        """Start watching pods and forwarding their ports in the background."""
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("pod forwarder already started")
            self._events = queue.Queue()
            self._stop_watching = self.aggregator.start(self.selectors, self._events)
            self._thread = threading.Thread(target=self._consume, name="pod-forwarder", daemon=True)
            self._thread.start()
        logger.info("✓ Pod forwarder started")

    def stop(self):
        """Stop watching, end the consume loop and terminate every forward."""
        with self._lock:
            if self._stopped:
                return
            self._stopped = True
            thread = self._thread

        if self._stop_watching is not None:
            self._stop_watching()
        # Wakes readiness waits so the consume loop can drain.
        self.entry_manager.stop()
        if thread is not None:
            self._events.put(_STOP)
            thread.join()
            # Entries created while the loop was draining.
            self.entry_manager.stop()
        logger.info("✓ Pod forwarder stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()

    def _consume(self):
        while True:
            event = self._events.get()
            if event is _STOP or self._stopped:
                return
            try:
                self.handle_event(event)
            except InvalidResourceVersionError as e:
                logger.warning(f"✗ Discarding pod event: {e}")
            except PortForwardError as e:
                # Already reported per port by port_forward_pod.
                logger.debug(f"Pod event failed: {e}")
            except Exception as e:
                logger.error(f"✗ Unexpected error handling pod event: {e}", exc_info=True)

    def handle_event(self, event):
        """
        Apply one watch event.

        Args:
            event: Watch event dict with 'type' and 'object' keys

        Raises:
            PortForwardError: Last error raised while forwarding the pod
        """
        pod = event.get("object")
        if not isinstance(pod, client.V1Pod):
            return

        event_type = event.get("type")
        if event_type == DELETED:
            self._release(pod, "deleted")
            return
        if event_type not in (ADDED, MODIFIED):
            return

        if pod.metadata.deletion_timestamp is not None:
            self._release(pod, "terminating")
            return
        if pod.status is None or pod.status.phase != POD_RUNNING:
            self._release(pod, "not running")
            return

        containers = [c for c in _pod_containers(pod) if c.image in self.images]
        if not containers:
            self._release(pod, "no tracked images")
            return

        self.port_forward_pod(pod, containers)

    def _release(self, pod, reason):
        keys = self.entry_manager.release_pod(pod.metadata.namespace, pod.metadata.name)
        if keys:
            logger.info(f"Pod {pod.metadata.namespace}/{pod.metadata.name} {reason}, released {len(keys)} forward(s)")

    def port_forward_pod(self, pod, containers=None):
        """
        Forward every declared port of the pod's containers.

        A failing port does not prevent its siblings from being forwarded;
        the last error is raised once every port was attempted.

        Args:
            pod: kubernetes.client.V1Pod
            containers: Containers to forward (default: all containers of the pod)

        Raises:
            InvalidResourceVersionError: Pod resource version is not an integer
            PortForwardError: Last per-port error encountered
        """
        parse_resource_version(pod.metadata.resource_version, pod.metadata.name)
        if containers is None:
            containers = _pod_containers(pod)

        last_err = None
        for container in containers:
            for port in container.ports or []:
                target = ForwardingTarget.from_pod(pod, container, port)
                try:
                    self.entry_manager.process_target(target)
                except PortForwardError as e:
                    logger.warning(f"✗ Could not forward {target.key()}: {describe(Phase.PORT_FORWARD, e)}")
                    last_err = e

        if last_err is not None:
            raise last_err
