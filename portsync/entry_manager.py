"""
Entry manager for forwarded container ports.

Owns the registry of local ports held by live entries, the registry of
resource versions handed to the forwarding backend, and the entries
themselves. Decides for every observed target whether to create, update,
skip or terminate, and drives the backend accordingly.
"""
import logging
import threading

from portsync.entry import EntryState, ForwardingEntry
from portsync.errors import ForwardSessionError
from portsync.port_allocator import PortAllocator

logger = logging.getLogger(__name__)

DEFAULT_FORWARDING_TIMEOUT = 60.0


class EntryManager:
    """Authoritative state of every forwarded target in the session."""

    def __init__(self, forwarder, allocator=None, forwarding_timeout=DEFAULT_FORWARDING_TIMEOUT):
        """
        Initialize the entry manager.

        Args:
            forwarder: EntryForwarder backend establishing the tunnels
            allocator: PortAllocator used for new entries (default: PortAllocator())
            forwarding_timeout: Seconds to wait for a new forward to be ready (default: 60)
        """
        self.forwarder = forwarder
        self.allocator = allocator or PortAllocator()
        self.forwarding_timeout = forwarding_timeout
        self._lock = threading.RLock()
        self._entries = {}
        self._taken_ports = set()
        self._forwarded_resources = {}

    def process_target(self, target):
        """
        Create, update or skip the entry for *target*.

        Args:
            target: ForwardingTarget observed in a pod

        Returns:
            ForwardingEntry: The entry for the target's key

        Raises:
            InvalidResourceVersionError: Resource version is not an integer
            PortExhaustedError: No local port available for a new entry
            ForwardSessionError: The backend failed to stop or forward the entry
        """
        resource_version = target.parsed_resource_version()
        key = target.key()

        with self._lock:
            entry = self._entries.get(key)

            if entry is None:
                local_port = self.allocator.allocate(target.container_port, self._taken_ports)
                self._taken_ports.add(local_port)
                entry = ForwardingEntry(target=target, local_port=local_port, resource_version=resource_version)
                self._entries[key] = entry
                logger.info(f"New forward {key} -> localhost:{local_port}")
                self._forward(entry)
                return entry

            if entry.resource_version >= resource_version:
                if entry.state == EntryState.READY and not self.forwarder.is_alive(entry):
                    logger.warning(f"⚠ Forward {key} is no longer running, restarting on localhost:{entry.local_port}")
                    self._restart(entry)
                else:
                    logger.debug(f"Skipping {key}: resource version {resource_version} already forwarded")
                return entry

            logger.info(
                f"Updating forward {key}: resource version {entry.resource_version} -> {resource_version}"
            )
            entry.target = target
            entry.resource_version = resource_version
            self._restart(entry)
            return entry

    def _restart(self, entry):
        key = entry.key()
        entry.state = EntryState.PENDING
        try:
            self.forwarder.terminate(entry)
        except Exception as e:
            entry.state = EntryState.FAILED
            self._forwarded_resources[key] = entry.resource_version
            raise ForwardSessionError(f"failed to stop previous forward for {key}: {e}", key=key) from e
        self._forward(entry)

    def _forward(self, entry):
        key = entry.key()
        try:
            self.forwarder.forward(entry, self.forwarding_timeout)
        except Exception as e:
            entry.state = EntryState.FAILED
            if isinstance(e, ForwardSessionError):
                raise
            raise ForwardSessionError(f"failed to forward {key}: {e}", key=key) from e
        else:
            entry.state = EntryState.READY
        finally:
            # Bookkeep the attempt either way so duplicate events do not retry it.
            self._forwarded_resources[key] = entry.resource_version

    def release_target(self, key):
        """
        Terminate the entry for *key* and free its local port.

        Returns:
            ForwardingEntry: The released entry, or None if the key is unknown
        """
        with self._lock:
            entry = self._entries.pop(key, None)
            if entry is None:
                return None
            self._taken_ports.discard(entry.local_port)
            self._forwarded_resources.pop(key, None)
            entry.state = EntryState.TERMINATED
            self.forwarder.terminate(entry)

        logger.info(f"Released forward {key} (localhost:{entry.local_port})")
        return entry

    def release_pod(self, namespace, pod_name):
        """Release every entry that belongs to the given pod. Returns the released keys."""
        with self._lock:
            keys = [
                key for key, entry in self._entries.items()
                if entry.namespace == namespace and entry.pod_name == pod_name
            ]
            for key in keys:
                self.release_target(key)
        return keys

    def stop(self):
        """Cancel pending forwards and terminate every live entry, best effort."""
        self.forwarder.cancel()
        with self._lock:
            keys = list(self._entries)
            for key in keys:
                try:
                    self.release_target(key)
                except Exception as e:
                    # The entry is already dropped from the registries at this point.
                    logger.warning(f"⚠ Failed to terminate forward {key}: {e}")
        if keys:
            logger.info(f"Stopped {len(keys)} port forward(s)")

    def get_entry(self, key):
        with self._lock:
            return self._entries.get(key)

    def entries(self):
        """Snapshot of live entries keyed by target key."""
        with self._lock:
            return dict(self._entries)

    def taken_ports(self):
        with self._lock:
            return set(self._taken_ports)

    def forwarded_resources(self):
        with self._lock:
            return dict(self._forwarded_resources)
