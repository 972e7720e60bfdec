"""Local port allocation for forwarded container ports."""
import logging
import socket

from portsync.errors import PortExhaustedError

logger = logging.getLogger(__name__)

DEFAULT_PORT_POOL = range(4503, 4603)


class PortAllocator:
    """Pick free local TCP ports.

    The allocator keeps no state of its own: callers pass the set of ports
    already claimed and record the returned port themselves.

    Args:
        pool: Candidate ports scanned in order when the preferred port is
            not usable (default: DEFAULT_PORT_POOL)
        address: Local address the availability probe binds to
    """

    def __init__(self, pool=None, address="127.0.0.1"):
        self.pool = list(pool if pool is not None else DEFAULT_PORT_POOL)
        self.address = address

    def is_available(self, port):
        """Return ``True`` if the OS lets us bind *port* right now."""
        if not 0 < port < 65536:
            return False
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((self.address, port))
            except OSError:
                return False
        return True

    def allocate(self, preferred, taken):
        """
        Return a free local port, preferring *preferred*.

        Args:
            preferred: Port to use when it is free (usually the container port)
            taken: Ports already held by live forwards

        Returns:
            int: A port not in *taken* that could be bound

        Raises:
            PortExhaustedError: If no candidate in the pool is usable
        """
        if preferred not in taken and self.is_available(preferred):
            return preferred

        attempted = 1
        for port in self.pool:
            if port in taken or port == preferred:
                continue
            attempted += 1
            if self.is_available(port):
                logger.debug(f"Port {preferred} unavailable, using {port}")
                return port

        raise PortExhaustedError(preferred, attempted)
