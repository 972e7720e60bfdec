"""
Exception taxonomy for pod port-forwarding.

Every error raised by this package derives from PortForwardError so that
callers can catch the whole family in one place. Each class carries the
status code and suggestions reported by portsync.diagnostics.
"""


class PortForwardError(Exception):
    """Base class for port-forwarding errors."""

    status_code = "PORT_FORWARD_UNKNOWN"
    suggestions = ()


class InvalidResourceVersionError(PortForwardError):
    """A pod carried a resource version that is not an integer.

    Aborts processing of that pod event only; no registry is touched.
    """

    status_code = "PORT_FORWARD_INVALID_RESOURCE_VERSION"

    def __init__(self, resource_version, pod_name=None):
        self.resource_version = resource_version
        self.pod_name = pod_name
        where = f" for pod {pod_name}" if pod_name else ""
        super().__init__(f"invalid resource version {resource_version!r}{where}")


class PortExhaustedError(PortForwardError):
    """No usable local port was found within the scan bound."""

    status_code = "PORT_FORWARD_PORT_EXHAUSTED"
    suggestions = (
        ("CHECK_PORT_RANGE", "Widen the local port range with PORTSYNC_PORT_RANGE"),
        ("STOP_LOCAL_PROCESSES", "Stop local processes holding ports in the range"),
    )

    def __init__(self, preferred, attempted):
        self.preferred = preferred
        self.attempted = attempted
        super().__init__(
            f"no available local port for {preferred} ({attempted} candidate(s) tried)"
        )


class ForwardSessionError(PortForwardError):
    """The forwarding backend failed to establish or keep a tunnel.

    The entry stays tracked so a later resource-version update retries it.
    """

    status_code = "PORT_FORWARD_SESSION_FAILED"

    def __init__(self, message, key=None):
        self.key = key
        super().__init__(message)


class WatchSourceError(PortForwardError):
    """A pod watch subscription could not be started."""

    status_code = "PORT_FORWARD_WATCH_FAILED"
    suggestions = (
        ("CHECK_CLUSTER_CONNECTION", "Check your connection to the cluster and your kubeconfig"),
    )
