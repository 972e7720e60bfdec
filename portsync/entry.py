"""
Forwarding targets and entries.

A ForwardingTarget identifies one forwardable container port as observed in
a pod. A ForwardingEntry is the entry manager's authoritative state for one
target key: the target, the assigned local port and the lifecycle state.
"""
import enum
from dataclasses import dataclass

from portsync.errors import InvalidResourceVersionError


class EntryState(enum.Enum):
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"
    TERMINATED = "terminated"


def parse_resource_version(resource_version, pod_name=None):
    """
    Parse a resource version string as an integer.

    Args:
        resource_version: Resource version as reported by the API server
        pod_name: Pod name used in the error message (optional)

    Returns:
        int: Parsed resource version

    Raises:
        InvalidResourceVersionError: If the value is not a base-10 integer
    """
    if not isinstance(resource_version, str) or not (resource_version.isascii() and resource_version.isdigit()):
        raise InvalidResourceVersionError(resource_version, pod_name)
    return int(resource_version)


@dataclass(frozen=True)
class ForwardingTarget:
    """One forwardable container port of a pod."""

    namespace: str
    pod_name: str
    container_name: str
    port_name: str
    container_port: int
    resource_version: str
    automatic: bool = True

    def key(self):
        """Identity key, stable across pod updates and recreations."""
        return f"{self.container_name}-{self.namespace}-{self.port_name}-{self.container_port}"

    def parsed_resource_version(self):
        return parse_resource_version(self.resource_version, self.pod_name)

    @classmethod
    def from_pod(cls, pod, container, port, automatic=True):
        """Build a target from kubernetes.client V1Pod/V1Container/V1ContainerPort models."""
        return cls(
            namespace=pod.metadata.namespace,
            pod_name=pod.metadata.name,
            container_name=container.name,
            port_name=port.name or "",
            container_port=port.container_port,
            resource_version=pod.metadata.resource_version,
            automatic=automatic,
        )


@dataclass
class ForwardingEntry:
    target: ForwardingTarget
    local_port: int
    resource_version: int
    state: EntryState = EntryState.PENDING

    def key(self):
        return self.target.key()

    @property
    def namespace(self):
        return self.target.namespace

    @property
    def pod_name(self):
        return self.target.pod_name

    @property
    def container_port(self):
        return self.target.container_port

    def __str__(self):
        return (
            f"{self.target.namespace}/{self.target.pod_name} "
            f"{self.target.container_name}:{self.target.container_port} -> localhost:{self.local_port}"
        )
