"""
Settings for the pod forwarder.

Values are read from PORTSYNC_* environment variables. Explicit keyword
arguments to load_settings() take priority over the environment, which
takes priority over the defaults below.
"""
import os
from dataclasses import dataclass, field

from portsync.entry_manager import DEFAULT_FORWARDING_TIMEOUT
from portsync.port_allocator import DEFAULT_PORT_POOL

ENV_PREFIX = "PORTSYNC_"


@dataclass
class Settings:
    namespaces: list = field(default_factory=lambda: ["default"])
    label_selector: str = ""
    forwarding_timeout: float = DEFAULT_FORWARDING_TIMEOUT
    port_range: range = DEFAULT_PORT_POOL
    address: str = "127.0.0.1"
    kubectl: str = "kubectl"
    kube_context: str = None
    watch_timeout: int = None
    log_level: str = "INFO"


def _parse_namespaces(name, value):
    namespaces = [ns.strip() for ns in value.split(",") if ns.strip()]
    if not namespaces:
        raise ValueError(f"{name} must name at least one namespace")
    return namespaces


def _parse_timeout(name, value):
    try:
        timeout = float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {value!r}") from None
    if timeout <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return timeout


def _parse_watch_timeout(name, value):
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer number of seconds, got {value!r}") from None


def parse_port_range(value, name=f"{ENV_PREFIX}PORT_RANGE"):
    """
    Parse a "first-last" port range (inclusive).

    Args:
        value: Range string, e.g. "4503-4602"
        name: Setting name used in error messages

    Returns:
        range: Ports from first to last, inclusive

    Raises:
        ValueError: If the range is malformed or outside 1-65535
    """
    first, sep, last = value.partition("-")
    try:
        start, end = int(first), int(last if sep else first)
    except ValueError:
        raise ValueError(f"{name} must look like 4503-4602, got {value!r}") from None
    if start < 1 or end > 65535 or start > end:
        raise ValueError(f"{name} must be within 1-65535 with first <= last, got {value!r}")
    return range(start, end + 1)


_PARSERS = {
    "namespaces": ("NAMESPACES", _parse_namespaces),
    "label_selector": ("LABEL_SELECTOR", lambda name, value: value.strip()),
    "forwarding_timeout": ("FORWARDING_TIMEOUT", _parse_timeout),
    "port_range": ("PORT_RANGE", lambda name, value: parse_port_range(value, name)),
    "address": ("ADDRESS", lambda name, value: value.strip()),
    "kubectl": ("KUBECTL", lambda name, value: value.strip()),
    "kube_context": ("KUBE_CONTEXT", lambda name, value: value.strip() or None),
    "watch_timeout": ("WATCH_TIMEOUT", _parse_watch_timeout),
    "log_level": ("LOG_LEVEL", lambda name, value: value.strip().upper()),
}


def load_settings(environ=None, **overrides):
    """
    Build Settings from keyword overrides, the environment and defaults.

    Args:
        environ: Mapping to read variables from (default: os.environ)
        **overrides: Settings fields that win over the environment

    Returns:
        Settings: Resolved settings

    Raises:
        ValueError: If an environment variable is malformed
    """
    if environ is None:
        environ = os.environ

    values = {}
    for attr, (suffix, parse) in _PARSERS.items():
        if attr in overrides:
            continue
        name = ENV_PREFIX + suffix
        raw = environ.get(name)
        if raw is not None and raw != "":
            values[attr] = parse(name, raw)

    values.update(overrides)
    return Settings(**values)
