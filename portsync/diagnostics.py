"""
Error classification for user-facing diagnostics.

Maps a raw failure to a status code plus actionable suggestions by matching
the error text against an ordered table of known problems per phase. Each
phase table ends with a catch-all that reports "<PHASE>_UNKNOWN" and asks
the user to open an issue.
"""
import re
from dataclasses import dataclass, field

from portsync.errors import ForwardSessionError, PortForwardError

REPORT_ISSUE_TEXT = "If above error is unexpected, please open an issue to report this error"


class Phase:
    """Phases of a development session an error can surface in."""

    INIT = "Init"
    BUILD = "Build"
    DEPLOY = "Deploy"
    STATUS_CHECK = "StatusCheck"
    FILE_SYNC = "FileSync"
    DEV_INIT = "DevInit"
    CLEANUP = "Cleanup"
    PORT_FORWARD = "PortForward"


@dataclass(frozen=True)
class Suggestion:
    code: str
    action: str


@dataclass
class ActionableError:
    """Structured diagnostic for one failure."""

    err_code: str
    message: str
    suggestions: list = field(default_factory=list)

    def __str__(self):
        text = concat_suggestions(self.suggestions)
        if not text:
            return self.message
        return f"{self.message.rstrip('.')}. {text}"


@dataclass(frozen=True)
class Problem:
    pattern: re.Pattern
    err_code: str
    suggestions: tuple = ()


def _problem(regex, err_code, *suggestions):
    return Problem(
        pattern=re.compile(regex, re.IGNORECASE | re.DOTALL),
        err_code=err_code,
        suggestions=tuple(Suggestion(code, action) for code, action in suggestions),
    )


def _unknown(phase_code):
    return _problem(".*", phase_code, ("OPEN_ISSUE", REPORT_ISSUE_TEXT))


KNOWN_PORT_FORWARD_PROBLEMS = [
    _problem(
        r"address already in use|unable to listen on any of the requested ports",
        "PORT_FORWARD_PORT_IN_USE",
        ("STOP_LOCAL_PROCESSES", "Stop the local process holding the port"),
        ("CHECK_PORT_RANGE", "Pick a different local port range with PORTSYNC_PORT_RANGE"),
    ),
    _problem(
        r"executable file not found|No such file or directory: '?kubectl",
        "PORT_FORWARD_KUBECTL_NOT_FOUND",
        ("INSTALL_KUBECTL", "Install kubectl or point PORTSYNC_KUBECTL at it"),
    ),
    _problem(
        r"pods? \"?[\w.-]*\"? not found|NotFound",
        "PORT_FORWARD_POD_NOT_FOUND",
        ("CHECK_POD", "Check that the pod is still running with kubectl get pods"),
    ),
    _problem(
        r"Unauthorized|forbidden",
        "PORT_FORWARD_NOT_AUTHORIZED",
        ("CHECK_CLUSTER_CONNECTION", "Check your cluster credentials and kubeconfig context"),
    ),
    _problem(
        r"not ready after",
        "PORT_FORWARD_TIMEOUT",
        ("CHECK_POD", "Check that the container is listening on the forwarded port"),
    ),
    _problem(
        r"connection refused|error upgrading connection",
        "PORT_FORWARD_CONNECTION_FAILED",
        ("CHECK_CLUSTER_CONNECTION", "Check your connection to the cluster"),
    ),
]

KNOWN_DEPLOY_PROBLEMS = [
    _problem(
        r"Unable to connect to the server|connection refused",
        "DEPLOY_CLUSTER_CONNECTION_ERR",
        ("CHECK_CLUSTER_CONNECTION", "Check your connection for the cluster"),
    ),
]

KNOWN_DEV_INIT_PROBLEMS = [
    _problem(
        r"manifest unknown|old image manifest",
        "DEVINIT_REGISTER_BUILD_DEPS",
        ("RUN_DOCKER_PULL", "Run docker pull for the image and retry"),
    ),
]

ALL_PROBLEMS = {
    Phase.BUILD: [_unknown("BUILD_UNKNOWN")],
    Phase.INIT: [_unknown("INIT_UNKNOWN")],
    Phase.DEPLOY: KNOWN_DEPLOY_PROBLEMS + [_unknown("DEPLOY_UNKNOWN")],
    Phase.STATUS_CHECK: [_unknown("STATUSCHECK_UNKNOWN")],
    Phase.FILE_SYNC: [_unknown("SYNC_UNKNOWN")],
    Phase.DEV_INIT: KNOWN_DEV_INIT_PROBLEMS + [_unknown("DEVINIT_UNKNOWN")],
    Phase.CLEANUP: [_unknown("CLEANUP_UNKNOWN")],
    Phase.PORT_FORWARD: KNOWN_PORT_FORWARD_PROBLEMS + [_unknown("PORT_FORWARD_UNKNOWN")],
}


def _error_code_from_error(phase, err):
    # Backend failures carry kubectl output, which the problem table classifies.
    if isinstance(err, PortForwardError) and not isinstance(err, ForwardSessionError):
        return err.status_code, [Suggestion(code, action) for code, action in err.suggestions]

    for problem in ALL_PROBLEMS.get(phase, []):
        if problem.pattern.search(str(err)):
            return problem.err_code, list(problem.suggestions)

    return "UNKNOWN_ERROR", []


def actionable_error(phase, err):
    """
    Classify an error raised during a phase.

    Args:
        phase: One of the Phase constants
        err: The exception to classify

    Returns:
        ActionableError: Status code, original message and suggestions
    """
    err_code, suggestions = _error_code_from_error(phase, err)
    return ActionableError(err_code=err_code, message=str(err), suggestions=suggestions)


def concat_suggestions(suggestions):
    """Join suggestion actions with " or " and a trailing period."""
    actions = [s.action for s in suggestions]
    if not actions:
        return ""
    return " or ".join(actions) + "."


def describe(phase, err):
    """Render an error with its suggestions as a single user-facing line."""
    return str(actionable_error(phase, err))
