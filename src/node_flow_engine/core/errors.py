"""Error types and run error records."""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from .validation import ValidationIssue


class ErrorKind(str, Enum):
    """Distinguishes how a run failed."""
    NODE = "node"
    SUB_FLOW = "sub_flow"
    ABORTED = "aborted"
    INVALID_CONTROL = "invalid_control"
    DEPTH_EXCEEDED = "depth_exceeded"
    VALIDATION = "validation"


class FlowError(Exception):
    """Base exception for all flow engine errors."""
    pass


class FlowValidationError(FlowError):
    """A flow failed pre-run validation. Carries every issue found."""

    def __init__(self, message: str, issues: list["ValidationIssue"] | None = None):
        super().__init__(message)
        self.issues = issues or []


class RegistrationError(FlowError):
    """A node definition could not be registered (duplicate type, inconsistent handles)."""
    pass


class UnknownNodeTypeError(FlowError):
    """A flow references a node type with no registered definition."""

    def __init__(self, node_type: str):
        super().__init__(f"Unknown node type: {node_type}")
        self.node_type = node_type


class HostCapabilityError(FlowError):
    """The host does not provide a capability a node needs."""

    def __init__(self, capability: str):
        super().__init__(f"Host does not support '{capability}'")
        self.capability = capability


class NodeExecutionError(FlowError):
    """Error within a node's execution."""

    def __init__(
        self,
        message: str,
        node_id: str,
        node_type: str | None = None,
        cause: Exception | None = None
    ):
        super().__init__(message)
        self.node_id = node_id
        self.node_type = node_type
        self.cause = cause


class SubFlowError(FlowError):
    """A nested run failed. ``index`` is the loop iteration, if any."""

    def __init__(
        self,
        message: str,
        index: int | None = None,
        sub_flow_id: str | None = None,
        cause: "RunError | None" = None
    ):
        super().__init__(message)
        self.index = index
        self.sub_flow_id = sub_flow_id
        self.cause = cause


class FlowAbortedError(FlowError):
    """The run's cancellation signal was set. Not a node failure."""

    def __init__(self, message: str = "Flow execution aborted", partial_results: list[Any] | None = None):
        super().__init__(message)
        self.partial_results = partial_results or []


class FlowDepthExceededError(FlowError):
    """Sub-flow nesting went past the configured maximum."""

    def __init__(
        self,
        depth: int,
        max_depth: int,
        path: list[str] | None = None,
        message: str | None = None
    ):
        self.depth = depth
        self.max_depth = max_depth
        self.path = list(path or [])
        if message is None:
            chain = " -> ".join(self.path) if self.path else "?"
            message = (
                f"Maximum sub-flow depth of {max_depth} exceeded (depth {depth}). "
                f"Execution path: {chain}"
            )
        super().__init__(message)


class InvalidControlError(FlowError):
    """Break/Continue produced with no enclosing loop."""
    pass


@dataclass
class RunError:
    """Terminal error recorded on an ExecutionReport."""
    node_id: str | None
    message: str
    kind: ErrorKind = ErrorKind.NODE
    index: int | None = None  # Failing loop iteration for SUB_FLOW errors
    node_type: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


def raise_for_run_error(
    error: RunError,
    sub_flow_id: str | None = None,
    index: int | None = None,
    message: str | None = None,
    partial_results: list[Any] | None = None,
) -> None:
    """
    Re-raise a nested run's error in the calling node.

    Cancellation and depth errors keep their type so they reach the top-level
    run unchanged. Everything else becomes a SubFlowError annotated with
    the iteration index.
    """
    if error.kind is ErrorKind.ABORTED:
        raise FlowAbortedError(error.message, partial_results=partial_results)
    if error.kind is ErrorKind.DEPTH_EXCEEDED:
        raise FlowDepthExceededError(depth=-1, max_depth=-1, message=error.message)
    if message is None:
        message = f"Sub-flow '{sub_flow_id}' failed"
        if index is not None:
            message += f" on item {index}"
    raise SubFlowError(f"{message}: {error.message}", index=index, sub_flow_id=sub_flow_id, cause=error)
