"""Core flow execution framework."""

from .handles import (
    FlowDataType,
    HandleSpec,
    HandleSet,
    are_types_compatible,
    get_handle_spec,
    get_handle_type,
    resolve_connected_schema,
)
from .flow import SpecNode, SpecEdge, SpecFlow, load_flow
from .results import NodeResult, ResultKind
from .node import FlowNodeData, NodeDefinition, NodeManifest, resolve_input
from .registry import NodeRegistry, register_node, auto_discover_nodes
from .cancellation import AbortController, AbortSignal
from .context import NodeExecutorContext
from .host import HostDependencies, HeadlessHost, ChatMessage, RegexScript
from .errors import (
    ErrorKind,
    FlowError,
    FlowValidationError,
    RegistrationError,
    UnknownNodeTypeError,
    HostCapabilityError,
    NodeExecutionError,
    SubFlowError,
    FlowAbortedError,
    FlowDepthExceededError,
    InvalidControlError,
    RunError,
)
from .events import EventEmitter
from .engine import FlowEngine, ExecutionReport, NodeReport, RunOptions, RunStatus
from .validation import (
    ValidationIssue,
    FlowValidationReport,
    FlowValidator,
    required_field,
    required_connection,
    combine_validators,
    check_connection_validity,
    validate_flow,
)
from .flow_runner import FlowRunner, HistoryEntry

__all__ = [
    # Handles
    "FlowDataType",
    "HandleSpec",
    "HandleSet",
    "are_types_compatible",
    "get_handle_spec",
    "get_handle_type",
    "resolve_connected_schema",
    # Flow graph
    "SpecNode",
    "SpecEdge",
    "SpecFlow",
    "load_flow",
    "NodeResult",
    "ResultKind",
    # Nodes
    "FlowNodeData",
    "NodeDefinition",
    "NodeManifest",
    "resolve_input",
    "NodeRegistry",
    "register_node",
    "auto_discover_nodes",
    # Run context
    "AbortController",
    "AbortSignal",
    "NodeExecutorContext",
    "HostDependencies",
    "HeadlessHost",
    "ChatMessage",
    "RegexScript",
    # Errors
    "ErrorKind",
    "FlowError",
    "FlowValidationError",
    "RegistrationError",
    "UnknownNodeTypeError",
    "HostCapabilityError",
    "NodeExecutionError",
    "SubFlowError",
    "FlowAbortedError",
    "FlowDepthExceededError",
    "InvalidControlError",
    "RunError",
    # Engine
    "EventEmitter",
    "FlowEngine",
    "ExecutionReport",
    "NodeReport",
    "RunOptions",
    "RunStatus",
    # Validation
    "ValidationIssue",
    "FlowValidationReport",
    "FlowValidator",
    "required_field",
    "required_connection",
    "combine_validators",
    "check_connection_validity",
    "validate_flow",
    # Runner
    "FlowRunner",
    "HistoryEntry",
]
