"""Handle types and connection-point resolution."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Sequence, TYPE_CHECKING

from pydantic import ValidationError

if TYPE_CHECKING:
    from .flow import SpecEdge, SpecNode
    from .registry import NodeRegistry


class FlowDataType(str, Enum):
    """Type tag carried by every node handle."""
    ANY = "any"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    SCHEMA = "schema"
    MESSAGES = "messages"
    STRUCTURED_RESULT = "structuredResult"
    # String-like subtypes
    CHARACTER_AVATAR = "characterAvatar"
    LOREBOOK_NAME = "lorebookName"
    FLOW_ID = "flowId"
    PROFILE_ID = "profileId"
    REGEX_SCRIPT_ID = "regexScriptId"


STRING_LIKE_TYPES = frozenset({
    FlowDataType.STRING,
    FlowDataType.CHARACTER_AVATAR,
    FlowDataType.LOREBOOK_NAME,
    FlowDataType.FLOW_ID,
    FlowDataType.PROFILE_ID,
    FlowDataType.REGEX_SCRIPT_ID,
})

Direction = Literal["input", "output"]

_local = threading.local()


def _resolving_nodes() -> set[str]:
    if not hasattr(_local, "nodes"):
        _local.nodes = set()
    return _local.nodes


@dataclass(frozen=True)
class HandleSpec:
    """A named input or output connection point on a node."""
    id: str | None  # None = the single unnamed default handle
    type: FlowDataType
    schema: Any = None  # Shape refinement for OBJECT/ARRAY payloads
    label: str | None = None

    def to_dict(self) -> dict[str, Any]:
        from .schemas import describe_schema
        return {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "schema": describe_schema(self.schema),
        }


@dataclass
class HandleSet:
    """Handles computed from node data or the surrounding graph."""
    inputs: list[HandleSpec] = field(default_factory=list)
    outputs: list[HandleSpec] = field(default_factory=list)


def are_types_compatible(a: FlowDataType, b: FlowDataType) -> bool:
    """Whether handles of type ``a`` and ``b`` may be connected (symmetric)."""
    if a is FlowDataType.ANY or b is FlowDataType.ANY:
        return True
    if a is b:
        return True
    return a in STRING_LIKE_TYPES and b in STRING_LIKE_TYPES


def find_handle(handles: Sequence[HandleSpec], handle_id: str | None) -> HandleSpec | None:
    for handle in handles:
        if handle.id == handle_id:
            return handle
    return None


def get_handle_spec(
    node: "SpecNode",
    handle_id: str | None,
    direction: Direction,
    nodes: Sequence["SpecNode"],
    edges: Sequence["SpecEdge"],
    registry: "NodeRegistry | None" = None,
) -> HandleSpec | None:
    """
    Resolve the handle spec for one connection point on a node.

    Dynamic handles (computed from node data or the surrounding graph) are
    consulted first, then the definition's static handles.

    Returns:
        The resolved HandleSpec, or None if the node type or handle is unknown
    """
    from .registry import NodeRegistry

    registry = registry or NodeRegistry.get_instance()
    definition = registry.get(node.type)
    if definition is None:
        return None

    try:
        dynamic = definition.get_dynamic_handles(node, nodes, edges)
    except ValidationError:
        # Malformed node data is reported by the validator; fall back to static handles
        dynamic = None
    if dynamic is not None:
        pool = dynamic.inputs if direction == "input" else dynamic.outputs
        found = find_handle(pool, handle_id)
        if found is not None:
            return found

    static = definition.inputs if direction == "input" else definition.outputs
    found = find_handle(static, handle_id)
    if found is not None:
        return found

    # Variadic families (object_0, object_1, ...) are input-only
    if direction == "input" and handle_id is not None:
        try:
            is_dynamic = definition.is_dynamic_handle(node, handle_id)
        except ValidationError:
            is_dynamic = False
        if is_dynamic:
            return HandleSpec(id=handle_id, type=definition.dynamic_handle_type)
    return None


def resolve_connected_schema(
    node: "SpecNode",
    handle_id: str | None,
    nodes: Sequence["SpecNode"],
    edges: Sequence["SpecEdge"],
    registry: "NodeRegistry | None" = None,
) -> Any:
    """
    Schema carried by whatever output is wired into ``node``'s ``handle_id`` input.

    Returns None when nothing is connected, the source has no schema, or the
    lookup re-enters a node already being resolved (cyclic graphs).
    """
    edge = next((e for e in edges if e.target == node.id and e.target_handle == handle_id), None)
    if edge is None:
        return None
    source = next((n for n in nodes if n.id == edge.source), None)
    if source is None:
        return None

    resolving = _resolving_nodes()
    if node.id in resolving:
        return None
    resolving.add(node.id)
    try:
        spec = get_handle_spec(source, edge.source_handle, "output", nodes, edges, registry)
    finally:
        resolving.discard(node.id)
    return spec.schema if spec else None


def get_handle_type(
    node: "SpecNode",
    handle_id: str | None,
    direction: Direction,
    nodes: Sequence["SpecNode"],
    edges: Sequence["SpecEdge"],
    registry: "NodeRegistry | None" = None,
) -> FlowDataType | None:
    """Type-only variant of get_handle_spec."""
    from .registry import NodeRegistry

    registry = registry or NodeRegistry.get_instance()
    definition = registry.get(node.type)
    if definition is None:
        return None

    try:
        handle_type = definition.get_handle_type(node, handle_id, direction, nodes, edges)
    except ValidationError:
        handle_type = None
    if handle_type is not None:
        return handle_type

    spec = get_handle_spec(node, handle_id, direction, nodes, edges, registry)
    return spec.type if spec else None
