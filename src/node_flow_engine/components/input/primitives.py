"""Primitive value nodes - String, Number, Boolean and Profile ID."""

from __future__ import annotations

from typing import Any

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


class StringData(FlowNodeData):
    value: str = ""


class NumberData(FlowNodeData):
    value: float = 0


class BooleanData(FlowNodeData):
    value: bool = False


class ProfileIdData(FlowNodeData):
    profile_id: str = ""


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


def to_number(value: Any) -> int | float:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError as e:
        raise ValueError(f"Cannot convert {value!r} to a number") from e
    return int(number) if number.is_integer() else number


@register_node
class StringNode(NodeDefinition):
    """A static string, or the connected value as a string."""

    type = "input/string"
    label = "String"
    category = "input"
    data_schema = StringData
    inputs = [HandleSpec("value", FlowDataType.ANY)]
    outputs = [HandleSpec("value", FlowDataType.STRING)]

    async def execute(self, node, input, context) -> dict[str, Any]:
        value = resolve_input(input, self.parse_data(node), "value")
        return {"value": "" if value is None else str(value)}


@register_node
class NumberNode(NodeDefinition):
    """A static number, or the connected value as a number."""

    type = "input/number"
    label = "Number"
    category = "input"
    data_schema = NumberData
    inputs = [HandleSpec("value", FlowDataType.ANY)]
    outputs = [HandleSpec("value", FlowDataType.NUMBER)]

    async def execute(self, node, input, context) -> dict[str, Any]:
        value = resolve_input(input, self.parse_data(node), "value")
        return {"value": to_number(value if value is not None else 0)}


@register_node
class BooleanNode(NodeDefinition):
    """A static boolean, or the connected value as a boolean."""

    type = "input/boolean"
    label = "Boolean"
    category = "input"
    data_schema = BooleanData
    inputs = [HandleSpec("value", FlowDataType.ANY)]
    outputs = [HandleSpec("value", FlowDataType.BOOLEAN)]

    async def execute(self, node, input, context) -> dict[str, Any]:
        return {"value": to_bool(resolve_input(input, self.parse_data(node), "value"))}


@register_node
class ProfileIdNode(NodeDefinition):
    """Select a connection profile for LLM requests."""

    type = "input/profile_id"
    label = "Profile ID"
    category = "input"
    data_schema = ProfileIdData
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [HandleSpec("profile_id", FlowDataType.PROFILE_ID)]
    validators = (required_field("profile_id", "Connection Profile is required."),)

    async def execute(self, node, input, context) -> dict[str, Any]:
        return {"profile_id": self.parse_data(node).profile_id}
