"""Type conversion nodes - Type Converter and String to Number."""

from __future__ import annotations

import json
import re
from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node

TargetType = Literal["string", "number", "boolean", "object", "array"]

_EMPTY: dict[str, Any] = {"string": "", "number": 0, "boolean": False}

_FLOW_TYPES = {
    "string": FlowDataType.STRING,
    "number": FlowDataType.NUMBER,
    "boolean": FlowDataType.BOOLEAN,
    "object": FlowDataType.OBJECT,
    "array": FlowDataType.ARRAY,
}


class TypeConverterData(FlowNodeData):
    target_type: TargetType = "string"


def convert(value: Any, target_type: str) -> Any:
    """Convert ``value``; raises ValueError when it cannot be represented."""
    if target_type not in _FLOW_TYPES:
        raise ValueError(f"Unsupported target type: {target_type}")
    if value is None:
        if target_type == "object":
            return {}
        if target_type == "array":
            return []
        return _EMPTY[target_type]

    if target_type == "string":
        if isinstance(value, (dict, list)):
            return json.dumps(value, indent=2)
        return str(value)
    if target_type == "number":
        try:
            number = float(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"'{value}' cannot be converted to a number.") from e
        return int(number) if number.is_integer() else number
    if target_type == "boolean":
        if isinstance(value, str):
            return value.strip().lower() in ("true", "1", "yes", "on")
        return bool(value)
    # object / array
    parsed = value
    if isinstance(value, str):
        parsed = json.loads(value)
    elif not isinstance(value, (dict, list)):
        raise ValueError("Input must be a JSON string to convert.")
    if target_type == "array" and not isinstance(parsed, list):
        raise ValueError("Parsed JSON is not an array.")
    if target_type == "object" and not isinstance(parsed, dict):
        raise ValueError("Parsed JSON is not an object.")
    return parsed


@register_node
class TypeConverterNode(NodeDefinition):
    """Convert the ``value`` input to the target type."""

    type = "utility/type_converter"
    label = "Type Converter"
    category = "utility"
    data_schema = TypeConverterData
    inputs = [
        HandleSpec("value", FlowDataType.ANY),
        HandleSpec("target_type", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("result", FlowDataType.ANY)]

    def _result_type(self, node) -> FlowDataType:
        return _FLOW_TYPES.get(self.parse_data(node).target_type, FlowDataType.ANY)

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        return HandleSet(inputs=[], outputs=[HandleSpec("result", self._result_type(node))])

    def get_handle_type(self, node, handle_id, direction, nodes, edges):
        if direction == "output" and handle_id == "result":
            return self._result_type(node)
        return None

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        target_type = resolve_input(input, self.parse_data(node), "target_type") or "string"
        try:
            return {"result": convert(input.get("value"), target_type)}
        except ValueError as e:
            raise ValueError(f"Type conversion failed: {e}") from e


_LEADING_NUMBER = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


def parse_leading_number(text: str) -> float | int | None:
    """Number at the start of ``text`` ("12px" -> 12), or None if there isn't one."""
    match = _LEADING_NUMBER.match(text)
    if match is None:
        return None
    number = float(match.group(0))
    return int(number) if number.is_integer() else number


@register_node
class StringToNumberNode(NodeDefinition):
    """Parse the number a string starts with."""

    type = "utility/string_to_number"
    label = "String to Number"
    category = "utility"
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("string", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.NUMBER),
    ]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        value = input.get("string")
        if value is None:
            raise ValueError("Input string is missing.")
        number = parse_leading_number(str(value))
        if number is None:
            raise ValueError(f"'{value}' cannot be converted to a number.")
        return {"main": input.get("main"), "result": number}
