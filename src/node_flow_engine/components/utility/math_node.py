"""Math node - binary arithmetic."""

from __future__ import annotations

from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node

Operation = Literal["add", "subtract", "multiply", "divide", "modulo"]


class MathData(FlowNodeData):
    operation: Operation = "add"
    a: int | float = 0
    b: int | float = 0


def apply_operation(operation: str, a: int | float, b: int | float) -> int | float:
    if operation == "add":
        return a + b
    if operation == "subtract":
        return a - b
    if operation == "multiply":
        return a * b
    if operation == "divide":
        if b == 0:
            raise ZeroDivisionError("Division by zero.")
        return a / b
    if operation == "modulo":
        if b == 0:
            raise ZeroDivisionError("Division by zero for modulo.")
        return a % b
    raise ValueError(f"Unknown math operation: {operation}")


@register_node
class MathNode(NodeDefinition):
    """Compute ``a <operation> b``. Connected inputs override the static values."""

    type = "utility/math"
    label = "Math"
    category = "utility"
    data_schema = MathData
    inputs = [
        HandleSpec("operation", FlowDataType.STRING),
        HandleSpec("a", FlowDataType.NUMBER),
        HandleSpec("b", FlowDataType.NUMBER),
    ]
    outputs = [HandleSpec("result", FlowDataType.NUMBER)]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        operation = resolve_input(input, data, "operation") or "add"
        a = resolve_input(input, data, "a")
        b = resolve_input(input, data, "b")

        for value in (a, b):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeError("Both inputs must be numbers.")

        return {"result": apply_operation(operation, a, b)}
