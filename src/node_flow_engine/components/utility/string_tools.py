"""String Tools node - common string operations."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import ValidationIssue

Operation = Literal["merge", "split", "join", "to_upper", "to_lower", "trim", "replace", "length"]

_RESULT_TYPES = {
    "merge": FlowDataType.STRING,
    "split": FlowDataType.ARRAY,
    "join": FlowDataType.STRING,
    "to_upper": FlowDataType.STRING,
    "to_lower": FlowDataType.STRING,
    "trim": FlowDataType.STRING,
    "replace": FlowDataType.STRING,
    "length": FlowDataType.NUMBER,
}


class StringToolsData(FlowNodeData):
    operation: Operation = "merge"
    delimiter: str = ""
    input_count: int = Field(default=2, ge=1)
    search_value: str = ""
    replace_value: str = ""


@register_node
class StringToolsNode(NodeDefinition):
    """
    Merge, split, join, case-convert, trim, replace or measure strings.

    ``merge`` joins the variadic ``string_N`` inputs with the delimiter;
    the other operations act on the ``string`` input (``join`` on ``array``).
    """

    type = "utility/string_tools"
    label = "String Tools"
    category = "utility"
    data_schema = StringToolsData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("operation", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]
    variadic_prefix = "string_"

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        data = self.parse_data(node)
        operation = data.operation
        if operation == "merge":
            inputs = super().get_dynamic_handles(node, nodes, edges).inputs
            inputs.append(HandleSpec("delimiter", FlowDataType.STRING))
        elif operation == "join":
            inputs = [HandleSpec("array", FlowDataType.ARRAY), HandleSpec("delimiter", FlowDataType.STRING)]
        elif operation == "split":
            inputs = [HandleSpec("string", FlowDataType.STRING), HandleSpec("delimiter", FlowDataType.STRING)]
        elif operation == "replace":
            inputs = [
                HandleSpec("string", FlowDataType.STRING),
                HandleSpec("search_value", FlowDataType.STRING),
                HandleSpec("replace_value", FlowDataType.STRING),
            ]
        else:
            inputs = [HandleSpec("string", FlowDataType.STRING)]
        return HandleSet(
            inputs=inputs,
            outputs=[HandleSpec("result", _RESULT_TYPES[operation])],
        )

    def is_dynamic_handle(self, node, handle_id) -> bool:
        return self.parse_data(node).operation == "merge" and super().is_dynamic_handle(node, handle_id)

    def validate(self, node, edges) -> list[ValidationIssue]:
        issues = super().validate(node, edges)
        data = self.parse_data(node)

        def connected(handle_id: str) -> bool:
            return any(e.target == node.id and e.target_handle == handle_id for e in edges)

        if data.operation == "merge":
            count = sum(1 for e in edges if e.target == node.id and self.is_dynamic_handle(node, e.target_handle))
            if count < 2:
                issues.append(ValidationIssue(
                    "At least two string inputs should be connected for a merge operation.",
                    severity="warning",
                ))
        elif data.operation == "join":
            if not connected("array"):
                issues.append(ValidationIssue('An array must be connected to the "array" input.'))
        elif not connected("string"):
            issues.append(ValidationIssue('A string must be connected to the "string" input.'))

        if data.operation == "replace" and not data.search_value and not connected("search_value"):
            issues.append(ValidationIssue("Search Value is required.", field_id="search_value"))
        return issues

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        operation = resolve_input(input, data, "operation") or "merge"
        delimiter = resolve_input(input, data, "delimiter") or ""
        text = input.get("string")
        text = "" if text is None else str(text)

        if operation == "merge":
            result: Any = delimiter.join(str(v) for v in self.variadic_values(node, input))
        elif operation == "split":
            result = text.split(delimiter) if delimiter else list(text)
        elif operation == "join":
            array = input.get("array")
            if not isinstance(array, list):
                raise ValueError("Input for join must be an array.")
            result = delimiter.join(str(v) for v in array)
        elif operation == "to_upper":
            result = text.upper()
        elif operation == "to_lower":
            result = text.lower()
        elif operation == "trim":
            result = text.strip()
        elif operation == "replace":
            search = resolve_input(input, data, "search_value") or ""
            replacement = resolve_input(input, data, "replace_value") or ""
            result = text.replace(search, replacement)
        elif operation == "length":
            result = len(text)
        else:
            raise ValueError(f"Unknown string operation: {operation}")

        return {"main": input.get("main"), "result": result}
