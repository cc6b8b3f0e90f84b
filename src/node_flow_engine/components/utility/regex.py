"""Regex node - find/replace with a pattern or a host regex script."""

from __future__ import annotations

import re
from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import ValidationIssue


class RegexData(FlowNodeData):
    mode: Literal["standard", "host"] = "standard"
    script_id: str = ""
    find_regex: str = ""
    replace_string: str = ""


@register_node
class RegexNode(NodeDefinition):
    """
    Apply a regular expression to the ``string`` input.

    In ``standard`` mode every match of ``find_regex`` is replaced with
    ``replace_string`` (``\\1`` group references work). In ``host`` mode
    the host's named regex script does the replacement.
    """

    type = "utility/regex"
    label = "Regex"
    category = "utility"
    data_schema = RegexData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("string", FlowDataType.STRING),
        HandleSpec("mode", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.STRING),
        HandleSpec("matches", FlowDataType.ARRAY, schema=list[str]),
    ]

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        if self.parse_data(node).mode == "host":
            inputs = [HandleSpec("script_id", FlowDataType.REGEX_SCRIPT_ID)]
        else:
            inputs = [
                HandleSpec("find_regex", FlowDataType.STRING),
                HandleSpec("replace_string", FlowDataType.STRING),
            ]
        return HandleSet(inputs=inputs, outputs=[])

    def validate(self, node, edges) -> list[ValidationIssue]:
        issues = super().validate(node, edges)
        data = self.parse_data(node)
        if data.mode == "standard" and data.find_regex:
            try:
                re.compile(data.find_regex)
            except re.error as e:
                issues.append(ValidationIssue(f"Invalid regex: {e}", field_id="find_regex"))
        return issues

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        mode = resolve_input(input, data, "mode") or "standard"
        text = input.get("string")
        text = "" if text is None else text
        if not isinstance(text, str):
            raise TypeError("Input must be a string.")

        if mode == "host":
            script_id = resolve_input(input, data, "script_id")
            if not script_id:
                raise ValueError("Regex script ID is not provided.")
            result = await context.dependencies.run_regex_script(script_id, text)
            matches: list[str] = []
        else:
            find_regex = resolve_input(input, data, "find_regex")
            if not find_regex:
                raise ValueError("Find Regex is required for standard mode.")
            try:
                pattern = re.compile(find_regex)
            except re.error as e:
                raise ValueError(f"Invalid regex: {e}") from e
            replacement = resolve_input(input, data, "replace_string") or ""
            result = pattern.sub(replacement, text)
            matches = [m.group(0) for m in pattern.finditer(text)]

        return {"main": input.get("main"), "result": result, "matches": matches}
