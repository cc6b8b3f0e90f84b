"""Manual trigger - starts a flow with a fixed JSON payload."""

from __future__ import annotations

import json
from typing import Any

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.validation import ValidationIssue


class ManualTriggerData(FlowNodeData):
    payload: str = "{}"


@register_node
class ManualTriggerNode(NodeDefinition):
    """Start the flow on demand; outputs the parsed payload."""

    type = "trigger/manual"
    label = "Manual Trigger"
    category = "trigger"
    data_schema = ManualTriggerData
    is_trigger = True
    inputs = []
    outputs = [HandleSpec(None, FlowDataType.OBJECT)]

    def validate(self, node, edges):
        issues = super().validate(node, edges)
        try:
            json.loads(self.parse_data(node).payload or "{}")
        except json.JSONDecodeError as e:
            issues.append(ValidationIssue(f"Invalid JSON payload: {e}", field_id="payload"))
        return issues

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        try:
            payload = json.loads(data.payload or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON payload: {e}") from e
        if not isinstance(payload, dict):
            payload = {"value": payload}
        return {**payload, "main": payload}
