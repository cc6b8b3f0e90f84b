"""Run Flow node - invokes another flow as a nested sub-flow."""

from __future__ import annotations

import json
from typing import Any

from ...core.errors import raise_for_run_error
from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


class RunFlowData(FlowNodeData):
    flow_id: str = ""
    parameters: str = "{}"


@register_node
class RunFlowNode(NodeDefinition):
    """Run a flow once with the given parameters and output its last result."""

    type = "logic/run_flow"
    label = "Run Flow"
    category = "logic"
    data_schema = RunFlowData
    inputs = [
        HandleSpec("flow_id", FlowDataType.FLOW_ID),
        HandleSpec("parameters", FlowDataType.OBJECT),
    ]
    outputs = [HandleSpec("result", FlowDataType.ANY)]
    validators = (required_field("flow_id", "Flow ID/Name is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        flow_id = resolve_input(input, data, "flow_id")
        if not flow_id:
            raise ValueError("Flow ID/Name is required.")

        parameters = resolve_input(input, data, "parameters")
        if isinstance(parameters, str):
            try:
                parameters = json.loads(parameters or "{}")
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid JSON in parameters: {e}") from e
        if not isinstance(parameters, dict):
            raise ValueError("Parameters must be a JSON object.")

        report = await context.execute_sub_flow(flow_id, parameters)
        if report.error is not None:
            raise_for_run_error(report.error, sub_flow_id=flow_id, message=f'Sub-flow "{flow_id}" failed')

        return {"result": report.last_output}
