"""For Each node - runs a sub-flow once per array element."""

from __future__ import annotations

import logging
from typing import Any

from ...core.errors import raise_for_run_error
from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.results import ResultKind
from ...core.validation import required_connection, required_field

logger = logging.getLogger(__name__)


class ForEachData(FlowNodeData):
    flow_id: str = ""
    # Pick one key out of each iteration's output (e.g. "result" from utility/math)
    result_key: str = ""


@register_node
class ForEachNode(NodeDefinition):
    """
    Iterate over an array by running a sub-flow per element.

    Each iteration runs ``flow_id`` nested in the current run with the
    input ``{item, index}``. The iteration's last output is collected
    unless the body ends with Continue Loop; Break Loop stops iterating
    and keeps what was collected so far.

    Cancellation is checked before every iteration. A failing iteration
    fails the node, annotated with the item index.
    """

    type = "logic/for_each"
    label = "For Each"
    category = "logic"
    data_schema = ForEachData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("flow_id", FlowDataType.FLOW_ID),
        HandleSpec("array", FlowDataType.ARRAY),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("results", FlowDataType.ARRAY, schema=list[Any]),
        HandleSpec("count", FlowDataType.NUMBER),
        HandleSpec("broken", FlowDataType.BOOLEAN),
    ]
    validators = (
        required_field("flow_id", "Flow to Run is required."),
        required_connection("array", 'An array must be connected to the "array" input.'),
    )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        flow_id = resolve_input(input, data, "flow_id")
        array = input.get("array")

        if not flow_id:
            raise ValueError("Flow to Run is required.")
        if not isinstance(array, (list, tuple)):
            raise ValueError('The "array" input must be a valid array.')

        results: list[Any] = []
        broken = False

        for index, item in enumerate(array):
            context.raise_if_aborted(results)

            report = await context.execute_sub_flow(
                flow_id, {"item": item, "index": index}, loop=True
            )

            if report.error is not None:
                raise_for_run_error(
                    report.error,
                    sub_flow_id=flow_id,
                    index=index,
                    message=f"Sub-flow in ForEach loop failed on item {index}",
                    partial_results=results,
                )

            if report.control is ResultKind.BREAK_LOOP:
                logger.debug(f"ForEach {node.id}: break on item {index}")
                broken = True
                break
            if report.control is ResultKind.CONTINUE_LOOP:
                continue

            value = report.last_output
            if data.result_key and isinstance(value, dict):
                value = value.get(data.result_key)
            results.append(value)

        return {
            "main": input.get("main"),
            "results": results,
            "count": len(results),
            "broken": broken,
        }
