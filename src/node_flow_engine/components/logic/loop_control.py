"""Loop control nodes - Break Loop, Continue Loop and End Flow."""

from __future__ import annotations

from typing import Any

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import NodeDefinition
from ...core.registry import register_node
from ...core.results import NodeResult


@register_node
class BreakLoopNode(NodeDefinition):
    """Stop the enclosing For Each loop. Invalid outside a loop body."""

    type = "logic/break_loop"
    label = "Break Loop"
    category = "logic"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = []

    async def execute(self, node, input, context) -> NodeResult:
        return NodeResult.break_loop()


@register_node
class ContinueLoopNode(NodeDefinition):
    """Skip to the next item of the enclosing For Each loop."""

    type = "logic/continue_loop"
    label = "Continue Loop"
    category = "logic"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = []

    async def execute(self, node, input, context) -> NodeResult:
        return NodeResult.continue_loop()


@register_node
class EndFlowNode(NodeDefinition):
    """
    Terminate the current run.

    A connected ``value`` becomes the run's last output, which is what a
    calling Run Flow or For Each node receives.
    """

    type = "logic/end_flow"
    label = "End Flow"
    category = "logic"
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("value", FlowDataType.ANY),
    ]
    outputs = []

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> NodeResult:
        if input.get("value") is not None:
            return NodeResult.end_flow(input["value"])
        return NodeResult.end_flow()
