"""For Each trigger - entry point of a loop body flow."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.schemas import build_schema, flow_type_for_schema


class ForEachTriggerData(FlowNodeData):
    # Optional field definitions (as for input/schema) typing the item output
    item_fields: list[dict[str, Any]] = Field(default_factory=list)


@register_node
class ForEachTriggerNode(NodeDefinition):
    """
    Expose the current loop iteration as named outputs.

    A For Each node runs its sub-flow once per element with the input
    ``{item, index}``; this trigger hands those on to the body.
    """

    type = "trigger/for_each"
    label = "For Each Trigger"
    category = "trigger"
    data_schema = ForEachTriggerData
    is_trigger = True
    inputs = []
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("item", FlowDataType.ANY, label="Item"),
        HandleSpec("index", FlowDataType.NUMBER, label="Index"),
    ]

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet | None:
        data = self.parse_data(node)
        if not data.item_fields:
            return None
        schema = build_schema(data.item_fields, name="LoopItem")
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec("item", flow_type_for_schema(schema), schema=schema, label="Item")],
        )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        return {
            **input,
            "item": input.get("item"),
            "index": input.get("index"),
        }
