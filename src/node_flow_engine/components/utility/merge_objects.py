"""Merge Objects node - shallow-merges a variable number of objects."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec, resolve_connected_schema
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.schemas import merge_object_schemas


class MergeObjectsData(FlowNodeData):
    input_count: int = Field(default=2, ge=1)


@register_node
class MergeObjectsNode(NodeDefinition):
    """
    Merge ``object_0`` .. ``object_{n-1}`` into one object.

    Later inputs override earlier keys. Inputs that are not objects are
    ignored. The ``result`` schema is the merge of the connected schemas.
    """

    type = "utility/merge_objects"
    label = "Merge Objects"
    category = "utility"
    data_schema = MergeObjectsData
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.OBJECT),
    ]
    variadic_prefix = "object_"
    dynamic_handle_type = FlowDataType.OBJECT

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        handles = super().get_dynamic_handles(node, nodes, edges)
        schemas = [
            resolve_connected_schema(node, handle.id, nodes, edges)
            for handle in handles.inputs
        ]
        merged = merge_object_schemas(schemas, name=f"Merged_{node.id}".replace("-", "_"))
        handles.outputs = [HandleSpec("result", FlowDataType.OBJECT, schema=merged)]
        return handles

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        merged: dict[str, Any] = {}
        for value in self.variadic_values(node, input):
            if isinstance(value, dict):
                merged.update(value)
        return {"main": input.get("main"), "result": merged}
