"""Variable Schema node - declares the type of a variable for Get * Variable nodes."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.schemas import build_type
from ..input.schema import TypeDefinition


class VariableSchemaData(FlowNodeData):
    definition: TypeDefinition = Field(default_factory=TypeDefinition)


@register_node
class VariableSchemaNode(NodeDefinition):
    """
    Build a type from a single type definition.

    Unlike the Schema node this need not be an object: ``number``, an enum
    or an array of objects are all valid variable types.
    """

    type = "variables/schema"
    label = "Variable Schema"
    category = "variables"
    data_schema = VariableSchemaData
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("schema", FlowDataType.SCHEMA),
    ]

    def build(self, node) -> Any:
        definition = self.parse_data(node).definition.model_dump(exclude_none=True)
        return build_type(definition, name=f"Variable_{node.id}".replace("-", "_"))

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec("schema", FlowDataType.SCHEMA, schema=self.build(node))],
        )

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        return {"main": input.get("main"), "schema": self.build(node)}
