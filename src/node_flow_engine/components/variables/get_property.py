"""Get Property node - reads a nested value by path."""

from __future__ import annotations

from typing import Any

from ...core.handles import FlowDataType, HandleSet, HandleSpec, resolve_connected_schema
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.schemas import flow_type_for_schema, get_path, schema_at_path
from ...core.validation import required_connection, required_field


class GetPropertyData(FlowNodeData):
    path: str = ""


@register_node
class GetPropertyNode(NodeDefinition):
    """
    Read ``object.<path>`` where path is dotted with optional indices
    (``results[0].name``).

    When the connected object carries a schema, the ``value`` output is
    typed by walking that schema along the path.
    """

    type = "variables/get_property"
    label = "Get Property"
    category = "variables"
    data_schema = GetPropertyData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("object", FlowDataType.OBJECT),
        HandleSpec("path", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("value", FlowDataType.ANY),
    ]
    validators = (
        required_field("path", "Property Path is required."),
        required_connection("object", 'An object must be connected to the "object" input.'),
    )

    def _property_schema(self, node, nodes, edges) -> Any:
        source_schema = resolve_connected_schema(node, "object", nodes, edges)
        if source_schema is None:
            return None
        return schema_at_path(source_schema, self.parse_data(node).path)

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        schema = self._property_schema(node, nodes, edges)
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec("value", flow_type_for_schema(schema), schema=schema)],
        )

    def get_handle_type(self, node, handle_id, direction, nodes, edges):
        if direction == "output" and handle_id == "value":
            return flow_type_for_schema(self._property_schema(node, nodes, edges))
        return None

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        path = resolve_input(input, self.parse_data(node), "path")
        obj = input.get("object")

        if not path:
            raise ValueError(f"Property path is required in node {node.type}.")
        if not isinstance(obj, (dict, list)):
            raise ValueError(f"Input is not a valid object in {node.type}.")

        return {"main": input.get("main"), "value": get_path(obj, path)}
