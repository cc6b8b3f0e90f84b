"""Array Tools node - read and transform arrays without mutating the input."""

from __future__ import annotations

import copy
from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSet, HandleSpec, resolve_connected_schema
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.schemas import element_schema, flow_type_for_schema
from ...core.validation import required_connection

Operation = Literal["length", "get_by_index", "slice", "push", "pop", "shift", "unshift", "reverse", "includes"]


class ArrayToolsData(FlowNodeData):
    operation: Operation = "length"
    index: int | None = None
    end_index: int | None = None
    value: Any = None


@register_node
class ArrayToolsNode(NodeDefinition):
    """
    Length, indexing, slicing, push/pop, shift/unshift, reverse and membership.

    Handle types follow the schema of the connected ``array``: item outputs
    take the element type and array outputs keep the array's schema.
    """

    type = "utility/array_tools"
    label = "Array Tools"
    category = "utility"
    data_schema = ArrayToolsData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("operation", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]
    validators = (required_connection("array", 'An array must be connected to the "Array" input.'),)

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        operation = self.parse_data(node).operation
        array_schema = resolve_connected_schema(node, "array", nodes, edges)
        item_schema = element_schema(array_schema)
        item_type = flow_type_for_schema(item_schema)

        def array_out(handle_id: str, label: str | None = None) -> HandleSpec:
            return HandleSpec(handle_id, FlowDataType.ARRAY, schema=array_schema, label=label)

        inputs = [HandleSpec("array", FlowDataType.ARRAY)]
        if operation == "length":
            outputs = [HandleSpec("result", FlowDataType.NUMBER)]
        elif operation == "get_by_index":
            inputs.append(HandleSpec("index", FlowDataType.NUMBER))
            outputs = [HandleSpec("result", item_type, schema=item_schema)]
        elif operation == "slice":
            inputs.append(HandleSpec("index", FlowDataType.NUMBER, label="Start Index"))
            inputs.append(HandleSpec("end_index", FlowDataType.NUMBER, label="End Index"))
            outputs = [array_out("result")]
        elif operation in ("push", "unshift"):
            inputs.append(HandleSpec("value", item_type, schema=item_schema))
            outputs = [array_out("result")]
        elif operation in ("pop", "shift"):
            outputs = [
                array_out("array", label="Modified Array"),
                HandleSpec("item", item_type, schema=item_schema, label="Removed Item"),
            ]
        elif operation == "includes":
            inputs.append(HandleSpec("value", item_type, schema=item_schema))
            outputs = [HandleSpec("result", FlowDataType.BOOLEAN)]
        else:
            outputs = [array_out("result")]
        return HandleSet(inputs=inputs, outputs=outputs)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        operation = resolve_input(input, data, "operation") or "length"
        array = input.get("array")
        if not isinstance(array, list):
            raise TypeError('An array must be connected to the "Array" input.')

        items = copy.deepcopy(array)
        main = input.get("main")

        if operation == "length":
            return {"main": main, "result": len(array)}
        if operation == "get_by_index":
            index = resolve_input(input, data, "index")
            if isinstance(index, bool) or not isinstance(index, int):
                raise TypeError("Index must be a number.")
            return {"main": main, "result": array[index] if 0 <= index < len(array) else None}
        if operation == "slice":
            start = resolve_input(input, data, "index") or 0
            end = resolve_input(input, data, "end_index")
            return {"main": main, "result": items[start:end]}
        if operation in ("push", "unshift", "includes"):
            value = resolve_input(input, data, "value")
            if value is None:
                raise ValueError(f"Value to {'check for' if operation == 'includes' else operation} is required.")
            if operation == "includes":
                return {"main": main, "result": value in array}
            if operation == "push":
                items.append(value)
            else:
                items.insert(0, value)
            return {"main": main, "result": items}
        if operation in ("pop", "shift"):
            removed = None
            if items:
                removed = items.pop() if operation == "pop" else items.pop(0)
            return {"main": main, "array": items, "item": removed}
        if operation == "reverse":
            return {"main": main, "result": items[::-1]}
        raise ValueError(f"Unknown array operation: {operation}")
