"""JSON node - builds an object or array from a tree of typed items."""

from __future__ import annotations

from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.validation import ValidationIssue

ItemType = Literal["string", "number", "boolean", "object", "array"]

_ITEM_FLOW_TYPES = {
    "string": FlowDataType.STRING,
    "number": FlowDataType.NUMBER,
    "boolean": FlowDataType.BOOLEAN,
    "object": FlowDataType.OBJECT,
    "array": FlowDataType.ARRAY,
}


class JsonItem(BaseModel):
    id: str
    key: str = ""  # Ignored for array children
    type: ItemType = "string"
    value: Union[str, int, float, bool, list["JsonItem"]] = ""


JsonItem.model_rebuild()


class JsonData(FlowNodeData):
    root_type: Literal["object", "array"] = "object"
    items: list[JsonItem] = Field(default_factory=list)


def build_value(item: JsonItem, input: dict[str, Any]) -> Any:
    """Static item value, unless its handle (the item id) is connected."""
    if item.id in input:
        return input[item.id]
    if item.type == "object":
        children = item.value if isinstance(item.value, list) else []
        return {child.key: build_value(child, input) for child in children}
    if item.type == "array":
        children = item.value if isinstance(item.value, list) else []
        return [build_value(child, input) for child in children]
    return item.value


def _validate_items(items: list[JsonItem], keyed: bool = True) -> list[ValidationIssue]:
    issues = []
    keys: set[str] = set()
    for item in items:
        if keyed:
            if not item.key.strip():
                issues.append(ValidationIssue("Object keys cannot be empty."))
            if item.key in keys:
                issues.append(ValidationIssue(f'Duplicate key found: "{item.key}".'))
            keys.add(item.key)
        if item.type in ("object", "array") and isinstance(item.value, list):
            issues.extend(_validate_items(item.value, keyed=item.type == "object"))
    return issues


def _item_handles(items: list[JsonItem]) -> list[HandleSpec]:
    handles = []
    for item in items:
        handles.append(HandleSpec(item.id, _ITEM_FLOW_TYPES[item.type], label=item.key or None))
        if item.type in ("object", "array") and isinstance(item.value, list):
            handles.extend(_item_handles(item.value))
    return handles


@register_node
class JsonNode(NodeDefinition):
    """
    Compose a JSON value.

    Every item exposes an input handle named by its id; a connected value
    replaces the item's static value (and its children). For object roots
    each top-level key is also exposed as its own output.
    """

    type = "utility/json"
    label = "JSON"
    category = "utility"
    data_schema = JsonData
    inputs = []
    outputs = [HandleSpec("result", FlowDataType.ANY)]

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        data = self.parse_data(node)
        root_type = FlowDataType.OBJECT if data.root_type == "object" else FlowDataType.ARRAY
        outputs = [HandleSpec("result", root_type)]
        if data.root_type == "object":
            outputs += [HandleSpec(i.key, _ITEM_FLOW_TYPES[i.type]) for i in data.items if i.key]
        return HandleSet(inputs=_item_handles(data.items), outputs=outputs)

    def validate(self, node, edges) -> list[ValidationIssue]:
        data = self.parse_data(node)
        return super().validate(node, edges) + _validate_items(data.items, keyed=data.root_type == "object")

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        if data.root_type == "array":
            return {"result": [build_value(item, input) for item in data.items]}

        root = {item.key: build_value(item, input) for item in data.items}
        return {**root, "result": root}
