"""Schema node - builds a pydantic model from field definitions."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.schemas import build_schema
from ...core.validation import ValidationIssue

FieldType = Literal["string", "number", "boolean", "object", "array", "enum"]


class TypeDefinition(BaseModel):
    type: FieldType = "string"
    description: str | None = None
    fields: list["FieldDefinition"] | None = None  # object
    items: "TypeDefinition | None" = None  # array
    values: list[str] | None = None  # enum


class FieldDefinition(TypeDefinition):
    id: str = ""
    name: str = ""


TypeDefinition.model_rebuild()
FieldDefinition.model_rebuild()


class SchemaData(FlowNodeData):
    fields: list[FieldDefinition] = Field(default_factory=list)


def _validate_fields(fields: list[FieldDefinition]) -> list[ValidationIssue]:
    issues = []
    names: set[str] = set()
    for field in fields:
        if not field.name.strip():
            issues.append(ValidationIssue("Field names cannot be empty."))
        if field.name in names:
            issues.append(ValidationIssue(f'Duplicate field name found: "{field.name}".'))
        names.add(field.name)

        if field.type == "object" and field.fields:
            issues.extend(_validate_fields(field.fields))
        if field.type == "enum" and not field.values:
            issues.append(ValidationIssue(f'Enum "{field.name}" must have at least one value.'))
    return issues


@register_node
class SchemaNode(NodeDefinition):
    """
    Define a structured-output schema.

    The ``result`` handle carries the generated model class, both at run time
    and as the handle's schema, so LLM Request can request structured output
    and Get Property can type paths into the response.
    """

    type = "input/schema"
    label = "Schema"
    category = "input"
    data_schema = SchemaData
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.SCHEMA),
    ]

    def build(self, node) -> type[BaseModel]:
        data = self.parse_data(node)
        definitions = [f.model_dump(exclude_none=True) for f in data.fields]
        return build_schema(definitions, name=f"Schema_{node.id}".replace("-", "_"))

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec("result", FlowDataType.SCHEMA, schema=self.build(node))],
        )

    def validate(self, node, edges) -> list[ValidationIssue]:
        return super().validate(node, edges) + _validate_fields(self.parse_data(node).fields)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        return {"main": input.get("main"), "result": self.build(node)}
