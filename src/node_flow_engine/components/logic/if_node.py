"""If node - routes execution to the first matching condition's handle."""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.schemas import get_path
from ...core.validation import ValidationIssue

FALSE_HANDLE = "false"

Operator = Literal["equals", "not_equals", "gt", "lt", "gte", "lte", "contains", "truthy", "falsy"]


class Condition(BaseModel):
    """One branch: compares the subject (or a path inside it) with ``value``."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    operator: Operator = "truthy"
    path: str = ""
    value: Any = None
    # Test an execution variable instead of the main input
    variable: str | None = None


class IfData(FlowNodeData):
    conditions: list[Condition] = Field(default_factory=lambda: [Condition()])


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Cannot compare non-numeric value {value!r}") from e


def evaluate_condition(operator: Operator, subject: Any, value: Any) -> bool:
    """Apply a comparison operator."""
    if operator == "equals":
        return subject == value
    if operator == "not_equals":
        return subject != value
    if operator == "truthy":
        return bool(subject)
    if operator == "falsy":
        return not subject
    if operator == "contains":
        if subject is None:
            return False
        if isinstance(subject, str):
            return str(value) in subject
        return value in subject
    if operator == "gt":
        return _number(subject) > _number(value)
    if operator == "lt":
        return _number(subject) < _number(value)
    if operator == "gte":
        return _number(subject) >= _number(value)
    if operator == "lte":
        return _number(subject) <= _number(value)
    raise ValueError(f"Unknown operator: {operator}")


@register_node
class IfNode(NodeDefinition):
    """
    Conditional branch.

    Conditions are tried in order; the first one that matches fires its own
    output handle (named by the condition id) carrying the main input. If
    none matches, the ``false`` handle fires instead.
    """

    type = "logic/if"
    label = "If"
    category = "logic"
    data_schema = IfData
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [HandleSpec(FALSE_HANDLE, FlowDataType.ANY)]

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        data = self.parse_data(node)
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec(c.id, FlowDataType.ANY) for c in data.conditions],
        )

    def get_handle_type(self, node, handle_id, direction, nodes, edges):
        if direction == "output":
            data = self.parse_data(node)
            if handle_id == FALSE_HANDLE or any(c.id == handle_id for c in data.conditions):
                return FlowDataType.ANY
        return None

    def validate(self, node, edges) -> list[ValidationIssue]:
        issues = super().validate(node, edges)
        data = self.parse_data(node)
        if not data.conditions:
            issues.append(ValidationIssue("At least one condition is required.", field_id="conditions"))
        seen = set()
        for condition in data.conditions:
            if condition.id == FALSE_HANDLE or condition.id in seen:
                issues.append(ValidationIssue(
                    f"Condition id '{condition.id}' is reserved or duplicated.",
                    field_id="conditions",
                ))
            seen.add(condition.id)
        return issues

    def determine_edges_to_follow(self, node, outputs, edges):
        return [e for e in edges if e.source_handle in outputs]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        main = input.get("main")

        for condition in data.conditions:
            if condition.variable:
                subject = context.get_variable(condition.variable)
            else:
                subject = main
            if condition.path:
                subject = get_path(subject, condition.path)
            if evaluate_condition(condition.operator, subject, condition.value):
                return {condition.id: main}

        return {FALSE_HANDLE: main}
