"""Pre-run validation for flows and live connection checking."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Sequence

from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from .flow import SpecEdge, SpecFlow, SpecNode
from .handles import are_types_compatible, get_handle_spec
from .registry import NodeRegistry

Severity = Literal["error", "warning"]


@dataclass(frozen=True)
class ValidationIssue:
    """A diagnostic for one node (or the whole flow when node_id is None)."""
    message: str
    severity: Severity = "error"
    field_id: str | None = None
    node_id: str | None = None
    edge_id: str | None = None

    def __str__(self) -> str:
        icon = "✗" if self.severity == "error" else "⚠"
        where = f" [node {self.node_id}]" if self.node_id else ""
        field_str = f" ({self.field_id})" if self.field_id else ""
        return f"{icon}{where}{field_str} {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "severity": self.severity,
            "field_id": self.field_id,
            "node_id": self.node_id,
            "edge_id": self.edge_id,
        }


NodeValidator = Callable[[SpecNode, Sequence[SpecEdge]], "ValidationIssue | list[ValidationIssue] | None"]


def _is_connected(node: SpecNode, edges: Sequence[SpecEdge], handle_id: str) -> bool:
    return any(e.target == node.id and e.target_handle == handle_id for e in edges)


def _data_value(node: SpecNode, field_id: str) -> Any:
    if field_id in node.data:
        return node.data[field_id]
    return node.data.get(to_camel(field_id))


def required_field(field_id: str, message: str) -> NodeValidator:
    """Field must have a static value (0 counts) or a connected input."""
    def check(node: SpecNode, edges: Sequence[SpecEdge]) -> ValidationIssue | None:
        value = _data_value(node, field_id)
        present = bool(value) or (value == 0 and not isinstance(value, bool))
        if present or _is_connected(node, edges, field_id):
            return None
        return ValidationIssue(message=message, severity="error", field_id=field_id)
    return check


def required_connection(handle_id: str, message: str) -> NodeValidator:
    """Input handle must have an incoming edge."""
    def check(node: SpecNode, edges: Sequence[SpecEdge]) -> ValidationIssue | None:
        if _is_connected(node, edges, handle_id):
            return None
        return ValidationIssue(message=message, severity="error")
    return check


def combine_validators(*validators: NodeValidator) -> Callable[[SpecNode, Sequence[SpecEdge]], list[ValidationIssue]]:
    """Compose field/connection checks into one function returning every issue."""
    def combined(node: SpecNode, edges: Sequence[SpecEdge]) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        for validator in validators:
            result = validator(node, edges)
            if result is None:
                continue
            if isinstance(result, ValidationIssue):
                issues.append(result)
            else:
                issues.extend(result)
        return issues
    return combined


def check_connection_validity(
    candidate: SpecEdge,
    nodes: Sequence[SpecNode],
    edges: Sequence[SpecEdge],
    registry: NodeRegistry | None = None,
) -> bool:
    """
    Whether ``candidate`` may be added to the graph.

    Rules, in order:
    1. Inputs are single-writer: the target handle must be free
    2. Both nodes and their types must be known
    3. Both handle specs must resolve
    4. The handle types must be compatible
    """
    registry = registry or NodeRegistry.get_instance()

    for edge in edges:
        if edge.target == candidate.target and edge.target_handle == candidate.target_handle:
            return False

    source = next((n for n in nodes if n.id == candidate.source), None)
    target = next((n for n in nodes if n.id == candidate.target), None)
    if source is None or target is None:
        return False
    if registry.get(source.type) is None or registry.get(target.type) is None:
        return False

    source_spec = get_handle_spec(source, candidate.source_handle, "output", nodes, edges, registry)
    target_spec = get_handle_spec(target, candidate.target_handle, "input", nodes, edges, registry)
    if source_spec is None or target_spec is None:
        return False

    return are_types_compatible(source_spec.type, target_spec.type)


@dataclass
class FlowValidationReport:
    """Complete validation report for a flow."""
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def errors(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def issues_by_node(self) -> dict[str, list[ValidationIssue]]:
        grouped: dict[str, list[ValidationIssue]] = {}
        for issue in self.issues:
            if issue.node_id is not None:
                grouped.setdefault(issue.node_id, []).append(issue)
        return grouped

    @property
    def invalid_edge_ids(self) -> list[str]:
        return sorted({i.edge_id for i in self.issues if i.edge_id is not None})

    def format(self) -> str:
        """Format the report as a string."""
        if not self.issues:
            return "✓ Validation passed with no issues"

        lines = []
        if self.errors:
            lines.append(f"Errors ({len(self.errors)}):")
            for issue in self.errors:
                lines.append(f"  {issue}")
        if self.warnings:
            lines.append(f"\nWarnings ({len(self.warnings)}):")
            for issue in self.warnings:
                lines.append(f"  {issue}")

        status = "FAILED" if not self.is_valid else "PASSED with warnings"
        lines.insert(0, f"Validation {status}")
        lines.insert(1, "=" * 50)

        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.is_valid,
            "issues": [i.to_dict() for i in self.issues],
            "invalid_edge_ids": self.invalid_edge_ids,
        }


class FlowValidator:
    """
    Validates flows before execution.

    Checks:
    1. Node types exist and node data matches each type's data schema
    2. Each node's own structural validation (required fields/connections)
    3. Edges reference existing nodes and handles with compatible types
    4. Inputs have a single writer
    5. The graph is acyclic and triggers have no incoming edges
    """

    def __init__(self, registry: NodeRegistry | None = None):
        self.registry = registry or NodeRegistry.get_instance()
        self.issues: list[ValidationIssue] = []

    def validate(self, flow: SpecFlow) -> FlowValidationReport:
        """Run all validations and return a report."""
        self.issues = []

        self._validate_nodes(flow)
        self._validate_edges(flow)
        self._validate_cycles(flow)

        return FlowValidationReport(issues=list(self.issues))

    def _add_error(self, message: str, node_id: str | None = None, field_id: str | None = None,
                   edge_id: str | None = None) -> None:
        self.issues.append(ValidationIssue(
            message=message, severity="error", field_id=field_id, node_id=node_id, edge_id=edge_id
        ))

    def _add_warning(self, message: str, node_id: str | None = None, field_id: str | None = None,
                     edge_id: str | None = None) -> None:
        self.issues.append(ValidationIssue(
            message=message, severity="warning", field_id=field_id, node_id=node_id, edge_id=edge_id
        ))

    def _validate_nodes(self, flow: SpecFlow) -> None:
        seen: set[str] = set()
        for node in flow.nodes:
            if node.id in seen:
                self._add_error(f"Duplicate node id '{node.id}'", node_id=node.id)
            seen.add(node.id)

            definition = self.registry.get(node.type)
            if definition is None:
                available = self.registry.list_types()
                similar = [t for t in available if node.type.split("/")[-1] in t]
                hint = f" (similar: {similar})" if similar else ""
                self._add_error(f"Unknown node type: '{node.type}'{hint}", node_id=node.id)
                continue

            try:
                definition.parse_data(node)
            except ValidationError as e:
                for err in e.errors():
                    loc = ".".join(str(p) for p in err["loc"]) or None
                    self._add_error(f"Invalid data: {err['msg']}", node_id=node.id, field_id=loc)
                continue

            for issue in definition.validate(node, flow.edges):
                self.issues.append(ValidationIssue(
                    message=issue.message,
                    severity=issue.severity,
                    field_id=issue.field_id,
                    node_id=node.id,
                ))

    def _validate_edges(self, flow: SpecFlow) -> None:
        nodes_by_id = {n.id: n for n in flow.nodes}
        writers: dict[tuple[str, str | None], str] = {}

        for edge in flow.edges:
            source = nodes_by_id.get(edge.source)
            target = nodes_by_id.get(edge.target)
            if source is None or target is None:
                missing = edge.source if source is None else edge.target
                self._add_error(f"Edge references missing node '{missing}'", edge_id=edge.id)
                continue

            key = (edge.target, edge.target_handle)
            if key in writers:
                handle = edge.target_handle or "default"
                self._add_error(
                    f"Input '{handle}' already has an incoming edge",
                    node_id=edge.target,
                    edge_id=edge.id,
                )
            else:
                writers[key] = edge.id

            target_def = self.registry.get(target.type)
            if target_def is not None and target_def.is_trigger:
                self._add_error(
                    "Trigger nodes cannot have incoming connections",
                    node_id=target.id,
                    edge_id=edge.id,
                )
                continue

            if self.registry.get(source.type) is None or target_def is None:
                continue

            source_spec = get_handle_spec(source, edge.source_handle, "output", flow.nodes, flow.edges, self.registry)
            target_spec = get_handle_spec(target, edge.target_handle, "input", flow.nodes, flow.edges, self.registry)
            if source_spec is None:
                self._add_warning(
                    f"Unknown output handle '{edge.source_handle}' on {source.type}",
                    node_id=source.id,
                    edge_id=edge.id,
                )
                continue
            if target_spec is None:
                self._add_warning(
                    f"Unknown input handle '{edge.target_handle}' on {target.type}",
                    node_id=target.id,
                    edge_id=edge.id,
                )
                continue
            if not are_types_compatible(source_spec.type, target_spec.type):
                self._add_error(
                    f"Incompatible connection: {source_spec.type.value} -> {target_spec.type.value}",
                    node_id=target.id,
                    field_id=edge.target_handle,
                    edge_id=edge.id,
                )

    def _validate_cycles(self, flow: SpecFlow) -> None:
        node_ids = {n.id for n in flow.nodes}
        in_degree = {n.id: 0 for n in flow.nodes}
        adjacency: dict[str, list[str]] = {n.id: [] for n in flow.nodes}
        for edge in flow.edges:
            if edge.source in node_ids and edge.target in node_ids:
                adjacency[edge.source].append(edge.target)
                in_degree[edge.target] += 1

        queue = [n for n, d in in_degree.items() if d == 0]
        visited = 0
        while queue:
            current = queue.pop()
            visited += 1
            for nxt in adjacency[current]:
                in_degree[nxt] -= 1
                if in_degree[nxt] == 0:
                    queue.append(nxt)

        if visited != len(node_ids):
            cyclic = sorted(n for n, d in in_degree.items() if d > 0)
            self._add_error(f"Flow contains a cycle through nodes: {', '.join(cyclic)}")


def validate_flow(flow: SpecFlow, registry: NodeRegistry | None = None) -> FlowValidationReport:
    """Convenience function to validate a flow."""
    return FlowValidator(registry).validate(flow)
