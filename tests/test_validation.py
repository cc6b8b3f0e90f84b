"""Tests for pre-run flow validation and connection checks."""

from node_flow_engine.core import (
    FlowValidator,
    SpecEdge,
    ValidationIssue,
    check_connection_validity,
    combine_validators,
    required_connection,
    required_field,
    validate_flow,
)
from tests.helpers import edge, make_flow, node


def _messages(report):
    return [issue.message for issue in report.issues]


class TestFlowValidator:
    def test_valid_flow(self, registry):
        flow = make_flow(
            [node("n", "input/number", value=3), node("m", "utility/math", b=2)],
            [edge("n", "m", "value", "a")],
        )
        report = validate_flow(flow, registry)
        assert report.is_valid
        assert report.issues == []
        assert "passed" in report.format()

    def test_validation_is_repeatable(self, registry):
        flow = make_flow(
            [
                node("x", "utility/does_not_exist"),
                node("m", "utility/math", operation="power"),
                node("b", "input/boolean"),
                node("r", "logic/run_flow"),
            ],
            [edge("b", "m", "value", "a")],
        )
        before = flow.model_dump()
        first = validate_flow(flow, registry)
        second = validate_flow(flow, registry)
        assert first.issues
        assert first.issues == second.issues
        assert flow.model_dump() == before

    def test_unknown_node_type(self, registry):
        report = validate_flow(make_flow([node("x", "utility/does_not_exist")]), registry)
        assert not report.is_valid
        assert report.errors[0].node_id == "x"
        assert "Unknown node type" in report.errors[0].message

    def test_invalid_node_data(self, registry):
        report = validate_flow(make_flow([node("m", "utility/math", operation="power")]), registry)
        assert not report.is_valid
        issue = report.errors[0]
        assert issue.node_id == "m"
        assert issue.field_id == "operation"
        assert issue.message.startswith("Invalid data")

    def test_missing_required_field(self, registry):
        report = validate_flow(make_flow([node("r", "logic/run_flow")]), registry)
        assert not report.is_valid
        assert report.errors[0].field_id == "flow_id"
        assert report.errors[0].node_id == "r"

    def test_required_field_satisfied_by_connection(self, registry):
        flow = make_flow(
            [node("s", "input/string", value="child"), node("r", "logic/run_flow")],
            [edge("s", "r", "value", "flow_id")],
        )
        assert validate_flow(flow, registry).is_valid

    def test_incompatible_types_mark_the_edge(self, registry):
        flow = make_flow(
            [node("b", "input/boolean"), node("m", "utility/math")],
            [edge("b", "m", "value", "a")],
        )
        report = validate_flow(flow, registry)
        assert not report.is_valid
        assert "Incompatible connection: boolean -> number" in _messages(report)
        assert report.invalid_edge_ids == [flow.edges[0].id]

    def test_string_like_types_validate(self, registry):
        flow = make_flow(
            [node("s", "input/string", value="p1"), node("c", "messaging/create_messages")],
            [edge("s", "c", "value", "profile_id")],
        )
        assert validate_flow(flow, registry).is_valid

    def test_single_writer_per_input(self, registry):
        flow = make_flow(
            [node("n1", "input/number"), node("n2", "input/number"), node("m", "utility/math")],
            [edge("n1", "m", "value", "a"), edge("n2", "m", "value", "a")],
        )
        report = validate_flow(flow, registry)
        assert not report.is_valid
        assert "Input 'a' already has an incoming edge" in _messages(report)

    def test_trigger_with_incoming_edge(self, registry):
        flow = make_flow(
            [node("n", "input/number"), node("t", "trigger/manual")],
            [edge("n", "t")],
        )
        report = validate_flow(flow, registry)
        assert "Trigger nodes cannot have incoming connections" in _messages(report)

    def test_edge_to_missing_node(self, registry):
        flow = make_flow([node("n", "input/number")], [edge("n", "ghost", "value", "a")])
        report = validate_flow(flow, registry)
        assert "Edge references missing node 'ghost'" in _messages(report)

    def test_unknown_handle_is_a_warning(self, registry):
        flow = make_flow(
            [node("n", "input/number"), node("l", "utility/log")],
            [edge("n", "l", "value", "nonexistent")],
        )
        report = validate_flow(flow, registry)
        assert report.is_valid
        assert len(report.warnings) == 1
        assert "PASSED with warnings" in report.format()

    def test_cycle(self, registry):
        flow = make_flow(
            [node("a", "utility/log"), node("b", "utility/log")],
            [edge("a", "b", "main", "main"), edge("b", "a", "main", "main")],
        )
        report = validate_flow(flow, registry)
        assert not report.is_valid
        assert any("cycle" in m for m in _messages(report))

    def test_duplicate_node_ids(self, registry):
        flow = make_flow([node("a", "utility/log"), node("a", "utility/log")])
        assert "Duplicate node id 'a'" in _messages(validate_flow(flow, registry))

    def test_reports_every_issue(self, registry):
        flow = make_flow([node("r", "logic/run_flow"), node("x", "nope/nope")])
        report = FlowValidator(registry).validate(flow)
        assert len(report.errors) == 2
        assert set(report.issues_by_node) == {"r", "x"}

    def test_to_dict(self, registry):
        report = validate_flow(make_flow([node("r", "logic/run_flow")]), registry)
        data = report.to_dict()
        assert data["valid"] is False
        assert data["issues"][0]["severity"] == "error"
        assert data["invalid_edge_ids"] == []

    def test_node_specific_checks(self, registry):
        flow = make_flow([
            node("i", "logic/if", conditions=[{"id": "false"}]),
            node("j", "utility/json", items=[
                {"id": "1", "key": "a"},
                {"id": "2", "key": "a"},
            ]),
            node("t", "trigger/manual", payload="{not json"),
        ])
        messages = _messages(validate_flow(flow, registry))
        assert "Condition id 'false' is reserved or duplicated." in messages
        assert 'Duplicate key found: "a".' in messages
        assert any(m.startswith("Invalid JSON payload") for m in messages)


class TestNodeValidators:
    def test_required_field_accepts_zero_and_camel_case(self):
        check = required_field("max_tokens", "Max tokens is required.")
        assert check(make_flow([node("n", "x", maxTokens=0)]).nodes[0], []) is None
        issue = check(make_flow([node("n", "x", maxTokens="")]).nodes[0], [])
        assert issue.field_id == "max_tokens"

    def test_required_field_rejects_false(self):
        check = required_field("flag", "Flag is required.")
        assert check(make_flow([node("n", "x", flag=False)]).nodes[0], []) is not None

    def test_combine_validators(self):
        combined = combine_validators(
            required_field("a", "A is required."),
            required_connection("b", "B must be connected."),
            lambda n, e: [ValidationIssue("custom", severity="warning")],
        )
        issues = combined(make_flow([node("n", "x")]).nodes[0], [])
        assert [i.message for i in issues] == ["A is required.", "B must be connected.", "custom"]


class TestConnectionValidity:
    def _graph(self):
        return make_flow(
            [node("n", "input/number"), node("b", "input/boolean"), node("m", "utility/math")],
            [edge("n", "m", "value", "a")],
        )

    def _check(self, flow, registry, source, source_handle, target, target_handle):
        candidate = SpecEdge(
            source=source, source_handle=source_handle, target=target, target_handle=target_handle
        )
        return check_connection_validity(candidate, flow.nodes, flow.edges, registry)

    def test_free_compatible_input(self, registry):
        assert self._check(self._graph(), registry, "n", "value", "m", "b")

    def test_occupied_input(self, registry):
        assert not self._check(self._graph(), registry, "n", "value", "m", "a")

    def test_incompatible_types(self, registry):
        assert not self._check(self._graph(), registry, "b", "value", "m", "b")

    def test_unknown_handle_or_node(self, registry):
        flow = self._graph()
        assert not self._check(flow, registry, "n", "nope", "m", "b")
        assert not self._check(flow, registry, "ghost", "value", "m", "b")
