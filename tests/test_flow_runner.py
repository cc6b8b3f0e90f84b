"""Tests for the flow store, run lifecycle, history and trigger activation."""

import json

import pytest

from node_flow_engine.core import FlowError, FlowRunner, FlowValidationError, RunStatus
from node_flow_engine.core.events import NODE_END
from tests.helpers import edge, make_flow, node


def two_step_flow(flow_id="steps"):
    return make_flow(
        [node("a", "input/number", value=1), node("b", "utility/math", b=1)],
        [edge("a", "b", "value", "a")],
        flow_id=flow_id,
    )


class TestFlowStore:
    def test_add_and_get(self, runner):
        assert runner.add_flow(two_step_flow()) == "steps"
        assert runner.get_flow("steps").id == "steps"

    def test_add_with_explicit_id(self, runner):
        runner.add_flow({"nodes": [], "edges": []}, flow_id="empty")
        assert "empty" in runner.flows

    def test_add_without_id(self, runner):
        with pytest.raises(FlowError, match="Flow has no id"):
            runner.add_flow({"nodes": []})

    def test_unknown_flow(self, runner):
        with pytest.raises(FlowError, match="Flow not found: nope"):
            runner.get_flow("nope")

    def test_load_directory_skips_bad_files(self, runner, tmp_path):
        (tmp_path / "good.json").write_text(json.dumps({
            "nodes": [{"id": "n", "type": "input/number", "data": {"value": 2}}],
            "edges": [],
        }))
        (tmp_path / "named.json").write_text(json.dumps({"id": "custom", "nodes": []}))
        (tmp_path / "broken.json").write_text("{not json")
        (tmp_path / "notes.txt").write_text("ignored")

        loaded = runner.load_flows_from_directory(tmp_path)
        assert sorted(loaded) == ["custom", "good"]

    def test_load_missing_directory(self, runner, tmp_path):
        assert runner.load_flows_from_directory(tmp_path / "missing") == []


class TestRuns:
    @pytest.mark.asyncio
    async def test_run_records_history(self, runner):
        runner.add_flow(two_step_flow())
        report = await runner.run_flow("steps", run_id="first")
        assert report.success
        assert report.run_id == "first"
        assert report.last_output == {"result": 2}
        assert runner.history[0].report is report
        assert runner.history[0].to_dict()["flow_id"] == "steps"
        assert runner.active_runs() == []

    @pytest.mark.asyncio
    async def test_invalid_flow_never_runs(self, runner):
        runner.add_flow(make_flow([node("r", "logic/run_flow")], flow_id="bad"))
        with pytest.raises(FlowValidationError) as exc:
            await runner.run_flow("bad")
        assert exc.value.issues
        assert runner.history == []

    @pytest.mark.asyncio
    async def test_history_is_capped_newest_first(self, registry, host):
        runner = FlowRunner(host=host, registry=registry, history_limit=2)
        runner.add_flow(two_step_flow())
        for run_id in ("r1", "r2", "r3"):
            await runner.run_flow("steps", run_id=run_id)
        assert [entry.report.run_id for entry in runner.history] == ["r3", "r2"]

        runner.clear_history()
        assert runner.history == []

    @pytest.mark.asyncio
    async def test_abort_in_flight_run(self, runner):
        runner.add_flow(two_step_flow())
        runner.events.on(NODE_END, lambda event: runner.abort_run(event.run_id, "user"))

        report = await runner.run_flow("steps")
        assert report.status is RunStatus.ABORTED
        assert report.executed_node_ids == ["a"]
        assert "user" in report.error.message
        assert runner.history[0].report.status is RunStatus.ABORTED

    def test_abort_unknown_run(self, runner):
        assert runner.abort_run("ghost") is False


def event_flow(flow_id="on_send", event_type="message_sent", extra_nodes=(), extra_edges=()):
    return make_flow(
        [node("t", "trigger/event", event_type=event_type), node("r", "test/record"), *extra_nodes],
        [edge("t", "r", "index", "value"), *extra_edges],
        flow_id=flow_id,
    )


class TestTriggers:
    @pytest.mark.asyncio
    async def test_event_trigger_runs_flow(self, runner, host, recorder):
        runner.add_flow(event_flow())
        assert await runner.reinitialize() == ["on_send"]

        reports = await host.dispatch_event("message_sent", 7)
        assert reports[0].success
        assert recorder.calls[-1]["value"] == 7
        assert runner.history[0].flow_id == "on_send"

    @pytest.mark.asyncio
    async def test_reinitialize_replaces_bindings(self, runner, host):
        runner.add_flow(event_flow())
        await runner.reinitialize()
        await runner.reinitialize()
        assert len(host.listeners["message_sent"]) == 1

        runner.remove_flow("on_send")
        assert await runner.reinitialize() == []
        assert host.listeners["message_sent"] == []

    @pytest.mark.asyncio
    async def test_invalid_flows_are_not_activated(self, runner, host):
        runner.add_flow(event_flow(
            flow_id="broken", event_type="chat_changed", extra_nodes=[node("x", "logic/run_flow")]
        ))
        runner.add_flow(event_flow())

        assert await runner.reinitialize() == ["on_send"]
        assert "chat_changed" not in host.listeners

    @pytest.mark.asyncio
    async def test_disabled_trigger_is_not_bound(self, runner, host):
        flow = event_flow()
        flow.nodes[0].data["disabled"] = True
        runner.add_flow(flow)
        await runner.reinitialize()
        assert host.listeners.get("message_sent", []) == []

    @pytest.mark.asyncio
    async def test_manual_triggers_run_once_each(self, runner, recorder):
        runner.add_flow(make_flow(
            [
                node("m1", "trigger/manual", payload='{"n": 1}'),
                node("m2", "trigger/manual", payload='{"n": 2}'),
                node("r1", "test/record"),
                node("r2", "test/record"),
            ],
            [edge("m1", "r1", None, "main"), edge("m2", "r2", None, "main")],
            flow_id="manual",
        ))
        reports = await runner.run_manual_triggers("manual")
        assert len(reports) == 2
        assert [r.executed_node_ids for r in reports] == [["m1", "r1"], ["m2", "r2"]]
        assert [call["main"]["n"] for call in recorder.calls] == [1, 2]

    @pytest.mark.asyncio
    async def test_event_run_includes_constant_producers(self, runner, host, recorder):
        runner.add_flow(event_flow(
            extra_nodes=[node("s", "input/string", value="hello")],
            extra_edges=[edge("s", "r", "value", "main")],
        ))
        await runner.reinitialize()

        reports = await host.dispatch_event("message_sent", 3)
        assert reports[0].executed_node_ids == ["t", "s", "r"]
        assert recorder.calls[-1] == {"value": 3, "main": "hello"}

    @pytest.mark.asyncio
    async def test_manual_run_includes_constant_producers(self, runner, recorder):
        runner.add_flow(make_flow(
            [
                node("m", "trigger/manual", payload='{"x": 1}'),
                node("r", "test/record"),
                node("s", "input/string", value="hello"),
            ],
            [edge("m", "r", None, "main"), edge("s", "r", "value", "value")],
            flow_id="manual",
        ))
        [report] = await runner.run_manual_triggers("manual")
        assert report.executed_node_ids == ["m", "s", "r"]
        assert recorder.calls == [{"main": {"x": 1}, "value": "hello"}]

    @pytest.mark.asyncio
    async def test_other_trigger_branches_are_left_out(self, runner):
        runner.add_flow(make_flow(
            [
                node("m1", "trigger/manual", payload='{"n": 1}'),
                node("m2", "trigger/manual", payload='{"n": 2}'),
                node("x", "utility/log"),
                node("r", "test/record"),
            ],
            [
                edge("m1", "r", None, "main"),
                edge("m2", "x", None, "main"),
                edge("x", "r", "main", "value"),
            ],
            flow_id="manual",
        ))
        reports = await runner.run_manual_triggers("manual")
        assert reports[0].executed_node_ids == ["m1", "r"]
        assert reports[1].executed_node_ids == ["m2", "x", "r"]

    @pytest.mark.asyncio
    async def test_no_manual_triggers(self, runner):
        runner.add_flow(two_step_flow())
        assert await runner.run_manual_triggers("steps") == []
