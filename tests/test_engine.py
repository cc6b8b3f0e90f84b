"""Tests for the flow engine's scheduling and result handling."""

import pytest

from node_flow_engine.core import (
    AbortController,
    ErrorKind,
    FlowError,
    NodeResult,
    ResultKind,
    RunOptions,
    RunStatus,
)
from node_flow_engine.core.events import NODE_END, NODE_START, RUN_END, RUN_START
from tests.helpers import edge, make_flow, node


class TestDataFlow:
    @pytest.mark.asyncio
    async def test_linear_flow(self, engine):
        flow = make_flow(
            [
                node("n", "input/number", value=3),
                node("m", "utility/math", b=2, operation="multiply"),
            ],
            [edge("n", "m", "value", "a")],
        )
        report = await engine.execute_flow(flow)
        assert report.status is RunStatus.COMPLETED
        assert report.success
        assert report.executed_node_ids == ["n", "m"]
        assert report.last_output == {"result": 6}
        assert report.error is None

    @pytest.mark.asyncio
    async def test_root_nodes_receive_initial_input(self, engine, recorder):
        flow = make_flow([node("r", "test/record")])
        await engine.execute_flow(flow, {"x": 1})
        assert recorder.calls == [{"x": 1, "main": {"x": 1}}]

    @pytest.mark.asyncio
    async def test_default_handles_merge_whole_output(self, engine, recorder):
        flow = make_flow(
            [node("t", "trigger/manual", payload='{"name": "Ada"}'), node("r", "test/record")],
            [edge("t", "r")],
        )
        await engine.execute_flow(flow)
        assert recorder.calls[0]["name"] == "Ada"
        assert recorder.calls[0]["main"] == {"name": "Ada"}

    @pytest.mark.asyncio
    async def test_non_dict_value_into_default_input(self, engine, recorder):
        flow = make_flow(
            [node("n", "input/number", value=7), node("r", "test/record")],
            [edge("n", "r", "value", None)],
        )
        await engine.execute_flow(flow)
        assert recorder.calls[0] == {"value": 7}

    @pytest.mark.asyncio
    async def test_none_return_passes_main_through(self, engine):
        flow = make_flow([node("l", "utility/log")])
        report = await engine.execute_flow(flow, {"k": "v"})
        assert report.last_output == {"main": {"k": "v"}}

    @pytest.mark.asyncio
    async def test_node_waits_for_all_inputs(self, engine, recorder):
        flow = make_flow(
            [
                node("a", "input/number", value=1),
                node("b", "input/number", value=2),
                node("r", "test/record"),
            ],
            [edge("a", "r", "value", "main"), edge("b", "r", "value", "value")],
        )
        report = await engine.execute_flow(flow)
        assert report.executed_node_ids == ["a", "b", "r"]
        assert recorder.calls == [{"main": 1, "value": 2}]


class TestBranching:
    def _branch_flow(self):
        return make_flow(
            [
                node("i", "logic/if", conditions=[{"id": "yes", "operator": "truthy", "path": "flag"}]),
                node("a", "utility/log"),
                node("b", "utility/log"),
                node("c", "utility/log"),
                node("d", "test/record"),
            ],
            [
                edge("i", "a", "yes", "main"),
                edge("i", "b", "false", "main"),
                edge("b", "c", "main", "main"),
                edge("a", "d", "main", "main"),
                edge("b", "d", "main", "value"),
            ],
        )

    @pytest.mark.asyncio
    async def test_untaken_branch_is_skipped(self, engine, recorder):
        report = await engine.execute_flow(self._branch_flow(), {"flag": True})
        assert report.executed_node_ids == ["i", "a", "d"]
        assert recorder.calls == [{"main": {"flag": True}}]

    @pytest.mark.asyncio
    async def test_false_branch(self, engine, recorder):
        report = await engine.execute_flow(self._branch_flow(), {"flag": False})
        assert report.executed_node_ids == ["i", "b", "c", "d"]
        assert recorder.calls == [{"value": {"flag": False}}]

    @pytest.mark.asyncio
    async def test_confirm_routes_by_answer(self, engine, host):
        host.confirm_answers = [True]
        flow = make_flow(
            [
                node("c", "utility/confirm_user", message="Go?"),
                node("y", "utility/log"),
                node("n", "utility/log"),
            ],
            [edge("c", "y", "true", "main"), edge("c", "n", "false", "main")],
        )
        report = await engine.execute_flow(flow)
        assert report.executed_node_ids == ["c", "y"]

    @pytest.mark.asyncio
    async def test_disabled_node_and_downstream_skipped(self, engine):
        flow = make_flow(
            [
                node("n", "input/number", value=1),
                node("m", "utility/math", b=1, disabled=True),
                node("l", "utility/log"),
            ],
            [edge("n", "m", "value", "a"), edge("m", "l", "result", "value")],
        )
        report = await engine.execute_flow(flow)
        assert report.executed_node_ids == ["n"]
        assert report.success


class TestFailures:
    @pytest.mark.asyncio
    async def test_node_error_stops_run(self, engine):
        flow = make_flow(
            [node("f", "test/fail"), node("l", "utility/log")],
            [edge("f", "l", "main", "main")],
        )
        report = await engine.execute_flow(flow)
        assert report.status is RunStatus.ERROR
        assert not report.success
        assert report.error.kind is ErrorKind.NODE
        assert report.error.node_id == "f"
        assert "boom" in report.error.message
        assert report.executed_node_ids == ["f"]
        assert report.executed_nodes[0].status == "error"

    @pytest.mark.asyncio
    async def test_bad_node_data_is_rejected_before_execute(self, engine, recorder):
        flow = make_flow(
            [node("n", "input/number", value="not a number"), node("r", "test/record")],
            [edge("n", "r", "value", "value")],
        )
        report = await engine.execute_flow(flow)
        assert report.status is RunStatus.ERROR
        assert report.error.kind is ErrorKind.VALIDATION
        assert report.error.node_id == "n"
        assert "Invalid data for node n" in report.error.message
        assert recorder.calls == []

    @pytest.mark.asyncio
    async def test_unknown_type_at_run_time(self, engine):
        report = await engine.execute_flow(make_flow([node("x", "nope/nope")]))
        assert report.status is RunStatus.ERROR
        assert "Unknown node type: nope/nope" in report.error.message

    @pytest.mark.asyncio
    async def test_invalid_return_value(self, engine):
        report = await engine.execute_flow(make_flow([node("l", "test/list")]))
        assert report.status is RunStatus.ERROR
        assert "expected a dict of outputs" in report.error.message

    @pytest.mark.asyncio
    async def test_loop_control_outside_loop(self, engine):
        report = await engine.execute_flow(make_flow([node("b", "logic/break_loop")]))
        assert report.status is RunStatus.INVALID_CONTROL
        assert report.error.kind is ErrorKind.INVALID_CONTROL
        assert report.error.message == "Break Loop reached outside of a loop"

    @pytest.mark.asyncio
    async def test_aborted_before_first_step(self, engine):
        controller = AbortController()
        controller.abort("cancelled")
        report = await engine.execute_flow(make_flow([node("l", "utility/log")]), signal=controller.signal)
        assert report.status is RunStatus.ABORTED
        assert report.error.kind is ErrorKind.ABORTED
        assert "cancelled" in report.error.message
        assert report.executed_nodes == []


class TestEndFlow:
    @pytest.mark.asyncio
    async def test_end_flow_value_becomes_last_output(self, engine):
        flow = make_flow(
            [
                node("n", "input/number", value=5),
                node("e", "logic/end_flow"),
                node("l", "utility/log"),
            ],
            [edge("n", "e", "value", "value"), edge("n", "l", "value", "value")],
        )
        report = await engine.execute_flow(flow)
        assert report.terminated
        assert report.success
        assert report.last_output == 5
        assert report.executed_node_ids == ["n", "e"]

    @pytest.mark.asyncio
    async def test_end_flow_without_value_keeps_last_output(self, engine):
        flow = make_flow(
            [node("n", "input/number", value=5), node("e", "logic/end_flow")],
            [edge("n", "e", "value", "main")],
        )
        report = await engine.execute_flow(flow)
        assert report.terminated
        assert report.last_output == {"value": 5}


class TestPartialRuns:
    def _chain(self):
        return make_flow(
            [
                node("a", "input/number", value=1),
                node("b", "utility/math", b=1),
                node("c", "utility/log"),
            ],
            [edge("a", "b", "value", "a"), edge("b", "c", "result", "value")],
        )

    @pytest.mark.asyncio
    async def test_run_from_node(self, engine):
        report = await engine.execute_flow(self._chain(), {"a": 10}, options=RunOptions(start_node_id="b"))
        assert report.executed_node_ids == ["b", "c"]
        assert report.executed_nodes[0].output == {"result": 11}

    @pytest.mark.asyncio
    async def test_run_to_node(self, engine):
        report = await engine.execute_flow(self._chain(), options=RunOptions(end_node_id="b"))
        assert report.executed_node_ids == ["a", "b"]
        assert report.last_output == {"result": 2}

    @pytest.mark.asyncio
    async def test_unknown_start_node(self, engine):
        with pytest.raises(FlowError, match="Start node not found"):
            await engine.execute_flow(self._chain(), options=RunOptions(start_node_id="zzz"))

    @pytest.mark.asyncio
    async def test_unknown_trigger_node(self, engine):
        with pytest.raises(FlowError, match="Trigger node not found"):
            await engine.execute_flow(self._chain(), options=RunOptions(trigger_node_id="zzz"))

    @pytest.mark.asyncio
    async def test_trigger_scope_seeds_only_the_trigger(self, engine, recorder):
        flow = make_flow(
            [node("t", "test/record"), node("n", "input/number", value=5), node("m", "utility/math")],
            [edge("t", "m", "value", "a"), edge("n", "m", "value", "b")],
        )
        report = await engine.execute_flow(flow, {"value": 2}, options=RunOptions(trigger_node_id="t"))
        assert recorder.calls == [{"value": 2, "main": {"value": 2}}]
        assert report.last_output == {"result": 7}


class TestEvents:
    @pytest.mark.asyncio
    async def test_progress_events(self, engine):
        seen = []
        for name in (RUN_START, NODE_START, NODE_END, RUN_END):
            engine.events.on(name, lambda event, name=name: seen.append((name, event)))

        flow = make_flow([node("n", "input/number", value=2)])
        report = await engine.execute_flow(flow, run_id="run-1")

        assert [name for name, _ in seen] == [RUN_START, NODE_START, NODE_END, RUN_END]
        node_end = seen[2][1]
        assert node_end.node_id == "n"
        assert node_end.output == {"value": 2}
        assert seen[3][1].status == "completed"
        assert report.run_id == "run-1"

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_run(self, engine):
        async def listener(event):
            raise RuntimeError("listener failed")

        engine.events.on(NODE_END, listener)
        report = await engine.execute_flow(make_flow([node("n", "input/number")]))
        assert report.success


class TestNodeResult:
    def test_coerce(self):
        assert NodeResult.coerce(None).kind is ResultKind.PASSTHROUGH
        assert NodeResult.coerce({"a": 1}).outputs == {"a": 1}
        end = NodeResult.end_flow()
        assert NodeResult.coerce(end) is end
        assert not end.has_value
        with pytest.raises(TypeError):
            NodeResult.coerce([1])

    def test_loop_control_flags(self):
        assert NodeResult.break_loop().is_loop_control
        assert NodeResult.continue_loop().is_loop_control
        assert not NodeResult.end_flow(None).is_loop_control
        assert NodeResult.end_flow(None).has_value

    @pytest.mark.asyncio
    async def test_report_to_dict(self, engine):
        report = await engine.execute_flow(make_flow([node("n", "input/number", value=1)]), flow_id="f")
        data = report.to_dict()
        assert data["flow_id"] == "f"
        assert data["status"] == "completed"
        assert data["executed_nodes"][0]["node_id"] == "n"
        assert data["error"] is None
