"""Tests for For Each loops and loop control."""

import pytest

from node_flow_engine.core import AbortController, ErrorKind, RunStatus
from tests.helpers import edge, make_flow, node


def doubling_body(flow_id="double"):
    """Loop body: result = item * 2."""
    return make_flow(
        [
            node("t", "trigger/for_each"),
            node("m", "utility/math", b=2, operation="multiply"),
        ],
        [edge("t", "m", "item", "a")],
        flow_id=flow_id,
    )


def control_body(control_type, flow_id="control"):
    """Doubles each item; hits ``control_type`` on index 1."""
    return make_flow(
        [
            node("t", "trigger/for_each"),
            node("i", "logic/if", conditions=[
                {"id": "hit", "operator": "equals", "path": "index", "value": 1},
            ]),
            node("m", "utility/math", b=2, operation="multiply"),
            node("c", control_type),
        ],
        [
            edge("t", "i"),
            edge("t", "m", "item", "a"),
            edge("i", "c", "hit", "main"),
        ],
        flow_id=flow_id,
    )


def loop_flow(body_id, result_key="result"):
    return make_flow([node("f", "logic/for_each", flow_id=body_id, result_key=result_key)])


class TestForEach:
    @pytest.mark.asyncio
    async def test_collects_results(self, engine, flows):
        flows["double"] = doubling_body()
        report = await engine.execute_flow(loop_flow("double"), {"array": [1, 2, 3]})
        assert report.success
        assert report.last_output["results"] == [2, 4, 6]
        assert report.last_output["count"] == 3
        assert report.last_output["broken"] is False

    @pytest.mark.asyncio
    async def test_whole_output_without_result_key(self, engine, flows):
        flows["double"] = doubling_body()
        report = await engine.execute_flow(loop_flow("double", result_key=""), {"array": [5]})
        assert report.last_output["results"] == [{"result": 10}]

    @pytest.mark.asyncio
    async def test_array_from_connected_node(self, engine, flows):
        flows["double"] = doubling_body()
        flow = make_flow(
            [
                node("j", "utility/json", rootType="array", items=[
                    {"id": "a", "type": "number", "value": 4},
                    {"id": "b", "type": "number", "value": 8},
                ]),
                node("f", "logic/for_each", flow_id="double", result_key="result"),
            ],
            [edge("j", "f", "result", "array")],
        )
        report = await engine.execute_flow(flow)
        assert report.last_output["results"] == [8, 16]

    @pytest.mark.asyncio
    async def test_empty_array(self, engine, flows):
        flows["double"] = doubling_body()
        report = await engine.execute_flow(loop_flow("double"), {"array": []})
        assert report.last_output["results"] == []
        assert report.last_output["count"] == 0

    @pytest.mark.asyncio
    async def test_non_array_input(self, engine, flows):
        flows["double"] = doubling_body()
        report = await engine.execute_flow(loop_flow("double"), {"array": "nope"})
        assert report.status is RunStatus.ERROR
        assert 'The "array" input must be a valid array.' in report.error.message

    @pytest.mark.asyncio
    async def test_iterations_share_the_run(self, engine, flows, recorder):
        flows["record"] = make_flow(
            [node("t", "trigger/for_each"), node("r", "test/record")],
            [edge("t", "r", "index", "value")],
            flow_id="record",
        )
        report = await engine.execute_flow(loop_flow("record", result_key="value"), {"array": ["a", "b"]})
        assert report.last_output["results"] == [0, 1]
        assert [call["value"] for call in recorder.calls] == [0, 1]


class TestLoopControl:
    @pytest.mark.asyncio
    async def test_break_stops_iteration(self, engine, flows):
        flows["control"] = control_body("logic/break_loop")
        report = await engine.execute_flow(loop_flow("control"), {"array": [1, 2, 3]})
        assert report.success
        assert report.last_output["results"] == [2]
        assert report.last_output["broken"] is True

    @pytest.mark.asyncio
    async def test_continue_skips_item(self, engine, flows):
        flows["control"] = control_body("logic/continue_loop")
        report = await engine.execute_flow(loop_flow("control"), {"array": [1, 2, 3]})
        assert report.success
        assert report.last_output["results"] == [2, 6]
        assert report.last_output["count"] == 2
        assert report.last_output["broken"] is False

    @pytest.mark.asyncio
    async def test_end_flow_in_body_yields_its_value(self, engine, flows):
        flows["ender"] = make_flow(
            [node("t", "trigger/for_each"), node("e", "logic/end_flow")],
            [edge("t", "e", "item", "value")],
            flow_id="ender",
        )
        report = await engine.execute_flow(loop_flow("ender", result_key=""), {"array": ["x", "y"]})
        assert report.last_output["results"] == ["x", "y"]


class TestLoopFailures:
    @pytest.mark.asyncio
    async def test_failing_iteration_reports_index(self, engine, flows):
        flows["double"] = doubling_body()
        report = await engine.execute_flow(loop_flow("double"), {"array": [1, "x", 3]})
        assert report.status is RunStatus.ERROR
        assert report.error.kind is ErrorKind.SUB_FLOW
        assert report.error.index == 1
        assert report.error.node_id == "f"
        assert "failed on item 1" in report.error.message

    @pytest.mark.asyncio
    async def test_missing_body_flow(self, engine):
        report = await engine.execute_flow(loop_flow("nowhere"), {"array": [1]})
        assert report.status is RunStatus.ERROR
        assert "Flow not found: nowhere" in report.error.message

    @pytest.mark.asyncio
    async def test_invalid_body_flow(self, engine, flows):
        flows["broken"] = make_flow([node("r", "logic/run_flow")], flow_id="broken")
        report = await engine.execute_flow(loop_flow("broken"), {"array": [1]})
        assert report.error.kind is ErrorKind.VALIDATION
        assert "Sub-flow 'broken' is invalid" in report.error.message

    @pytest.mark.asyncio
    async def test_abort_keeps_partial_results(self, engine, flows, abort_node):
        flows["abortable"] = make_flow(
            [
                node("t", "trigger/for_each"),
                node("m", "utility/math", b=2, operation="multiply"),
                node("x", "test/abort_at", abort_at=1),
            ],
            [
                edge("t", "m", "item", "a"),
                edge("t", "x", "index", "index"),
                edge("m", "x", "result", "value"),
            ],
            flow_id="abortable",
        )
        controller = AbortController()
        abort_node.controller = controller

        report = await engine.execute_flow(
            loop_flow("abortable"), {"array": [1, 2, 3, 4]}, signal=controller.signal
        )
        assert report.status is RunStatus.ABORTED
        assert report.error.kind is ErrorKind.ABORTED
        assert report.error.details["partial_results"] == [2, 4]
        assert "stopped by test" in report.error.message
