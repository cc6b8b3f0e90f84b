"""Tests for abort signals and controllers."""

import pytest

from node_flow_engine.core import AbortController, FlowAbortedError, NodeExecutorContext
from tests.helpers import make_flow


class TestAbortSignal:
    def test_starts_clear(self):
        controller = AbortController()
        assert not controller.signal.aborted
        assert controller.signal.reason is None
        controller.signal.raise_if_aborted()

    def test_abort_sets_reason_once(self):
        controller = AbortController()
        controller.abort("first")
        controller.abort("second")
        assert controller.signal.aborted
        assert controller.signal.reason == "first"

    def test_raise_if_aborted_carries_partial_results(self):
        controller = AbortController()
        controller.abort()
        with pytest.raises(FlowAbortedError) as exc:
            controller.signal.raise_if_aborted([1, 2])
        assert str(exc.value) == "Flow execution aborted"
        assert exc.value.partial_results == [1, 2]


class TestContextSignal:
    def _context(self, engine, signal=None):
        return NodeExecutorContext(
            run_id="r",
            flow=make_flow([]),
            dependencies=engine.host,
            engine=engine,
            signal=signal,
        )

    def test_no_signal_never_aborts(self, engine):
        context = self._context(engine)
        assert not context.aborted
        context.raise_if_aborted()

    def test_context_follows_signal(self, engine):
        controller = AbortController()
        context = self._context(engine, controller.signal)
        controller.abort("stop")
        assert context.aborted
        with pytest.raises(FlowAbortedError, match="stop"):
            context.raise_if_aborted()

    def test_variables(self, engine):
        context = self._context(engine)
        context.set_variable("a", 1)
        assert context.get_variable("a") == 1
        assert context.get_variable("missing", "default") == "default"
