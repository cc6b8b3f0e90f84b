"""Flow execution engine."""

from __future__ import annotations

import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from pydantic import ValidationError

from .cancellation import AbortSignal
from .context import NodeExecutorContext
from .errors import (
    ErrorKind,
    FlowAbortedError,
    FlowDepthExceededError,
    FlowError,
    FlowValidationError,
    RunError,
    SubFlowError,
)
from .events import (
    NODE_END,
    NODE_START,
    RUN_END,
    RUN_START,
    EventEmitter,
    NodeEndEvent,
    NodeStartEvent,
    RunEndEvent,
    RunStartEvent,
)
from .flow import SpecEdge, SpecFlow, SpecNode
from .host import HeadlessHost, HostDependencies
from .registry import NodeRegistry
from .results import NodeResult, ResultKind

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10

FlowResolver = Callable[[str], "SpecFlow | None"]


class RunStatus(str, Enum):
    COMPLETED = "completed"
    ERROR = "error"
    ABORTED = "aborted"
    INVALID_CONTROL = "invalid_control"


@dataclass
class NodeReport:
    """One executed node step."""
    node_id: str
    type: str
    input: dict[str, Any] = field(default_factory=dict)
    output: Any = None
    status: str = "completed"  # "completed", "error", "aborted", "control"
    error: str | None = None
    duration_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "type": self.type,
            "input": self.input,
            "output": self.output,
            "status": self.status,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class RunOptions:
    """
    Limits a run to part of the flow.

    ``start_node_id``/``end_node_id`` are "run from here" and "run to here".
    ``trigger_node_id`` runs what one trigger drives: its downstream nodes
    plus the producers feeding them, with only the trigger seeded by the
    initial input. Other triggers and the nodes only they reach are left out.
    """
    start_node_id: str | None = None
    end_node_id: str | None = None
    trigger_node_id: str | None = None


@dataclass
class ExecutionReport:
    """Result of running a flow or sub-flow."""
    run_id: str
    flow_id: str | None = None
    status: RunStatus = RunStatus.COMPLETED
    executed_nodes: list[NodeReport] = field(default_factory=list)
    last_output: Any = None
    error: RunError | None = None
    control: ResultKind | None = None  # BREAK_LOOP / CONTINUE_LOOP inside a loop iteration
    terminated: bool = False  # An End Flow node stopped the run
    duration_seconds: float = 0.0
    depth: int = 0

    @property
    def success(self) -> bool:
        return self.status is RunStatus.COMPLETED

    @property
    def executed_node_ids(self) -> list[str]:
        return [n.node_id for n in self.executed_nodes]

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "flow_id": self.flow_id,
            "status": self.status.value,
            "executed_nodes": [n.to_dict() for n in self.executed_nodes],
            "last_output": self.last_output,
            "error": self.error.to_dict() if self.error else None,
            "control": self.control.value if self.control else None,
            "terminated": self.terminated,
            "duration_seconds": self.duration_seconds,
        }


class _RunState:
    """Scheduler bookkeeping for one run: edge states and the ready queue."""

    def __init__(self, flow: SpecFlow):
        self.nodes: dict[str, SpecNode] = {n.id: n for n in flow.nodes}
        self.incoming: dict[str, list[SpecEdge]] = {n.id: [] for n in flow.nodes}
        self.outgoing: dict[str, list[SpecEdge]] = {n.id: [] for n in flow.nodes}
        for edge in flow.edges:
            if edge.source in self.nodes and edge.target in self.nodes:
                self.incoming[edge.target].append(edge)
                self.outgoing[edge.source].append(edge)

        # edge id -> True (fired) / False (dead); absent = not yet resolved
        self.edge_state: dict[str, bool] = {}
        self.outputs: dict[str, dict[str, Any]] = {}
        self.finished: set[str] = set()
        self.queued: set[str] = set()
        self.ready: deque[str] = deque()

        for node in flow.nodes:
            if not self.incoming[node.id]:
                self.ready.append(node.id)
                self.queued.add(node.id)

    def resolve_outgoing(self, node_id: str, fired: list[SpecEdge]) -> None:
        """Mark a finished node's outgoing edges and wake up its targets."""
        self.finished.add(node_id)
        fired_ids = {e.id for e in fired}
        pending = []
        for edge in self.outgoing[node_id]:
            self.edge_state[edge.id] = edge.id in fired_ids
            pending.append(edge.target)
        self._wake(pending)

    def skip(self, node_id: str) -> None:
        self.resolve_outgoing(node_id, [])

    def _wake(self, candidates: list[str]) -> None:
        worklist = list(candidates)
        while worklist:
            target = worklist.pop(0)
            if target in self.finished or target in self.queued:
                continue
            incoming = self.incoming[target]
            if not all(e.id in self.edge_state for e in incoming):
                continue
            if any(self.edge_state[e.id] for e in incoming):
                self.ready.append(target)
                self.queued.add(target)
            else:
                # Every producer was skipped or branched away: skip this one too
                self.finished.add(target)
                for edge in self.outgoing[target]:
                    self.edge_state[edge.id] = False
                    worklist.append(edge.target)

    def edge_value(self, edge: SpecEdge) -> Any:
        outputs = self.outputs.get(edge.source, {})
        if edge.source_handle is None:
            return outputs
        return outputs.get(edge.source_handle)


class FlowEngine:
    """
    Interprets flows one node step at a time.

    The engine is blind to concrete node types. For each ready node it:

    1. Builds the input from fired incoming edges (or the run's initial input)
    2. Calls the definition's execute() through the registry
    3. Interprets the NodeResult (data, passthrough, or a control outcome)
    4. Asks the definition which outgoing edges fire

    A node becomes ready once every incoming edge is resolved and at least
    one of them fired; nodes whose inputs all went dead are skipped, which
    is how untaken branches are pruned.
    """

    def __init__(
        self,
        host: HostDependencies | None = None,
        registry: NodeRegistry | None = None,
        events: EventEmitter | None = None,
        flow_resolver: FlowResolver | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ):
        self.host = host or HeadlessHost()
        self.registry = registry or NodeRegistry.get_instance()
        self.events = events or EventEmitter()
        self.flow_resolver = flow_resolver
        self.max_depth = max_depth

    async def execute_flow(
        self,
        flow: SpecFlow,
        initial_input: dict[str, Any] | None = None,
        *,
        flow_id: str | None = None,
        run_id: str | None = None,
        options: RunOptions | None = None,
        depth: int = 0,
        execution_path: list[str] | None = None,
        execution_variables: dict[str, Any] | None = None,
        signal: AbortSignal | None = None,
        in_loop: bool = False,
    ) -> ExecutionReport:
        """
        Run a flow to completion and return its report.

        Node failures never raise out of this method; they end the run and
        are recorded on ExecutionReport.error.

        Args:
            flow: The flow to run
            initial_input: Input seeded into every root node
            flow_id: Identifier used in events and recursion tracking
            run_id: Shared by nested runs; generated for top-level runs
            options: Start/end node restriction
            depth: Sub-flow nesting level (0 = top level)
            execution_path: Flow ids of the enclosing runs
            execution_variables: Run-tree variable store (shared by reference)
            signal: Cooperative cancellation signal
            in_loop: Whether Break/Continue are allowed to end this run
        """
        initial_input = dict(initial_input or {})
        flow_id = flow_id or flow.id
        run_id = run_id or str(uuid.uuid4())
        if execution_path is None:
            execution_path = [flow_id] if flow_id else []
        if execution_variables is None:
            execution_variables = {}

        flow = self._restrict(flow, options)

        context = NodeExecutorContext(
            run_id=run_id,
            flow=flow,
            dependencies=self.host,
            engine=self,
            flow_id=flow_id,
            execution_variables=execution_variables,
            depth=depth,
            execution_path=list(execution_path),
            signal=signal,
            in_loop=in_loop,
        )
        report = ExecutionReport(run_id=run_id, flow_id=flow_id, depth=depth)
        start_time = time.time()

        if depth == 0:
            logger.info(f"Run {run_id}: starting flow '{flow_id}'")
            await self.events.emit(RUN_START, RunStartEvent(run_id, flow_id, initial_input))

        seed_id = options.trigger_node_id if options else None
        await self._run(flow, initial_input, context, report, seed_id)

        report.duration_seconds = time.time() - start_time

        if depth == 0:
            if report.error:
                logger.error(
                    f"Run {run_id}: {report.status.value} at node "
                    f"'{report.error.node_id}': {report.error.message}"
                )
            else:
                logger.info(
                    f"Run {run_id}: {report.status.value} "
                    f"({len(report.executed_nodes)} nodes, {report.duration_seconds:.2f}s)"
                )
            await self.events.emit(RUN_END, RunEndEvent(
                run_id=run_id,
                flow_id=flow_id,
                status=report.status.value,
                executed_node_ids=report.executed_node_ids,
                error=report.error.to_dict() if report.error else None,
                duration_seconds=report.duration_seconds,
            ))

        return report

    def _restrict(self, flow: SpecFlow, options: RunOptions | None) -> SpecFlow:
        if options is None or (
            options.start_node_id is None
            and options.end_node_id is None
            and options.trigger_node_id is None
        ):
            return flow

        keep = {n.id for n in flow.nodes}
        if options.trigger_node_id is not None:
            if flow.get_node(options.trigger_node_id) is None:
                raise FlowError(f"Trigger node not found: {options.trigger_node_id}")
            keep &= self._trigger_scope(flow, options.trigger_node_id)
        if options.start_node_id is not None:
            if flow.get_node(options.start_node_id) is None:
                raise FlowError(f"Start node not found: {options.start_node_id}")
            keep &= flow.descendants(options.start_node_id)
        if options.end_node_id is not None:
            if flow.get_node(options.end_node_id) is None:
                raise FlowError(f"End node not found: {options.end_node_id}")
            keep &= flow.ancestors(options.end_node_id)
        return flow.subgraph(keep)

    def _trigger_scope(self, flow: SpecFlow, trigger_id: str) -> set[str]:
        downstream = flow.descendants(trigger_id)
        scope = set(downstream)
        for node_id in downstream:
            scope |= flow.ancestors(node_id)

        for other in flow.nodes:
            if other.id == trigger_id:
                continue
            definition = self.registry.get(other.type)
            if definition is not None and definition.is_trigger:
                scope -= flow.descendants(other.id) - downstream
        return scope

    def _build_input(
        self,
        node: SpecNode,
        state: _RunState,
        initial_input: dict[str, Any],
        seed_id: str | None = None,
    ) -> dict[str, Any]:
        incoming = state.incoming[node.id]
        node_input: dict[str, Any] = {}

        if not incoming:
            if seed_id is not None and node.id != seed_id:
                return node_input
            node_input.update(initial_input)
            node_input.setdefault("main", initial_input)
            return node_input

        for edge in incoming:
            if not state.edge_state.get(edge.id):
                continue
            value = state.edge_value(edge)
            if edge.target_handle is None:
                if isinstance(value, dict):
                    node_input.update(value)
                else:
                    node_input["value"] = value
            else:
                node_input[edge.target_handle] = value
        return node_input

    async def _run(
        self,
        flow: SpecFlow,
        initial_input: dict[str, Any],
        context: NodeExecutorContext,
        report: ExecutionReport,
        seed_id: str | None = None,
    ) -> None:
        state = _RunState(flow)

        while state.ready:
            if context.aborted:
                report.status = RunStatus.ABORTED
                report.error = RunError(
                    node_id=None,
                    message=f"Flow execution aborted: {context.signal.reason}"
                    if context.signal.reason else "Flow execution aborted",
                    kind=ErrorKind.ABORTED,
                )
                return

            node_id = state.ready.popleft()
            node = state.nodes[node_id]

            if node.disabled:
                logger.debug(f"Skipping disabled node {node_id}")
                state.skip(node_id)
                continue

            node_input = self._build_input(node, state, initial_input, seed_id)
            stop = await self._step(node, node_input, state, context, report)
            if stop:
                return

    async def _step(
        self,
        node: SpecNode,
        node_input: dict[str, Any],
        state: _RunState,
        context: NodeExecutorContext,
        report: ExecutionReport,
    ) -> bool:
        """Run one node. Returns True when the run must stop."""
        await self.events.emit(NODE_START, NodeStartEvent(
            run_id=context.run_id,
            flow_id=context.flow_id,
            node_id=node.id,
            node_type=node.type,
            depth=context.depth,
        ))
        logger.debug(f"Executing node {node.id} ({node.type})")
        step_start = time.time()

        try:
            definition = self.registry.require(node.type)
            try:
                definition.parse_data(node)
            except ValidationError as e:
                raise FlowValidationError(f"Invalid data for node {node.id} ({node.type}): {e}") from e
            result = NodeResult.coerce(await definition.execute(node, node_input, context))
        except Exception as e:
            duration_ms = (time.time() - step_start) * 1000
            error = self._run_error_for(node, e)
            status = "aborted" if error.kind is ErrorKind.ABORTED else "error"
            report.executed_nodes.append(NodeReport(
                node_id=node.id,
                type=node.type,
                input=node_input,
                status=status,
                error=str(e),
                duration_ms=duration_ms,
            ))
            report.error = error
            report.status = RunStatus.ABORTED if error.kind is ErrorKind.ABORTED else RunStatus.ERROR
            await self._emit_node_end(context, node, node_input, None, status, str(e), duration_ms)
            return True

        duration_ms = (time.time() - step_start) * 1000

        if result.is_loop_control:
            report.executed_nodes.append(NodeReport(
                node_id=node.id,
                type=node.type,
                input=node_input,
                status="control",
                duration_ms=duration_ms,
            ))
            await self._emit_node_end(context, node, node_input, None, "completed", None, duration_ms)
            if context.in_loop:
                report.control = result.kind
                return True
            label = "Break Loop" if result.kind is ResultKind.BREAK_LOOP else "Continue Loop"
            report.status = RunStatus.INVALID_CONTROL
            report.error = RunError(
                node_id=node.id,
                message=f"{label} reached outside of a loop",
                kind=ErrorKind.INVALID_CONTROL,
                node_type=node.type,
            )
            return True

        if result.kind is ResultKind.END_FLOW:
            output = {"value": result.value} if result.has_value else {}
            report.executed_nodes.append(NodeReport(
                node_id=node.id,
                type=node.type,
                input=node_input,
                output=output,
                duration_ms=duration_ms,
            ))
            if result.has_value:
                report.last_output = result.value
            report.terminated = True
            await self._emit_node_end(context, node, node_input, output, "completed", None, duration_ms)
            return True

        if result.kind is ResultKind.PASSTHROUGH:
            outputs = {"main": node_input.get("main")}
        else:
            outputs = result.outputs

        state.outputs[node.id] = outputs
        report.executed_nodes.append(NodeReport(
            node_id=node.id,
            type=node.type,
            input=node_input,
            output=outputs,
            duration_ms=duration_ms,
        ))
        report.last_output = outputs
        await self._emit_node_end(context, node, node_input, outputs, "completed", None, duration_ms)

        outgoing = state.outgoing[node.id]
        fired = definition.determine_edges_to_follow(node, outputs, outgoing) if outgoing else []
        state.resolve_outgoing(node.id, fired)
        return False

    def _run_error_for(self, node: SpecNode, exc: Exception) -> RunError:
        if isinstance(exc, FlowAbortedError):
            return RunError(
                node_id=node.id,
                message=str(exc),
                kind=ErrorKind.ABORTED,
                node_type=node.type,
                details={"partial_results": exc.partial_results},
            )
        if isinstance(exc, FlowDepthExceededError):
            return RunError(node.id, str(exc), ErrorKind.DEPTH_EXCEEDED, node_type=node.type)
        if isinstance(exc, SubFlowError):
            return RunError(node.id, str(exc), ErrorKind.SUB_FLOW, index=exc.index, node_type=node.type)
        if isinstance(exc, FlowValidationError):
            return RunError(node.id, str(exc), ErrorKind.VALIDATION, node_type=node.type)
        logger.debug(f"Node {node.id} ({node.type}) raised", exc_info=exc)
        return RunError(
            node_id=node.id,
            message=f"Execution failed at node {node.id} ({node.type}): {exc}",
            kind=ErrorKind.NODE,
            node_type=node.type,
        )

    async def _emit_node_end(
        self,
        context: NodeExecutorContext,
        node: SpecNode,
        node_input: dict[str, Any],
        output: Any,
        status: str,
        error: str | None,
        duration_ms: float,
    ) -> None:
        await self.events.emit(NODE_END, NodeEndEvent(
            run_id=context.run_id,
            flow_id=context.flow_id,
            node_id=node.id,
            node_type=node.type,
            input=node_input,
            output=output,
            status=status,
            error=error,
            duration_ms=duration_ms,
            depth=context.depth,
        ))

    def resolve_flow(self, flow_id: str) -> SpecFlow:
        flow = self.flow_resolver(flow_id) if self.flow_resolver else None
        if flow is None:
            raise FlowError(f"Flow not found: {flow_id}")
        return flow

    async def execute_sub_flow(
        self,
        parent: NodeExecutorContext,
        flow_id: str,
        input: dict[str, Any],
        loop: bool = False,
    ) -> ExecutionReport:
        """
        Run ``flow_id`` nested inside ``parent``'s run.

        Raises:
            FlowDepthExceededError: Nesting would pass max_depth
            FlowError: The flow id cannot be resolved
            FlowValidationError: The sub-flow has error-severity issues
        """
        from .validation import validate_flow

        depth = parent.depth + 1
        path = parent.execution_path + [flow_id]
        if depth > self.max_depth:
            raise FlowDepthExceededError(depth, self.max_depth, path)

        flow = self.resolve_flow(flow_id)
        validation = validate_flow(flow, self.registry)
        if not validation.is_valid:
            raise FlowValidationError(
                f"Sub-flow '{flow_id}' is invalid: "
                + "; ".join(i.message for i in validation.errors),
                validation.errors,
            )

        parent.raise_if_aborted()
        return await self.execute_flow(
            flow,
            input,
            flow_id=flow_id,
            run_id=parent.run_id,
            depth=depth,
            execution_path=path,
            execution_variables=parent.execution_variables,
            signal=parent.signal,
            in_loop=loop,
        )
