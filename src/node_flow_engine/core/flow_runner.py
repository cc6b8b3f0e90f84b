"""Flow store, run lifecycle, abort handling and run history."""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from .cancellation import AbortController
from .engine import DEFAULT_MAX_DEPTH, ExecutionReport, FlowEngine, RunOptions
from .errors import FlowError, FlowValidationError
from .events import EventEmitter
from .flow import SpecFlow, load_flow
from .host import HostDependencies
from .registry import NodeRegistry
from .validation import FlowValidationReport, validate_flow

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50
MANUAL_TRIGGER_TYPE = "trigger/manual"


@dataclass
class HistoryEntry:
    """A finished top-level run."""
    flow_id: str
    timestamp: datetime
    report: ExecutionReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "flow_id": self.flow_id,
            "timestamp": self.timestamp.isoformat(),
            **self.report.to_dict(),
        }


class FlowRunner:
    """
    Owns the set of known flows and everything around a run.

    - Stores flows by id and resolves sub-flow references for the engine
    - Validates before every run; invalid flows never start
    - Tracks in-flight runs so they can be aborted by run id
    - Keeps a bounded, newest-first history of finished runs
    - Activates trigger nodes that bind to host events (reinitialize)
    """

    def __init__(
        self,
        host: HostDependencies | None = None,
        registry: NodeRegistry | None = None,
        events: EventEmitter | None = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.flows: dict[str, SpecFlow] = {}
        self.registry = registry or NodeRegistry.get_instance()
        self.engine = FlowEngine(
            host=host,
            registry=self.registry,
            events=events,
            flow_resolver=self.flows.get,
            max_depth=max_depth,
        )
        self.history_limit = history_limit
        self.history: list[HistoryEntry] = []
        self._active: dict[str, AbortController] = {}

    @property
    def host(self) -> HostDependencies:
        return self.engine.host

    @property
    def events(self) -> EventEmitter:
        return self.engine.events

    # Flow store

    def add_flow(self, flow: SpecFlow | dict[str, Any], flow_id: str | None = None) -> str:
        flow = load_flow(flow)
        flow_id = flow_id or flow.id
        if not flow_id:
            raise FlowError("Flow has no id")
        flow.id = flow_id
        self.flows[flow_id] = flow
        return flow_id

    def remove_flow(self, flow_id: str) -> None:
        self.flows.pop(flow_id, None)

    def get_flow(self, flow_id: str) -> SpecFlow:
        flow = self.flows.get(flow_id)
        if flow is None:
            raise FlowError(f"Flow not found: {flow_id}")
        return flow

    def load_flow_file(self, path: Path | str) -> str:
        """Load a flow JSON file. The file stem is the id unless the file sets one."""
        return self.add_flow(load_flow(Path(path)))

    def load_flows_from_directory(self, directory: Path | str) -> list[str]:
        """Load all flow definitions from a directory."""
        directory = Path(directory)
        if not directory.exists():
            return []

        loaded = []
        for path in sorted(directory.glob("*.json")):
            try:
                loaded.append(self.load_flow_file(path))
            except (OSError, json.JSONDecodeError, ValidationError, FlowError) as e:
                logger.warning(f"Failed to load flow {path}: {e}")
        return loaded

    # Validation / execution

    def validate(self, flow_id: str) -> FlowValidationReport:
        return validate_flow(self.get_flow(flow_id), self.registry)

    async def run_flow(
        self,
        flow_id: str,
        initial_input: dict[str, Any] | None = None,
        options: RunOptions | None = None,
        run_id: str | None = None,
    ) -> ExecutionReport:
        """
        Validate and run a stored flow, recording it in history.

        Raises:
            FlowError: Unknown flow id or start/end node
            FlowValidationError: The flow has error-severity issues
        """
        flow = self.get_flow(flow_id)
        validation = validate_flow(flow, self.registry)
        if not validation.is_valid:
            raise FlowValidationError(
                f"Flow '{flow_id}' is invalid ({len(validation.errors)} errors)",
                validation.errors,
            )

        run_id = run_id or str(uuid.uuid4())
        controller = AbortController()
        self._active[run_id] = controller
        try:
            report = await self.engine.execute_flow(
                flow,
                initial_input or {},
                flow_id=flow_id,
                run_id=run_id,
                options=options,
                signal=controller.signal,
            )
        finally:
            self._active.pop(run_id, None)

        self._record(flow_id, report)
        return report

    def _record(self, flow_id: str, report: ExecutionReport) -> None:
        self.history.insert(0, HistoryEntry(flow_id, datetime.now(timezone.utc), report))
        del self.history[self.history_limit:]

    def abort_run(self, run_id: str, reason: str | None = None) -> bool:
        """Request cancellation of an in-flight run. Returns False if unknown."""
        controller = self._active.get(run_id)
        if controller is None:
            return False
        logger.info(f"Aborting run {run_id}" + (f": {reason}" if reason else ""))
        controller.abort(reason)
        return True

    def active_runs(self) -> list[str]:
        return list(self._active.keys())

    def clear_history(self) -> None:
        self.history.clear()

    # Trigger lifecycle

    async def reinitialize(self) -> list[str]:
        """
        Re-bind host triggers for every valid flow.

        Unregisters all previous bindings first. Invalid flows are logged
        and skipped. Returns the ids of the flows that were activated.
        """
        lifecycle_defs = [d for d in self.registry.definitions() if d.has_lifecycle]
        for definition in lifecycle_defs:
            await definition.unregister_all(self)

        activated = []
        for flow_id, flow in self.flows.items():
            report = validate_flow(flow, self.registry)
            if not report.is_valid:
                logger.error(f"Flow '{flow_id}' is invalid and will not be activated:")
                for issue in report.errors:
                    logger.error(f"  {issue}")
                continue

            for node in flow.nodes:
                definition = self.registry.get(node.type)
                if definition is not None and definition.has_lifecycle and not node.disabled:
                    await definition.register(node, flow_id, self)
            activated.append(flow_id)
        return activated

    async def run_flow_from_event(
        self, flow_id: str, node_id: str, initial_input: dict[str, Any]
    ) -> ExecutionReport:
        """Run what the trigger node that fired drives, seeded with the event input."""
        logger.info(f"Trigger {node_id} fired for flow '{flow_id}'")
        return await self.run_flow(flow_id, initial_input, RunOptions(trigger_node_id=node_id))

    async def run_manual_triggers(self, flow_id: str) -> list[ExecutionReport]:
        """Run a flow once per manual trigger node, each seeded with its JSON payload."""
        flow = self.get_flow(flow_id)
        triggers = [n for n in flow.nodes if n.type == MANUAL_TRIGGER_TYPE and not n.disabled]
        if not triggers:
            logger.info(f"No manual triggers found in flow '{flow_id}'")
            return []

        reports = []
        for node in triggers:
            payload = node.data.get("payload") or "{}"
            try:
                initial_input = json.loads(payload) if isinstance(payload, str) else dict(payload)
            except json.JSONDecodeError:
                logger.error(f"Invalid JSON in manual trigger {node.id}; skipping")
                continue
            reports.append(await self.run_flow(flow_id, initial_input, RunOptions(trigger_node_id=node.id)))
        return reports
