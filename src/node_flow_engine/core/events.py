"""Run progress events and a minimal emitter."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

logger = logging.getLogger(__name__)

RUN_START = "run:start"
NODE_START = "node:start"
NODE_END = "node:end"
RUN_END = "run:end"


@dataclass
class RunStartEvent:
    run_id: str
    flow_id: str | None
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class NodeStartEvent:
    run_id: str
    flow_id: str | None
    node_id: str
    node_type: str
    depth: int = 0


@dataclass
class NodeEndEvent:
    """Emitted after each node step with what went in and what came out."""
    run_id: str
    flow_id: str | None
    node_id: str
    node_type: str
    input: dict[str, Any] = field(default_factory=dict)
    output: Any = None
    status: str = "completed"  # "completed", "error", "aborted"
    error: str | None = None
    duration_ms: float = 0.0
    depth: int = 0

    def __str__(self) -> str:
        icon = "✓" if self.status == "completed" else "✗"
        time_str = f" {self.duration_ms:.1f}ms" if self.duration_ms > 0 else ""
        line = f"{icon} {self.node_id} ({self.node_type}){time_str}"
        if self.error:
            line += f" - {self.error}"
        return line


@dataclass
class RunEndEvent:
    """Emitted once per top-level run."""
    run_id: str
    flow_id: str | None
    status: str
    executed_node_ids: list[str] = field(default_factory=list)
    error: dict[str, Any] | None = None
    duration_seconds: float = 0.0


Event = Union[RunStartEvent, NodeStartEvent, NodeEndEvent, RunEndEvent]
Listener = Callable[[Event], Union[None, Awaitable[None]]]


class EventEmitter:
    """
    Fan-out of run events to listeners.

    Listeners may be plain callables or coroutine functions. A listener that
    raises is logged and does not affect the run.
    """

    def __init__(self):
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event_name: str, listener: Listener) -> None:
        self._listeners.setdefault(event_name, []).append(listener)

    def off(self, event_name: str, listener: Listener) -> None:
        listeners = self._listeners.get(event_name, [])
        if listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event_name: str) -> int:
        return len(self._listeners.get(event_name, []))

    async def emit(self, event_name: str, event: Event) -> None:
        for listener in list(self._listeners.get(event_name, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Event listener for '{event_name}' failed")
