"""Tagged node results: plain data or a control-flow outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ResultKind(str, Enum):
    DATA = "data"
    PASSTHROUGH = "passthrough"
    BREAK_LOOP = "break_loop"
    CONTINUE_LOOP = "continue_loop"
    END_FLOW = "end_flow"


_NO_VALUE = object()


@dataclass(frozen=True)
class NodeResult:
    """
    What a node's execute() produced.

    DATA carries an output map keyed by output handle id. END_FLOW may carry
    a value that becomes the run's last output. The loop variants are only
    meaningful inside a loop iteration.
    """
    kind: ResultKind
    outputs: dict[str, Any] = field(default_factory=dict)
    value: Any = _NO_VALUE

    @classmethod
    def data(cls, outputs: dict[str, Any]) -> "NodeResult":
        return cls(ResultKind.DATA, dict(outputs))

    @classmethod
    def passthrough(cls) -> "NodeResult":
        return cls(ResultKind.PASSTHROUGH)

    @classmethod
    def break_loop(cls) -> "NodeResult":
        return cls(ResultKind.BREAK_LOOP)

    @classmethod
    def continue_loop(cls) -> "NodeResult":
        return cls(ResultKind.CONTINUE_LOOP)

    @classmethod
    def end_flow(cls, value: Any = _NO_VALUE) -> "NodeResult":
        return cls(ResultKind.END_FLOW, value=value)

    @property
    def has_value(self) -> bool:
        return self.value is not _NO_VALUE

    @property
    def is_loop_control(self) -> bool:
        return self.kind in (ResultKind.BREAK_LOOP, ResultKind.CONTINUE_LOOP)

    @classmethod
    def coerce(cls, raw: Any) -> "NodeResult":
        """Normalize an execute() return value."""
        if isinstance(raw, NodeResult):
            return raw
        if raw is None:
            return cls.passthrough()
        if isinstance(raw, dict):
            return cls.data(raw)
        raise TypeError(
            f"Node returned {type(raw).__name__}; expected a dict of outputs, "
            "a NodeResult, or None"
        )
