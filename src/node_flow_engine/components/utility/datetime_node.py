"""Date/Time node - the current time as an ISO string, a timestamp and its parts."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import NodeDefinition
from ...core.registry import register_node

_PARTS = ("year", "month", "day", "hour", "minute", "second")


@register_node
class DateTimeNode(NodeDefinition):
    """
    Current date and time.

    ``iso`` is UTC with millisecond precision and ``timestamp`` is in
    milliseconds; the individual parts are in local time.
    """

    type = "utility/datetime"
    label = "Date/Time"
    category = "utility"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [
        HandleSpec("iso", FlowDataType.STRING),
        HandleSpec("timestamp", FlowDataType.NUMBER),
        *(HandleSpec(part, FlowDataType.NUMBER) for part in _PARTS),
    ]

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or (lambda: datetime.now().astimezone())

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        now = self.clock()
        iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return {
            "iso": iso,
            "timestamp": int(now.timestamp() * 1000),
            **{part: getattr(now, part) for part in _PARTS},
        }
