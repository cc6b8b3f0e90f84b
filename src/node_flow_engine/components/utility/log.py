"""Log node - writes a value to the flow log and passes main through."""

from __future__ import annotations

import logging
from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node

flow_logger = logging.getLogger("node_flow_engine.flow")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LogData(FlowNodeData):
    prefix: str = "Log:"
    level: Literal["debug", "info", "warning", "error"] = "info"


@register_node
class LogNode(NodeDefinition):
    """
    Log a value.

    Logs ``value`` if connected, otherwise the main input. Side-effect only:
    the main input is passed through unchanged.
    """

    type = "utility/log"
    label = "Log"
    category = "utility"
    data_schema = LogData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("value", FlowDataType.ANY),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> None:
        data = self.parse_data(node)
        value = input["value"] if "value" in input else input.get("main")
        message = f"{data.prefix} {value}" if data.prefix else str(value)
        flow_logger.log(_LEVELS[data.level], message)
