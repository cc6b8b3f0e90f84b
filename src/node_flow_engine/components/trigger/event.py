"""Event trigger - starts a flow when the host fires an event."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from pydantic import Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition
from ...core.registry import register_node
from ...core.validation import required_field

logger = logging.getLogger(__name__)


# Positional listener arguments of the host events, by name and type
EVENT_PARAMETERS: dict[str, list[tuple[str, FlowDataType]]] = {
    "message_received": [("messageId", FlowDataType.NUMBER), ("type", FlowDataType.STRING)],
    "character_message_rendered": [("messageId", FlowDataType.NUMBER), ("type", FlowDataType.STRING)],
    "message_sent": [("index", FlowDataType.NUMBER)],
    "user_message_rendered": [("index", FlowDataType.NUMBER)],
    "message_edited": [("messageId", FlowDataType.NUMBER)],
    "message_deleted": [("chatLength", FlowDataType.NUMBER)],
    "message_updated": [("messageId", FlowDataType.NUMBER)],
    "message_swiped": [("messageIndex", FlowDataType.NUMBER)],
    "chat_changed": [("chatId", FlowDataType.STRING)],
    "chat_deleted": [("chatName", FlowDataType.STRING)],
    "character_renamed": [("oldAvatar", FlowDataType.STRING), ("newAvatar", FlowDataType.STRING)],
    "world_info_activated": [("entries", FlowDataType.ARRAY)],
    "generation_started": [],
    "generation_ended": [("chatLength", FlowDataType.NUMBER)],
    "online_status_changed": [("onlineStatus", FlowDataType.BOOLEAN)],
}


class EventTriggerData(FlowNodeData):
    event_type: str = "user_message_rendered"
    # Overrides the known parameter list for host-specific events
    parameters: list[str] = Field(default_factory=list)


@register_node
class EventTriggerNode(NodeDefinition):
    """
    Start the flow when a host event fires.

    The event's positional arguments are exposed as named outputs.
    """

    type = "trigger/event"
    label = "Event Trigger"
    category = "trigger"
    data_schema = EventTriggerData
    is_trigger = True
    has_lifecycle = True
    inputs = []
    outputs = [HandleSpec("main", FlowDataType.ANY)]
    validators = (required_field("event_type", "Event type is required."),)

    def __init__(self):
        # (runner, event_type, listener) for every active binding
        self._bindings: list[tuple[Any, str, Any]] = []

    def parameters_for(self, data: EventTriggerData) -> list[tuple[str, FlowDataType]]:
        if data.parameters:
            return [(name, FlowDataType.ANY) for name in data.parameters]
        return EVENT_PARAMETERS.get(data.event_type, [])

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        data = self.parse_data(node)
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec(name, flow_type) for name, flow_type in self.parameters_for(data)],
        )

    def build_initial_input(self, data: EventTriggerData, args: Sequence[Any]) -> dict[str, Any]:
        initial = {}
        for index, (name, _) in enumerate(self.parameters_for(data)):
            initial[name] = args[index] if index < len(args) else None
        return initial

    async def register(self, node, flow_id, runner) -> None:
        data = self.parse_data(node)

        async def listener(*args: Any):
            logger.info(f"Event '{data.event_type}' triggered flow '{flow_id}'")
            return await runner.run_flow_from_event(
                flow_id, node.id, self.build_initial_input(data, args)
            )

        runner.host.add_event_listener(data.event_type, listener)
        self._bindings.append((runner, data.event_type, listener))

    async def unregister_all(self, runner) -> None:
        remaining = []
        for bound_runner, event_type, listener in self._bindings:
            if bound_runner is runner:
                runner.host.remove_event_listener(event_type, listener)
            else:
                remaining.append((bound_runner, event_type, listener))
        self._bindings = remaining

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        return dict(input)
