"""Notification node - show a toast in the host and pass the message on."""

from __future__ import annotations

from typing import Any, get_args

from ...core.handles import FlowDataType, HandleSpec
from ...core.host import NotificationLevel
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node

_LEVELS = get_args(NotificationLevel)


class NotificationData(FlowNodeData):
    message: str = ""
    notification_type: str = "info"


@register_node
class NotificationNode(NodeDefinition):
    """
    Show a host notification.

    An empty message is passed on without notifying. An unknown type is
    reported as an error notification and the message is shown as info.
    """

    type = "utility/notification"
    label = "Notification"
    category = "utility"
    data_schema = NotificationData
    inputs = [
        HandleSpec("message", FlowDataType.STRING),
        HandleSpec("notification_type", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("message", FlowDataType.STRING)]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        message = resolve_input(input, data, "message")
        if not message:
            return {"message": message}

        level = resolve_input(input, data, "notification_type")
        if level not in _LEVELS:
            await context.dependencies.notify(
                f"Invalid notification type: {level}. Defaulting to 'info'.", "error"
            )
            level = "info"
        await context.dependencies.notify(str(message), level)
        return {"message": message}
