"""Chat nodes - send, edit, remove and hide chat messages; read and write the chat input."""

from __future__ import annotations

from typing import Any, Literal

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


def _message_id(value: Any, name: str = "Message ID") -> int:
    if value is None or isinstance(value, bool):
        raise ValueError(f"{name} is required.")
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"{name} must be a number, got {value!r}.") from e


class SendChatMessageData(FlowNodeData):
    message: str = ""
    role: Literal["user", "assistant", "system"] = "assistant"
    name: str | None = None


@register_node
class SendChatMessageNode(NodeDefinition):
    """Append a message to the chat and output its id."""

    type = "messaging/send_chat_message"
    label = "Send Chat Message"
    category = "messaging"
    data_schema = SendChatMessageData
    inputs = [
        HandleSpec("message", FlowDataType.STRING),
        HandleSpec("role", FlowDataType.STRING),
        HandleSpec("name", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("message_id", FlowDataType.NUMBER)]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        message = resolve_input(input, data, "message")
        if not message:
            raise ValueError("Message content is required.")

        role = resolve_input(input, data, "role")
        name = resolve_input(input, data, "name")
        message_id = await context.dependencies.send_chat_message(message, role, name)
        return {"message_id": message_id}


class MessageIdData(FlowNodeData):
    message_id: int | None = None


@register_node
class RemoveChatMessageNode(NodeDefinition):
    type = "messaging/remove_chat_message"
    label = "Remove Chat Message"
    category = "messaging"
    data_schema = MessageIdData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message_id", FlowDataType.NUMBER),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(self, node, input, context) -> None:
        message_id = _message_id(resolve_input(input, self.parse_data(node), "message_id"))
        await context.dependencies.delete_message(message_id)


class EditChatMessageData(FlowNodeData):
    message_id: int | None = None
    message: str = ""


@register_node
class EditChatMessageNode(NodeDefinition):
    """Replace the content of an existing chat message."""

    type = "messaging/edit_chat_message"
    label = "Edit Chat Message"
    category = "messaging"
    data_schema = EditChatMessageData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message_id", FlowDataType.NUMBER),
        HandleSpec("message", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message_id", FlowDataType.NUMBER),
    ]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        message_id = _message_id(resolve_input(input, data, "message_id"))
        content = resolve_input(input, data, "message")
        if content is None:
            raise ValueError("New message content is required.")

        await context.dependencies.update_message_block(message_id, str(content))
        return {"main": input.get("main"), "message_id": message_id}


class ToggleVisibilityData(FlowNodeData):
    start_id: int | None = None
    end_id: int | None = None
    visible: bool = False


@register_node
class ToggleVisibilityNode(NodeDefinition):
    """
    Hide or unhide a range of chat messages.

    ``end_id`` defaults to ``start_id``, so a single id toggles one message.
    Hidden messages are left out of prompts built by Create Messages.
    """

    type = "messaging/toggle_visibility"
    label = "Toggle Message Visibility"
    category = "messaging"
    data_schema = ToggleVisibilityData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("start_id", FlowDataType.NUMBER),
        HandleSpec("end_id", FlowDataType.NUMBER),
        HandleSpec("visible", FlowDataType.BOOLEAN),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(self, node, input, context) -> None:
        data = self.parse_data(node)
        start = _message_id(resolve_input(input, data, "start_id"), "Start Message ID")
        end = resolve_input(input, data, "end_id")
        end = start if end is None else _message_id(end, "End Message ID")
        if end < start:
            raise ValueError(f"End Message ID ({end}) is before Start Message ID ({start}).")

        visible = bool(resolve_input(input, data, "visible"))
        await context.dependencies.hide_message_range(start, end, unhide=visible)


@register_node
class GetChatInputNode(NodeDefinition):
    """Read the text currently typed in the host's chat input box."""

    type = "messaging/get_chat_input"
    label = "Get Chat Input"
    category = "messaging"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("value", FlowDataType.STRING),
    ]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        value = await context.dependencies.get_chat_input()
        return {"main": input.get("main"), "value": value}


class UpdateChatInputData(FlowNodeData):
    value: str = ""


@register_node
class UpdateChatInputNode(NodeDefinition):
    type = "messaging/update_chat_input"
    label = "Update Chat Input"
    category = "messaging"
    data_schema = UpdateChatInputData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("value", FlowDataType.STRING),
    ]
    outputs = [HandleSpec("main", FlowDataType.ANY)]
    validators = (required_field("value", "Value is required."),)

    async def execute(self, node, input, context) -> None:
        value = resolve_input(input, self.parse_data(node), "value")
        if value is None:
            raise ValueError("Value is required.")
        await context.dependencies.update_chat_input(str(value))
