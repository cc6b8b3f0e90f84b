"""Chat history nodes - read one message or a range of messages from the chat."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node


class ChatMessageModel(BaseModel):
    role: str
    content: str
    name: str | None = None
    hidden: bool = False


def message_index(value: Any, chat_length: int) -> int:
    """Resolve ``first``, ``last`` or a numeric id to a chat index (not range-checked)."""
    if isinstance(value, bool):
        raise ValueError(f'Invalid message index "{value}". Must be \'first\', \'last\', or a number.')
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text == "first":
        return 0
    if text == "last":
        return chat_length - 1
    try:
        return int(text)
    except ValueError as e:
        raise ValueError(f'Invalid message index "{value}". Must be \'first\', \'last\', or a number.') from e


class GetChatMessageData(FlowNodeData):
    message_id: str | int = "last"


@register_node
class GetChatMessageNode(NodeDefinition):
    """Read one chat message by index, or ``first``/``last``."""

    type = "messaging/get_chat_message"
    label = "Get Chat Message"
    category = "messaging"
    data_schema = GetChatMessageData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message_id", FlowDataType.ANY),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("id", FlowDataType.NUMBER),
        HandleSpec("result", FlowDataType.OBJECT, schema=ChatMessageModel),
        HandleSpec("name", FlowDataType.STRING),
        HandleSpec("content", FlowDataType.STRING),
        HandleSpec("is_user", FlowDataType.BOOLEAN),
        HandleSpec("is_system", FlowDataType.BOOLEAN),
    ]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        requested = resolve_input(input, self.parse_data(node), "message_id")
        if requested is None:
            raise ValueError("Message ID is required.")

        chat = await context.dependencies.get_chat_messages()
        try:
            index = message_index(requested, len(chat))
        except ValueError:
            index = -1
        if not 0 <= index < len(chat):
            raise LookupError(f'Message with ID/Index "{requested}" not found or invalid.')

        message = dict(chat[index])
        return {
            "main": input.get("main"),
            "id": index,
            "result": message,
            "name": message.get("name"),
            "content": message.get("content"),
            "is_user": message.get("role") == "user",
            "is_system": message.get("role") == "system",
        }


class GetChatMessagesData(FlowNodeData):
    start_id: str | int = "first"
    end_id: str | int = "last"


@register_node
class GetChatMessagesNode(NodeDefinition):
    """
    Read an inclusive range of chat messages.

    Both ends accept an index, ``first`` or ``last``. An empty chat gives
    an empty list rather than an error.
    """

    type = "messaging/get_chat_messages"
    label = "Get Chat Messages"
    category = "messaging"
    data_schema = GetChatMessagesData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("start_id", FlowDataType.ANY),
        HandleSpec("end_id", FlowDataType.ANY),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("messages", FlowDataType.ARRAY, schema=list[ChatMessageModel]),
        HandleSpec("count", FlowDataType.NUMBER),
    ]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        chat = await context.dependencies.get_chat_messages()
        if not chat:
            return {"main": input.get("main"), "messages": [], "count": 0}

        start = message_index(resolve_input(input, data, "start_id"), len(chat))
        end = message_index(resolve_input(input, data, "end_id"), len(chat))
        if not (0 <= start <= end < len(chat)):
            raise ValueError(
                f"Invalid message range: from {start} to {end}. "
                f"Valid range is 0 to {len(chat) - 1}."
            )

        messages = [dict(m) for m in chat[start:end + 1]]
        return {"main": input.get("main"), "messages": messages, "count": len(messages)}
