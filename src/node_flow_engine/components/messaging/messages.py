"""Message list nodes - build, customize and merge prompt message lists."""

from __future__ import annotations

import uuid
from typing import Any, Literal

from pydantic import BaseModel, Field

from ...core.handles import FlowDataType, HandleSet, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import ValidationIssue, required_field

ROLE_SUFFIX = "_role"


class CreateMessagesData(FlowNodeData):
    profile_id: str = ""
    last_message_id: int | None = None


@register_node
class CreateMessagesNode(NodeDefinition):
    """Build the host's prompt messages for a connection profile."""

    type = "messaging/create_messages"
    label = "Create Messages"
    category = "messaging"
    data_schema = CreateMessagesData
    inputs = [
        HandleSpec("profile_id", FlowDataType.PROFILE_ID),
        HandleSpec("last_message_id", FlowDataType.NUMBER),
    ]
    outputs = [HandleSpec("messages", FlowDataType.MESSAGES)]
    validators = (required_field("profile_id", "Connection Profile is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        profile_id = resolve_input(input, data, "profile_id")
        if not profile_id:
            raise ValueError("Profile ID not provided.")

        last_message_id = resolve_input(input, data, "last_message_id")
        messages = await context.dependencies.get_base_messages_for_profile(
            profile_id, last_message_id
        )
        return {"messages": messages}


class CustomMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Literal["system", "user", "assistant"] = "system"
    content: str = ""


class CustomMessageData(FlowNodeData):
    messages: list[CustomMessage] = Field(
        default_factory=lambda: [CustomMessage(content="You are a helpful assistant.")]
    )


@register_node
class CustomMessageNode(NodeDefinition):
    """
    Hand-written message list.

    Each message exposes two string inputs: ``{id}`` overrides its content
    and ``{id}_role`` overrides its role.
    """

    type = "messaging/custom_message"
    label = "Custom Message"
    category = "messaging"
    data_schema = CustomMessageData
    inputs = []
    outputs = [HandleSpec("messages", FlowDataType.MESSAGES)]

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        inputs = []
        for message in self.parse_data(node).messages:
            inputs.append(HandleSpec(message.id, FlowDataType.STRING))
            inputs.append(HandleSpec(f"{message.id}{ROLE_SUFFIX}", FlowDataType.STRING))
        return HandleSet(inputs=inputs, outputs=[])

    def get_handle_type(self, node, handle_id, direction, nodes, edges):
        if direction != "input" or not handle_id:
            return None
        message_id = handle_id[: -len(ROLE_SUFFIX)] if handle_id.endswith(ROLE_SUFFIX) else handle_id
        if any(m.id == message_id for m in self.parse_data(node).messages):
            return FlowDataType.STRING
        return None

    def validate(self, node, edges) -> list[ValidationIssue]:
        issues = super().validate(node, edges)
        ids = [m.id for m in self.parse_data(node).messages]
        if len(ids) != len(set(ids)):
            issues.append(ValidationIssue("Message ids must be unique.", field_id="messages"))
        return issues

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        messages = []
        for message in self.parse_data(node).messages:
            role = input.get(f"{message.id}{ROLE_SUFFIX}")
            content = input.get(message.id)
            messages.append({
                "role": message.role if role is None else role,
                "content": message.content if content is None else content,
            })
        return {"messages": messages}


class MergeMessagesData(FlowNodeData):
    input_count: int = Field(default=2, ge=1)


@register_node
class MergeMessagesNode(NodeDefinition):
    """Concatenate the message lists wired into ``messages_0``, ``messages_1``, ..."""

    type = "messaging/merge_messages"
    label = "Merge Messages"
    category = "messaging"
    data_schema = MergeMessagesData
    inputs = []
    outputs = [HandleSpec("messages", FlowDataType.MESSAGES)]
    variadic_prefix = "messages_"
    dynamic_handle_type = FlowDataType.MESSAGES

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        merged: list[Any] = []
        for value in self.variadic_values(node, input):
            if isinstance(value, list):
                merged.extend(value)
        return {"messages": merged}
