"""User interaction nodes - Confirm and Prompt."""

from __future__ import annotations

from typing import Any

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


class ConfirmUserData(FlowNodeData):
    message: str = "Are you sure?"


class PromptUserData(FlowNodeData):
    message: str = "Please enter a value:"
    default_value: str | None = None


@register_node
class ConfirmUserNode(NodeDefinition):
    """
    Ask the user a yes/no question.

    Routes the main input to the ``true`` or ``false`` handle; only the
    edges of the chosen handle fire.
    """

    type = "utility/confirm_user"
    label = "Confirm With User"
    category = "utility"
    data_schema = ConfirmUserData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("true", FlowDataType.ANY),
        HandleSpec("false", FlowDataType.ANY),
    ]
    validators = (required_field("message", "Message is required."),)

    def determine_edges_to_follow(self, node, outputs, edges):
        return [e for e in edges if e.source_handle in outputs]

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        message = resolve_input(input, self.parse_data(node), "message")
        if not message:
            raise ValueError("Confirmation message is required.")

        confirmed = await context.dependencies.confirm_user(message)
        return {"true" if confirmed else "false": input.get("main")}


@register_node
class PromptUserNode(NodeDefinition):
    """Ask the user for a line of text."""

    type = "utility/prompt_user"
    label = "Prompt User"
    category = "utility"
    data_schema = PromptUserData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("message", FlowDataType.STRING),
        HandleSpec("default_value", FlowDataType.STRING),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.STRING),
    ]
    validators = (required_field("message", "Message is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        message = resolve_input(input, data, "message")
        if not message:
            raise ValueError("Prompt message is required.")

        result = await context.dependencies.prompt_user(
            message, resolve_input(input, data, "default_value")
        )
        return {"main": input.get("main"), "result": result}
