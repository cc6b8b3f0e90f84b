"""Run Slash Command node - executes host slash commands."""

from __future__ import annotations

from typing import Any

from ...core.handles import FlowDataType, HandleSpec
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.validation import required_field


class SlashCommandData(FlowNodeData):
    command: str = ""


@register_node
class SlashCommandNode(NodeDefinition):
    """Run a slash command pipeline in the host and output its pipe result."""

    type = "utility/slash_command"
    label = "Run Slash Command"
    category = "utility"
    data_schema = SlashCommandData
    inputs = [HandleSpec("command", FlowDataType.STRING)]
    outputs = [HandleSpec("result", FlowDataType.STRING)]
    validators = (required_field("command", "Command is required."),)

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        command = resolve_input(input, self.parse_data(node), "command")
        if not command or not isinstance(command, str):
            raise ValueError("Command input must be a valid string.")

        result = await context.dependencies.execute_slash_commands(command)
        if isinstance(result, dict):
            if result.get("is_error"):
                raise RuntimeError(f"Slash command failed: {result.get('error_message')}")
            if result.get("is_aborted"):
                raise RuntimeError(f"Slash command aborted: {result.get('abort_reason')}")
            return {"result": result.get("pipe") or ""}
        return {"result": "" if result is None else str(result)}
