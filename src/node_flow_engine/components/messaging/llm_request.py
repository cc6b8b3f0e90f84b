"""LLM Request node - sends messages to a connection profile."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from ...core.handles import FlowDataType, HandleSet, HandleSpec, resolve_connected_schema
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.schemas import flow_type_for_schema
from ...core.validation import required_connection, required_field


class LLMRequestData(FlowNodeData):
    profile_id: str = ""
    schema_name: str = "responseSchema"
    prompt_engineering_mode: Literal["native", "json", "xml"] = "native"
    max_response_token: int = 1000


def _field_handles(schema: Any) -> list[HandleSpec]:
    if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
        return []
    return [
        HandleSpec(name, flow_type_for_schema(info.annotation), schema=info.annotation)
        for name, info in schema.model_fields.items()
    ]


@register_node
class LLMRequestNode(NodeDefinition):
    """
    Request a completion from the host.

    Without a ``schema`` connection the reply text is output on ``result``.
    With one, the host makes a structured request; ``result`` carries the
    parsed object and each top-level field also gets its own output. When
    ``message_id_to_update`` is connected the plain reply is written into
    that chat message.
    """

    type = "messaging/llm_request"
    label = "LLM Request"
    category = "messaging"
    data_schema = LLMRequestData
    inputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("profile_id", FlowDataType.PROFILE_ID),
        HandleSpec("messages", FlowDataType.MESSAGES),
        HandleSpec("schema", FlowDataType.SCHEMA),
        HandleSpec("max_response_token", FlowDataType.NUMBER),
    ]
    outputs = [
        HandleSpec("main", FlowDataType.ANY),
        HandleSpec("result", FlowDataType.ANY),
    ]
    validators = (
        required_field("profile_id", "Connection Profile is required."),
        required_connection("messages", "Messages input must be connected."),
    )

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet:
        schema_connected = any(e.target == node.id and e.target_handle == "schema" for e in edges)
        if not schema_connected:
            return HandleSet(
                inputs=[HandleSpec("message_id_to_update", FlowDataType.NUMBER)],
                outputs=[HandleSpec("result", FlowDataType.STRING)],
            )

        inputs = [
            HandleSpec("schema_name", FlowDataType.STRING),
            HandleSpec("prompt_engineering_mode", FlowDataType.STRING),
        ]
        schema = resolve_connected_schema(node, "schema", nodes, edges)
        if schema is None:
            return HandleSet(inputs=inputs, outputs=[HandleSpec("result", FlowDataType.STRUCTURED_RESULT)])
        outputs = [HandleSpec("result", FlowDataType.STRUCTURED_RESULT, schema=schema)]
        return HandleSet(inputs=inputs, outputs=outputs + _field_handles(schema))

    async def execute(
        self,
        node,
        input: dict[str, Any],
        context
    ) -> dict[str, Any]:
        data = self.parse_data(node)
        profile_id = resolve_input(input, data, "profile_id")
        max_response_token = resolve_input(input, data, "max_response_token")
        messages = input.get("messages")
        schema = input.get("schema")

        if not profile_id or not messages or max_response_token is None:
            raise ValueError("Missing required inputs: profile_id, messages, and max_response_token.")

        deps = context.dependencies
        if schema is not None:
            schema_name = resolve_input(input, data, "schema_name") or "response"
            mode = resolve_input(input, data, "prompt_engineering_mode")
            result = await deps.make_structured_request(
                profile_id, messages, schema, schema_name, mode, max_response_token
            )
            return {**result, "main": input.get("main"), "result": result}

        result = await deps.make_simple_request(profile_id, messages, max_response_token)
        message_id = input.get("message_id_to_update")
        if isinstance(message_id, int) and not isinstance(message_id, bool):
            await deps.update_message_block(message_id, result)
        return {"main": input.get("main"), "result": result}
