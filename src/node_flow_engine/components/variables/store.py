"""Variable nodes - read and write flow, chat-local and global variables.

Flow variables live in the run's execution variables and are shared with
every nested sub-flow of that run. Local (chat-scoped) and global variables
are persisted by the host.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Any

from ...core.handles import FlowDataType, HandleSet, HandleSpec, resolve_connected_schema
from ...core.node import FlowNodeData, NodeDefinition, resolve_input
from ...core.registry import register_node
from ...core.schemas import coerce_value, flow_type_for_schema
from ...core.validation import required_connection, required_field


class VariableData(FlowNodeData):
    variable_name: str = "myVar"


_SET_INPUTS = [
    HandleSpec("main", FlowDataType.ANY),
    HandleSpec("value", FlowDataType.ANY),
    HandleSpec("variable_name", FlowDataType.STRING),
]

_GET_INPUTS = [
    HandleSpec("main", FlowDataType.ANY),
    HandleSpec("variable_name", FlowDataType.STRING),
    HandleSpec("schema", FlowDataType.SCHEMA),
]

_GET_OUTPUTS = [
    HandleSpec("main", FlowDataType.ANY),
    HandleSpec("value", FlowDataType.ANY),
]


class SetVariableNode(NodeDefinition):
    """Base for Set * Variable nodes. Passes ``main`` through."""

    category = "variables"
    data_schema = VariableData
    inputs = _SET_INPUTS
    outputs = [HandleSpec("main", FlowDataType.ANY)]
    validators = (
        required_field("variable_name", "Variable Name is required."),
        required_connection("value", "A value must be connected to set."),
    )

    @abstractmethod
    async def store(self, context, name: str, value: Any) -> None:
        """Write ``value`` under ``name`` in this node's scope."""

    async def execute(self, node, input, context) -> None:
        name = resolve_input(input, self.parse_data(node), "variable_name")
        if not name:
            raise ValueError("Variable name is required.")
        await self.store(context, name, input.get("value"))


class GetVariableNode(NodeDefinition):
    """
    Base for Get * Variable nodes.

    A Schema node wired into ``schema`` types the ``value`` output and
    validates the stored value against it at run time.
    """

    category = "variables"
    data_schema = VariableData
    inputs = _GET_INPUTS
    outputs = _GET_OUTPUTS
    validators = (required_field("variable_name", "Variable Name is required."),)

    @abstractmethod
    async def load(self, context, name: str) -> Any:
        """Value stored under ``name`` in this node's scope, or None."""

    def get_dynamic_handles(self, node, nodes, edges) -> HandleSet | None:
        schema = resolve_connected_schema(node, "schema", nodes, edges)
        if schema is None:
            return None
        return HandleSet(
            inputs=[],
            outputs=[HandleSpec("value", flow_type_for_schema(schema), schema=schema)],
        )

    async def execute(self, node, input, context) -> dict[str, Any]:
        name = resolve_input(input, self.parse_data(node), "variable_name")
        if not name:
            raise ValueError("Variable name is required.")
        value = await self.load(context, name)
        schema = input.get("schema")
        if schema is not None and value is not None:
            value = coerce_value(schema, value)
        return {"main": input.get("main"), "value": value}


@register_node
class SetFlowVariableNode(SetVariableNode):
    """Set a variable for the rest of this run (including sub-flows)."""

    type = "variables/set_flow"
    label = "Set Flow Variable"

    async def store(self, context, name, value):
        context.set_variable(name, value)


@register_node
class GetFlowVariableNode(GetVariableNode):
    """Read a variable set earlier in this run."""

    type = "variables/get_flow"
    label = "Get Flow Variable"

    async def load(self, context, name):
        return context.get_variable(name)


@register_node
class SetLocalVariableNode(SetVariableNode):
    """Set a chat-scoped variable in the host."""

    type = "variables/set_local"
    label = "Set Local Variable"

    async def store(self, context, name, value):
        await context.dependencies.set_local_variable(name, value)


@register_node
class GetLocalVariableNode(GetVariableNode):
    type = "variables/get_local"
    label = "Get Local Variable"

    async def load(self, context, name):
        return await context.dependencies.get_local_variable(name)


@register_node
class SetGlobalVariableNode(SetVariableNode):
    """Set a global variable in the host."""

    type = "variables/set_global"
    label = "Set Global Variable"

    async def store(self, context, name, value):
        await context.dependencies.set_global_variable(name, value)


@register_node
class GetGlobalVariableNode(GetVariableNode):
    type = "variables/get_global"
    label = "Get Global Variable"

    async def load(self, context, name):
        return await context.dependencies.get_global_variable(name)
