"""Tests for the node registry."""

import pytest

from node_flow_engine.core import (
    FlowDataType,
    FlowNodeData,
    HandleSpec,
    NodeDefinition,
    NodeRegistry,
    RegistrationError,
    UnknownNodeTypeError,
    register_node,
    resolve_input,
)

BUILTIN_TYPES = {
    "trigger/manual", "trigger/event", "trigger/for_each",
    "input/string", "input/number", "input/boolean", "input/profile_id", "input/schema",
    "logic/if", "logic/for_each", "logic/run_flow",
    "logic/break_loop", "logic/continue_loop", "logic/end_flow",
    "messaging/create_messages", "messaging/custom_message", "messaging/merge_messages",
    "messaging/llm_request", "messaging/send_chat_message", "messaging/remove_chat_message",
    "messaging/edit_chat_message", "messaging/toggle_visibility",
    "messaging/get_chat_input", "messaging/update_chat_input",
    "messaging/get_chat_message", "messaging/get_chat_messages",
    "character/get", "character/create", "character/edit",
    "lorebook/create", "lorebook/create_entry", "lorebook/edit_entry", "lorebook/get_entries",
    "lorebook/get_entry",
    "utility/math", "utility/string_tools", "utility/merge_objects", "utility/json",
    "utility/type_converter", "utility/regex", "utility/log", "utility/slash_command",
    "utility/confirm_user", "utility/prompt_user",
    "utility/array_tools", "utility/random", "utility/datetime", "utility/notification",
    "utility/string_to_number",
    "variables/get_property", "variables/set_flow", "variables/get_flow",
    "variables/set_local", "variables/get_local", "variables/set_global", "variables/get_global",
    "variables/schema",
}


class CountData(FlowNodeData):
    input_count: int = 2


class EchoNode(NodeDefinition):
    type = "test/echo"
    label = "Echo"
    category = "test"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(self, node, input, context):
        return None


class GreedyVariadicNode(EchoNode):
    """Accepts every ``item_`` handle regardless of the configured count."""
    type = "test/greedy"
    data_schema = CountData
    variadic_prefix = "item_"

    def is_dynamic_handle(self, node, handle_id):
        return bool(handle_id) and handle_id.startswith(self.variadic_prefix)


class CollidingVariadicNode(EchoNode):
    type = "test/colliding"
    data_schema = CountData
    variadic_prefix = "item_"
    inputs = [HandleSpec("item_0", FlowDataType.ANY)]


class TestRegistration:
    def test_builtin_types_registered(self, registry):
        assert BUILTIN_TYPES <= set(registry.list_types())

    def test_register_and_lookup(self):
        registry = NodeRegistry()
        registry.register(EchoNode())
        assert "test/echo" in registry
        assert isinstance(registry.get("test/echo"), EchoNode)
        assert registry.list_by_category("test") == ["test/echo"]

    def test_duplicate_type_rejected(self):
        registry = NodeRegistry()
        registry.register(EchoNode())
        with pytest.raises(RegistrationError, match="already registered"):
            registry.register(EchoNode())

    def test_replace_allowed_explicitly(self):
        registry = NodeRegistry()
        first = EchoNode()
        second = EchoNode()
        registry.register(first)
        registry.register(second, replace=True)
        assert registry.get("test/echo") is second

    def test_missing_type_rejected(self):
        class Untyped(EchoNode):
            type = ""

        with pytest.raises(RegistrationError, match="has no type"):
            NodeRegistry().register(Untyped())

    def test_inconsistent_variadic_family_rejected(self):
        with pytest.raises(RegistrationError, match="beyond the configured count"):
            NodeRegistry().register(GreedyVariadicNode())

    def test_static_handle_colliding_with_variadic_family(self):
        with pytest.raises(RegistrationError, match="collides"):
            NodeRegistry().register(CollidingVariadicNode())

    def test_require_unknown(self):
        with pytest.raises(UnknownNodeTypeError):
            NodeRegistry().require("missing/type")

    def test_register_node_decorator_uses_singleton(self, registry):
        @register_node
        class DecoratedNode(EchoNode):
            type = "test/decorated"

        assert "test/decorated" in registry
        assert NodeRegistry.get_instance() is registry


class TestManifests:
    def test_manifest(self, registry):
        manifest = registry.get_manifest("utility/math")
        assert manifest["label"] == "Math"
        assert manifest["category"] == "utility"
        assert [h["id"] for h in manifest["inputs"]] == ["operation", "a", "b"]
        assert manifest["outputs"][0]["type"] == "number"
        assert "operation" in manifest["data_schema"]["properties"]

    def test_manifest_unknown_type(self, registry):
        assert registry.get_manifest("nope/nope") is None

    def test_variadic_manifest(self, registry):
        assert registry.get_manifest("utility/merge_objects")["variadic_prefix"] == "object_"

    def test_generate_docs(self, registry):
        docs = registry.generate_docs(category="logic")
        assert "## Logic" in docs
        assert "### `logic/for_each` - For Each" in docs
        assert "utility/math" not in docs


class TestResolveInput:
    def test_connected_value_wins(self):
        assert resolve_input({"a": 1}, {"a": 2}, "a") == 1
        assert resolve_input({"a": 0}, CountData(input_count=5), "a") == 0

    def test_falls_back_to_static_data(self):
        assert resolve_input({}, {"a": 2}, "a") == 2
        assert resolve_input({"input_count": None}, CountData(input_count=5), "input_count") == 5

    def test_absent_everywhere(self):
        assert resolve_input({}, {}, "a") is None
        assert resolve_input({}, None, "a") is None
        assert resolve_input({}, CountData(), "missing") is None
