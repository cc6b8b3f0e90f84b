"""Shared fixtures: a fresh registry per test, an in-memory host, engine and runner."""

from __future__ import annotations

from typing import Any

import pytest

import node_flow_engine.components  # noqa: F401  (registers built-in node types)
from node_flow_engine.core import (
    AbortController,
    FlowDataType,
    FlowEngine,
    FlowNodeData,
    FlowRunner,
    HandleSpec,
    HeadlessHost,
    NodeDefinition,
    NodeRegistry,
)


class RecordNode(NodeDefinition):
    """Remembers every input it receives and forwards main/value."""

    type = "test/record"
    label = "Record"
    category = "test"
    inputs = [HandleSpec("main", FlowDataType.ANY), HandleSpec("value", FlowDataType.ANY)]
    outputs = [HandleSpec("main", FlowDataType.ANY), HandleSpec("value", FlowDataType.ANY)]

    def __init__(self):
        self.calls: list[dict[str, Any]] = []

    async def execute(self, node, input, context):
        self.calls.append(dict(input))
        return {"main": input.get("main"), "value": input.get("value")}


class FailNode(NodeDefinition):
    type = "test/fail"
    label = "Fail"
    category = "test"
    inputs = [HandleSpec("main", FlowDataType.ANY)]
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(self, node, input, context):
        raise RuntimeError("boom")


class AbortAtData(FlowNodeData):
    abort_at: int = 0


class AbortAtNode(NodeDefinition):
    """Trips ``controller`` when the connected index reaches ``abort_at``; forwards value as result."""

    type = "test/abort_at"
    label = "Abort At"
    category = "test"
    data_schema = AbortAtData
    inputs = [HandleSpec("index", FlowDataType.NUMBER), HandleSpec("value", FlowDataType.ANY)]
    outputs = [HandleSpec("result", FlowDataType.ANY)]

    def __init__(self):
        self.controller: AbortController | None = None

    async def execute(self, node, input, context):
        if input.get("index") == self.parse_data(node).abort_at and self.controller is not None:
            self.controller.abort("stopped by test")
        return {"result": input.get("value")}


class ListReturnNode(NodeDefinition):
    type = "test/list"
    label = "List"
    category = "test"
    inputs = []
    outputs = [HandleSpec("main", FlowDataType.ANY)]

    async def execute(self, node, input, context):
        return [1, 2]


@pytest.fixture
def registry():
    """Registry holding the built-in nodes plus test helpers, installed as the singleton."""
    builtin = NodeRegistry.get_instance()
    fresh = NodeRegistry()
    for definition in builtin.definitions():
        fresh.register(definition)
    for helper in (RecordNode(), FailNode(), AbortAtNode(), ListReturnNode()):
        fresh.register(helper)

    NodeRegistry._instance = fresh
    yield fresh
    NodeRegistry._instance = builtin


@pytest.fixture
def host():
    return HeadlessHost()


@pytest.fixture
def flows():
    """Sub-flow store used by the bare engine fixture."""
    return {}


@pytest.fixture
def engine(registry, host, flows):
    return FlowEngine(host=host, registry=registry, flow_resolver=flows.get)


@pytest.fixture
def runner(registry, host):
    return FlowRunner(host=host, registry=registry)


@pytest.fixture
def recorder(registry) -> RecordNode:
    return registry.get("test/record")


@pytest.fixture
def abort_node(registry) -> AbortAtNode:
    return registry.get("test/abort_at")
