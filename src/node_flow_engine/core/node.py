"""Base node definition and data-schema types."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, ClassVar, Sequence, TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .handles import Direction, FlowDataType, HandleSet, HandleSpec
from .results import NodeResult

if TYPE_CHECKING:
    from .context import NodeExecutorContext
    from .flow import SpecEdge, SpecNode
    from .validation import NodeValidator, ValidationIssue


class FlowNodeData(BaseModel):
    """
    Base schema for a node's persisted configuration.

    Fields are snake_case in Python and accept their camelCase form from
    stored flows. Unknown keys are kept so editor-only state round-trips.
    """
    model_config = ConfigDict(
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    disabled: bool = False
    version: int | None = Field(default=None, alias="_version")


@dataclass
class NodeManifest:
    """Self-description of a node type's interface."""
    type: str
    label: str
    category: str
    description: str = ""
    inputs: list[HandleSpec] = field(default_factory=list)
    outputs: list[HandleSpec] = field(default_factory=list)
    data_schema: dict[str, Any] = field(default_factory=dict)
    variadic_prefix: str | None = None
    is_trigger: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "label": self.label,
            "category": self.category,
            "description": self.description,
            "inputs": [h.to_dict() for h in self.inputs],
            "outputs": [h.to_dict() for h in self.outputs],
            "data_schema": self.data_schema,
            "variadic_prefix": self.variadic_prefix,
            "is_trigger": self.is_trigger,
        }


def resolve_input(input: dict[str, Any], data: BaseModel | dict[str, Any] | None, key: str) -> Any:
    """
    Value for ``key``: the connected value wins, else the node's static config.

    A connected value of None counts as absent. Returns None when neither
    side has the key.
    """
    connected = input.get(key)
    if connected is not None:
        return connected
    if data is None:
        return None
    if isinstance(data, dict):
        return data.get(key)
    return getattr(data, key, None)


class NodeDefinition(ABC):
    """
    Base class for every node type.

    A definition is a stateless descriptor registered once per type. It:
    - Declares its static handles and its data schema
    - Optionally computes dynamic handles from node data or the graph
    - Validates a node instance before a run via validate()
    - Executes a node instance via execute(), returning outputs or a NodeResult

    The engine knows nothing about concrete node types; it only calls
    through this interface.
    """

    type: ClassVar[str] = ""
    label: ClassVar[str] = ""
    category: ClassVar[str] = "utility"
    description: ClassVar[str] = ""
    data_schema: ClassVar[type[FlowNodeData]] = FlowNodeData
    inputs: ClassVar[list[HandleSpec]] = []
    outputs: ClassVar[list[HandleSpec]] = []

    # Trigger nodes start a flow and may not have incoming edges
    is_trigger: ClassVar[bool] = False

    # Variadic handle family, e.g. "object_" -> object_0, object_1, ...
    variadic_prefix: ClassVar[str | None] = None
    variadic_count_field: ClassVar[str] = "input_count"
    dynamic_handle_type: ClassVar[FlowDataType] = FlowDataType.ANY

    # Field/connection checks combined into validate()
    validators: ClassVar[Sequence["NodeValidator"]] = ()

    def parse_data(self, node: "SpecNode") -> FlowNodeData:
        """Shape-check the node's data (raises pydantic.ValidationError)."""
        return self.data_schema.model_validate(node.data)

    def describe(self) -> NodeManifest:
        return NodeManifest(
            type=self.type,
            label=self.label or self.type,
            category=self.category,
            description=self.description or (self.__doc__ or "").strip().split("\n")[0],
            inputs=list(self.inputs),
            outputs=list(self.outputs),
            data_schema=self.data_schema.model_json_schema(by_alias=False),
            variadic_prefix=self.variadic_prefix,
            is_trigger=self.is_trigger,
        )

    def validate(self, node: "SpecNode", edges: Sequence["SpecEdge"]) -> list["ValidationIssue"]:
        """Structural diagnostics for one node instance. Override for custom checks."""
        from .validation import combine_validators
        return combine_validators(*self.validators)(node, edges)

    def get_dynamic_handles(
        self,
        node: "SpecNode",
        nodes: Sequence["SpecNode"],
        edges: Sequence["SpecEdge"],
    ) -> HandleSet | None:
        """Handles that depend on node data or the upstream graph."""
        if self.variadic_prefix is None:
            return None
        count = self.variadic_count(node)
        return HandleSet(
            inputs=[
                HandleSpec(id=self.get_dynamic_handle_id(i), type=self.dynamic_handle_type)
                for i in range(count)
            ],
            outputs=[],
        )

    def get_handle_type(
        self,
        node: "SpecNode",
        handle_id: str | None,
        direction: Direction,
        nodes: Sequence["SpecNode"],
        edges: Sequence["SpecEdge"],
    ) -> FlowDataType | None:
        """Cheap type-only lookup. None means 'use get_handle_spec'."""
        return None

    def determine_edges_to_follow(
        self,
        node: "SpecNode",
        outputs: dict[str, Any],
        edges: Sequence["SpecEdge"],
    ) -> list["SpecEdge"]:
        """
        Choose which outgoing edges fire after this node ran.

        Default: every edge from the default handle or from a handle that
        has a key in the outputs.
        """
        return [e for e in edges if e.source_handle is None or e.source_handle in outputs]

    def variadic_count(self, node: "SpecNode") -> int:
        data = self.parse_data(node)
        return int(getattr(data, self.variadic_count_field, 0) or 0)

    def get_dynamic_handle_id(self, index: int) -> str | None:
        if self.variadic_prefix is None:
            return None
        return f"{self.variadic_prefix}{index}"

    def is_dynamic_handle(self, node: "SpecNode", handle_id: str | None) -> bool:
        """Whether ``handle_id`` belongs to this node's configured variadic family."""
        if self.variadic_prefix is None or not handle_id:
            return False
        if not handle_id.startswith(self.variadic_prefix):
            return False
        suffix = handle_id[len(self.variadic_prefix):]
        if not suffix.isdigit() or str(int(suffix)) != suffix:
            return False
        return int(suffix) < self.variadic_count(node)

    def variadic_values(self, node: "SpecNode", input: dict[str, Any]) -> list[Any]:
        """Connected variadic inputs, in index order."""
        keys = [k for k in input if self.is_dynamic_handle(node, k)]
        keys.sort(key=lambda k: int(k[len(self.variadic_prefix):]))
        return [input[k] for k in keys]

    # Lifecycle hooks for triggers bound to host surfaces. Called by the
    # flow runner on (re)activation, never by the engine during a run.
    has_lifecycle: ClassVar[bool] = False

    async def register(self, node: "SpecNode", flow_id: str, runner: Any) -> None:
        pass

    async def unregister_all(self, runner: Any) -> None:
        pass

    @abstractmethod
    async def execute(
        self,
        node: "SpecNode",
        input: dict[str, Any],
        context: "NodeExecutorContext"
    ) -> dict[str, Any] | NodeResult | None:
        """
        Execute a node instance.

        Args:
            node: The node being run (its data is already shape-checked)
            input: Resolved inputs keyed by input handle id
            context: Run-scoped context (host, variables, sub-flow access)

        Returns:
            A dict of outputs keyed by output handle id, a NodeResult for
            loop/flow control, or None to pass "main" through unchanged
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(type={self.type!r})"
