"""Flow graph models: nodes, edges and the flow itself."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class SpecNode(BaseModel):
    """A node instance in a flow. ``data`` is its persisted configuration."""
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    position: Position = Field(default_factory=Position)

    @property
    def disabled(self) -> bool:
        return bool(self.data.get("disabled", False))


class SpecEdge(BaseModel):
    """A connection from one node's output handle to another node's input handle."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = ""
    source: str
    source_handle: str | None = Field(default=None, alias="sourceHandle")
    target: str
    target_handle: str | None = Field(default=None, alias="targetHandle")

    def model_post_init(self, __context: Any) -> None:
        if not self.id:
            self.id = f"{self.source}:{self.source_handle}->{self.target}:{self.target_handle}"


class SpecFlow(BaseModel):
    """A directed graph of nodes and edges."""
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    name: str | None = None
    description: str = ""
    nodes: list[SpecNode] = Field(default_factory=list)
    edges: list[SpecEdge] = Field(default_factory=list)

    def get_node(self, node_id: str) -> SpecNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def incoming(self, node_id: str) -> list[SpecEdge]:
        return [e for e in self.edges if e.target == node_id]

    def outgoing(self, node_id: str) -> list[SpecEdge]:
        return [e for e in self.edges if e.source == node_id]

    def descendants(self, node_id: str) -> set[str]:
        """Node ids reachable from ``node_id``, including itself."""
        return self._walk(node_id, forward=True)

    def ancestors(self, node_id: str) -> set[str]:
        """Node ids that can reach ``node_id``, including itself."""
        return self._walk(node_id, forward=False)

    def _walk(self, start: str, forward: bool) -> set[str]:
        seen = {start}
        queue = [start]
        while queue:
            current = queue.pop()
            for edge in self.edges:
                src, dst = (edge.source, edge.target) if forward else (edge.target, edge.source)
                if src == current and dst not in seen:
                    seen.add(dst)
                    queue.append(dst)
        return seen

    def subgraph(self, node_ids: set[str]) -> "SpecFlow":
        """A copy restricted to ``node_ids`` and the edges between them."""
        return SpecFlow(
            id=self.id,
            name=self.name,
            description=self.description,
            nodes=[n for n in self.nodes if n.id in node_ids],
            edges=[e for e in self.edges if e.source in node_ids and e.target in node_ids],
        )


def load_flow(source: SpecFlow | dict[str, Any] | str | Path) -> SpecFlow:
    """
    Load a flow from a dict, JSON string, or file path.

    A flow loaded from a file without an ``id`` takes the file stem as its id.
    """
    if isinstance(source, SpecFlow):
        return source
    if isinstance(source, dict):
        return SpecFlow.model_validate(source)

    path = Path(source)
    if path.suffix == ".json" and path.exists():
        flow = SpecFlow.model_validate(json.loads(path.read_text()))
        if flow.id is None:
            flow.id = path.stem
        return flow
    return SpecFlow.model_validate(json.loads(str(source)))
