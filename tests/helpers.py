"""Builders for small test flows."""

from __future__ import annotations

from typing import Any

from node_flow_engine.core import SpecFlow


def node(node_id: str, node_type: str, **data: Any) -> dict[str, Any]:
    return {"id": node_id, "type": node_type, "data": data}


def edge(
    source: str,
    target: str,
    source_handle: str | None = None,
    target_handle: str | None = None,
) -> dict[str, Any]:
    return {
        "source": source,
        "sourceHandle": source_handle,
        "target": target,
        "targetHandle": target_handle,
    }


def make_flow(nodes: list[dict], edges: list[dict] | None = None, flow_id: str = "test") -> SpecFlow:
    return SpecFlow.model_validate({"id": flow_id, "nodes": nodes, "edges": edges or []})
