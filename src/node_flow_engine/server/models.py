"""Pydantic models for the Flow Engine API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# === Flow Models ===

class FlowInfo(BaseModel):
    """Summary info about a flow (for listing)."""
    id: str
    name: str
    description: str = ""
    node_count: int = 0
    edge_count: int = 0


class FlowListResponse(BaseModel):
    flows: list[FlowInfo]


class FlowSchema(BaseModel):
    """Full flow graph."""
    id: str
    name: str
    description: str = ""
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)


class IssueModel(BaseModel):
    message: str
    severity: str = "error"
    field_id: str | None = None
    node_id: str | None = None
    edge_id: str | None = None


class FlowValidationResult(BaseModel):
    """Result of validating a stored flow."""
    valid: bool
    issues: list[IssueModel] = Field(default_factory=list)
    invalid_edge_ids: list[str] = Field(default_factory=list)


# === Execution Models ===

class FlowExecuteRequest(BaseModel):
    """Request to execute a flow."""
    input: dict[str, Any] = Field(default_factory=dict)
    run_id: str | None = None
    start_node_id: str | None = None
    end_node_id: str | None = None


class NodeReportModel(BaseModel):
    node_id: str
    type: str
    status: str
    output: Any = None
    error: str | None = None
    duration_ms: float = 0.0


class FlowExecuteResponse(BaseModel):
    """Response from flow execution."""
    run_id: str
    flow_id: str | None = None
    status: str
    success: bool
    last_output: Any = None
    executed_nodes: list[NodeReportModel] = Field(default_factory=list)
    error: dict[str, Any] | None = None
    terminated: bool = False
    duration_seconds: float = 0.0


class AbortRequest(BaseModel):
    reason: str | None = None


class AbortResponse(BaseModel):
    run_id: str
    aborted: bool


class HistoryResponse(BaseModel):
    runs: list[dict[str, Any]]
    total: int


# === Node Models ===

class HandleModel(BaseModel):
    id: str | None
    type: str
    label: str | None = None
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")


class NodeTypeSchema(BaseModel):
    """Full node type manifest."""
    type: str
    label: str
    category: str
    description: str = ""
    inputs: list[HandleModel] = Field(default_factory=list)
    outputs: list[HandleModel] = Field(default_factory=list)
    data_schema: dict[str, Any] = Field(default_factory=dict)
    variadic_prefix: str | None = None
    is_trigger: bool = False


class NodeListResponse(BaseModel):
    """Node types grouped by category."""
    nodes: dict[str, list[str]]
    total: int


class ConnectionCheckRequest(BaseModel):
    """A candidate edge checked against a graph (a stored flow or inline nodes/edges)."""
    flow_id: str | None = None
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    source: str
    source_handle: str | None = None
    target: str
    target_handle: str | None = None


class ConnectionCheckResponse(BaseModel):
    valid: bool


# === Health Check ===

class HealthResponse(BaseModel):
    """Health check response."""
    status: str = "healthy"
    version: str = "1.0.0"
    flows_available: int = 0
    node_types: int = 0
    active_runs: int = 0
    uptime_seconds: float = 0.0
