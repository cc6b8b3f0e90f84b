"""API route handlers for the Flow Engine service."""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, ValidationError

from ..core.engine import RunOptions
from ..core.errors import FlowError, FlowValidationError
from ..core.flow import SpecEdge, SpecNode
from ..core.flow_runner import FlowRunner
from ..core.schemas import describe_schema
from ..core.validation import check_connection_validity
from .models import (
    AbortRequest,
    AbortResponse,
    ConnectionCheckRequest,
    ConnectionCheckResponse,
    FlowExecuteRequest,
    FlowExecuteResponse,
    FlowInfo,
    FlowListResponse,
    FlowSchema,
    FlowValidationResult,
    HealthResponse,
    HistoryResponse,
    NodeListResponse,
    NodeTypeSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def get_runner(request: Request) -> FlowRunner:
    return request.app.state.runner


def to_jsonable(value: Any) -> Any:
    """Make run outputs serializable. Schema classes become their JSON Schema."""
    if isinstance(value, type) and issubclass(value, BaseModel):
        return describe_schema(value)
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return repr(value)


def _require_flow(runner: FlowRunner, flow_id: str):
    try:
        return runner.get_flow(flow_id)
    except FlowError:
        raise HTTPException(status_code=404, detail=f"Flow '{flow_id}' not found")


# === Health ===

@router.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check(request: Request) -> HealthResponse:
    """Check service health."""
    runner = get_runner(request)
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        flows_available=len(runner.flows),
        node_types=len(runner.registry.list_types()),
        active_runs=len(runner.active_runs()),
        uptime_seconds=time.time() - request.app.state.started_at,
    )


# === Flows ===

@router.get("/flows", response_model=FlowListResponse, tags=["Flows"])
async def list_flows(request: Request) -> FlowListResponse:
    """List all stored flows."""
    runner = get_runner(request)
    return FlowListResponse(
        flows=[
            FlowInfo(
                id=flow_id,
                name=flow.name or flow_id,
                description=flow.description,
                node_count=len(flow.nodes),
                edge_count=len(flow.edges),
            )
            for flow_id, flow in sorted(runner.flows.items())
        ]
    )


@router.get("/flows/{flow_id}", response_model=FlowSchema, tags=["Flows"])
async def get_flow(flow_id: str, request: Request) -> FlowSchema:
    """Get the full flow graph."""
    flow = _require_flow(get_runner(request), flow_id)
    return FlowSchema(
        id=flow_id,
        name=flow.name or flow_id,
        description=flow.description,
        nodes=[n.model_dump() for n in flow.nodes],
        edges=[e.model_dump(by_alias=True) for e in flow.edges],
    )


@router.post("/flows/{flow_id}/validate", response_model=FlowValidationResult, tags=["Flows"])
async def validate_flow(flow_id: str, request: Request) -> FlowValidationResult:
    """Validate a stored flow without running it."""
    runner = get_runner(request)
    _require_flow(runner, flow_id)
    report = runner.validate(flow_id)
    return FlowValidationResult.model_validate(report.to_dict())


@router.post("/flows/{flow_id}/execute", response_model=FlowExecuteResponse, tags=["Flows"])
async def execute_flow(
    flow_id: str,
    body: FlowExecuteRequest,
    request: Request,
) -> FlowExecuteResponse:
    """
    Execute a stored flow and wait for its report.

    Node failures are reported in the response (success=false); an invalid
    flow is rejected with 422 before anything runs.
    """
    runner = get_runner(request)
    _require_flow(runner, flow_id)
    options = RunOptions(start_node_id=body.start_node_id, end_node_id=body.end_node_id)

    try:
        report = await runner.run_flow(flow_id, body.input, options, run_id=body.run_id)
    except FlowValidationError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "issues": [i.to_dict() for i in e.issues]},
        )
    except FlowError as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = to_jsonable(report.to_dict())
    return FlowExecuteResponse(
        run_id=data["run_id"],
        flow_id=data["flow_id"],
        status=data["status"],
        success=report.success,
        last_output=data["last_output"],
        executed_nodes=data["executed_nodes"],
        error=data["error"],
        terminated=data["terminated"],
        duration_seconds=data["duration_seconds"],
    )


# === Runs ===

@router.post("/runs/{run_id}/abort", response_model=AbortResponse, tags=["Runs"])
async def abort_run(run_id: str, request: Request, body: AbortRequest | None = None) -> AbortResponse:
    """Request cancellation of an in-flight run."""
    runner = get_runner(request)
    if not runner.abort_run(run_id, body.reason if body else None):
        raise HTTPException(status_code=404, detail=f"No active run '{run_id}'")
    return AbortResponse(run_id=run_id, aborted=True)


@router.get("/runs/history", response_model=HistoryResponse, tags=["Runs"])
async def run_history(request: Request) -> HistoryResponse:
    """Finished runs, newest first."""
    runner = get_runner(request)
    runs = [to_jsonable(entry.to_dict()) for entry in runner.history]
    return HistoryResponse(runs=runs, total=len(runs))


# === Nodes ===

@router.get("/nodes", response_model=NodeListResponse, tags=["Nodes"])
async def list_nodes(request: Request) -> NodeListResponse:
    """List all registered node types by category."""
    registry = get_runner(request).registry
    by_category: dict[str, list[str]] = {}
    for definition in registry.definitions():
        by_category.setdefault(definition.category, []).append(definition.type)

    return NodeListResponse(nodes=by_category, total=len(registry.list_types()))


@router.get("/nodes/{node_type:path}", response_model=NodeTypeSchema, tags=["Nodes"])
async def get_node_type(node_type: str, request: Request) -> NodeTypeSchema:
    """Get the manifest of a node type (e.g. ``logic/for_each``)."""
    manifest = get_runner(request).registry.get_manifest(node_type)
    if manifest is None:
        raise HTTPException(status_code=404, detail=f"Node type '{node_type}' not found")
    return NodeTypeSchema.model_validate(manifest)


# === Connections ===

@router.post("/connections/check", response_model=ConnectionCheckResponse, tags=["Nodes"])
async def check_connection(body: ConnectionCheckRequest, request: Request) -> ConnectionCheckResponse:
    """Whether a candidate edge may be added to a stored flow or an inline graph."""
    runner = get_runner(request)
    if body.flow_id is not None:
        flow = _require_flow(runner, body.flow_id)
        nodes, edges = flow.nodes, flow.edges
    else:
        try:
            nodes = [SpecNode.model_validate(n) for n in body.nodes]
            edges = [SpecEdge.model_validate(e) for e in body.edges]
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=f"Invalid graph: {e}")

    candidate = SpecEdge(
        source=body.source,
        source_handle=body.source_handle,
        target=body.target,
        target_handle=body.target_handle,
    )
    return ConnectionCheckResponse(
        valid=check_connection_validity(candidate, nodes, edges, runner.registry)
    )


# === Docs ===

@router.get("/docs/nodes", tags=["System"])
async def get_node_docs(request: Request) -> dict:
    """Get generated node documentation in markdown."""
    docs = get_runner(request).registry.generate_docs()
    return {"format": "markdown", "content": docs}
