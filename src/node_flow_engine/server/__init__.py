"""Flow Engine HTTP Service."""

from .app import create_app
from .models import (
    FlowInfo,
    FlowListResponse,
    FlowSchema,
    FlowValidationResult,
    FlowExecuteRequest,
    FlowExecuteResponse,
    AbortRequest,
    AbortResponse,
    HistoryResponse,
    NodeTypeSchema,
    NodeListResponse,
    ConnectionCheckRequest,
    ConnectionCheckResponse,
    HealthResponse,
)

__all__ = [
    "create_app",
    "FlowInfo",
    "FlowListResponse",
    "FlowSchema",
    "FlowValidationResult",
    "FlowExecuteRequest",
    "FlowExecuteResponse",
    "AbortRequest",
    "AbortResponse",
    "HistoryResponse",
    "NodeTypeSchema",
    "NodeListResponse",
    "ConnectionCheckRequest",
    "ConnectionCheckResponse",
    "HealthResponse",
]
