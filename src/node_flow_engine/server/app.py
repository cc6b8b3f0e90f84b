"""FastAPI application factory for the Flow Engine service."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import build_runner, load_config
from ..core.flow_runner import FlowRunner
from .routes import router

logger = logging.getLogger(__name__)

SHUTDOWN_REASON = "Server shutting down"


async def _prepare_runner(app: FastAPI) -> FlowRunner:
    """Runner for this app with the configured flows loaded and triggers armed."""
    from .. import components  # noqa: F401  (registers the built-in node types)

    config = app.state.config
    runner = app.state.runner
    if runner is None:
        runner = build_runner(config)
    flows_dir = config.get("flows_dir")
    if flows_dir:
        loaded = runner.load_flows_from_directory(flows_dir)
        logger.info(f"Loaded {len(loaded)} flows from {flows_dir}")
    await runner.reinitialize()
    return runner


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.time()
    app.state.runner = await _prepare_runner(app)
    yield

    runner: FlowRunner = app.state.runner
    pending = runner.active_runs()
    if pending:
        logger.info(f"Aborting {len(pending)} active run(s)")
    for run_id in pending:
        runner.abort_run(run_id, SHUTDOWN_REASON)


def create_app(
    config: dict | None = None,
    runner: FlowRunner | None = None,
    title: str = "Node Flow Engine",
    version: str = "1.0.0",
) -> FastAPI:
    """
    Build the HTTP service.

    ``config`` defaults to ``load_config()``. Pass ``runner`` to serve an
    existing FlowRunner (its host, registry and stored flows) instead of
    building one from the ``engine`` config section.
    """
    app = FastAPI(
        title=title,
        version=version,
        description="HTTP API for validating and executing node flow graphs",
        lifespan=lifespan,
    )
    app.state.config = load_config() if config is None else config
    app.state.runner = runner
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app
