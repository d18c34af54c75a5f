# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FastAPI application - Chatflow Engine API
Stores, activates and executes chat-driven automation workflows.
"""
# Load environment variables from .env file (local development)
from dotenv import load_dotenv
from pathlib import Path as _PathForEnv
_env_path = _PathForEnv(__file__).parent.parent.parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path)

import os
from typing import Optional

import httpx
from anthropic import AsyncAnthropic
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatflow import __version__
from chatflow.api import chat, debug, nodes, webhooks, workflows
from chatflow.chat.session_store import ChatSessionStore
from chatflow.core.config import Config, get_config
from chatflow.core.errors import ChatflowError
from chatflow.core.logging import get_api_logger, log_event
from chatflow.engine.context import ExecutionServices
from chatflow.engine.execution_log import ExecutionLogStore
from chatflow.engine.executor import WorkflowExecutor
from chatflow.nodes.registry import build_default_registry
from chatflow.state.workflow_state import WorkflowStateStore


ENV_PREFIX = "CHATFLOW_VAR_"


def workflow_env() -> dict:
    """Environment exposed to templates as `$env.NAME`: only CHATFLOW_VAR_NAME variables"""
    return {k[len(ENV_PREFIX):]: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)}


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the application and its long-lived components.

    Everything is kept on app.state for dependency injection; nothing is a
    module-level singleton, so tests can build isolated apps.
    """
    config = config or get_config()
    logger = get_api_logger()

    app = FastAPI(
        title="Chatflow Engine",
        description="Workflow automation backend for chat widgets and messaging platforms",
        version=__version__,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    registry = build_default_registry()
    session_store = ChatSessionStore()
    services = ExecutionServices(
        session_store=session_store,
        http_timeout=config.http_timeout,
        anthropic_api_key=config.get_anthropic_api_key(),
        default_ai_model=config.default_ai_model,
        default_max_tokens=config.llm_max_tokens,
        env=workflow_env(),
    )
    executor = WorkflowExecutor(
        registry,
        services=services,
        execution_log=ExecutionLogStore(
            limit=config.execution_log_limit,
            storage_dir=config.executions_path,
        ),
        node_timeout=config.node_timeout,
        policy=config.unresolved_template_policy,
    )

    app.state.config = config
    app.state.registry = registry
    app.state.session_store = session_store
    app.state.services = services
    app.state.executor = executor
    app.state.state_store = WorkflowStateStore(config.state_file)

    app.include_router(chat.router)
    app.include_router(workflows.router)
    app.include_router(webhooks.router)
    app.include_router(nodes.router)
    app.include_router(debug.router)

    @app.exception_handler(ChatflowError)
    async def chatflow_error_handler(request: Request, exc: ChatflowError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"success": False, **exc.to_dict()})

    @app.on_event("startup")
    async def startup():
        """
        Startup tasks:
        1. Shared outbound HTTP client for node side effects
        2. Shared Anthropic client when ANTHROPIC_API_KEY is set
        3. Optional re-registration of persisted active workflows
        """
        services.http_client = httpx.AsyncClient(timeout=config.http_timeout)
        if services.anthropic_api_key:
            services.anthropic_client = AsyncAnthropic(api_key=services.anthropic_api_key)
        else:
            logger.warning("ANTHROPIC_API_KEY not set; AI Agent nodes need a per-node API key")

        if config.restore_on_startup:
            outcome = await app.state.state_store.restore_active_workflows(executor)
            log_event(logger, "startup_restore", restored=len(outcome["restored"]),
                      failed=len(outcome["failed"]))
        else:
            drift = await app.state.state_store.detect_drift(executor)
            if not drift.in_sync:
                logger.warning(
                    f"{len(drift.persisted_only)} persisted active workflows are not registered; "
                    "POST /api/debug/workflows/restore to re-register them"
                )

    @app.on_event("shutdown")
    async def shutdown():
        if services.http_client is not None:
            await services.http_client.aclose()
            services.http_client = None
        if services.anthropic_client is not None:
            await services.anthropic_client.close()
            services.anthropic_client = None

    @app.get("/health")
    async def health():
        """Health check"""
        return {
            "status": "healthy",
            "service": "chatflow-engine",
            "version": __version__,
            "activeWorkflows": sum(1 for r in executor.list_registrations() if r.is_active),
            "chatSessions": len(session_store),
        }

    return app


def run() -> None:
    """Serve the API with uvicorn using the configured host and port"""
    import uvicorn

    config = get_config()
    uvicorn.run(
        "chatflow.main:create_app",
        factory=True,
        host=config.service_host,
        port=config.service_port,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    run()
