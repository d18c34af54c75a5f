# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dependency injection for the Chatflow backend.

Provides FastAPI dependencies for services and engine components. Long-lived
components are built once in `create_app` and kept on `app.state`.
"""

from pathlib import Path

from fastapi import Depends, Request

from chatflow.core.config import Config
from chatflow.core.logging import get_logger

logger = get_logger(__name__)


def get_current_config(request: Request) -> Config:
    """Configuration the application was created with."""
    return request.app.state.config


def get_registry(request: Request):
    """Node registry built at startup."""
    return request.app.state.registry


def get_executor(request: Request):
    """Workflow executor (active-workflow registry and run state machine)."""
    return request.app.state.executor


def get_session_store(request: Request):
    return request.app.state.session_store


def get_state_store(request: Request):
    return request.app.state.state_store


def get_workflow_service(
    request: Request,
    config: Config = Depends(get_current_config),
):
    """Get WorkflowService instance."""
    from chatflow.services.workflow_service import WorkflowService
    return WorkflowService(
        workflows_dir=Path(config.workflows_path),
        executor=request.app.state.executor,
        state_store=request.app.state.state_store,
        config=config,
    )


def get_chat_service(
    request: Request,
    config: Config = Depends(get_current_config),
):
    """Get ChatService instance."""
    from chatflow.services.chat_service import ChatService
    return ChatService(
        session_store=request.app.state.session_store,
        executor=request.app.state.executor,
        polling_interval=config.polling_interval,
        session_max_age_hours=config.session_max_age_hours,
    )
