# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat widget API routes.

The widget posts user messages to the webhook and polls the session for bot
replies. External systems may push replies directly.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query

from chatflow.chat.models import ChatResponseRequest, ChatWebhookRequest
from chatflow.core.dependencies import get_chat_service
from chatflow.services.chat_service import ChatService

router = APIRouter(prefix="/api/chat", tags=["chat"])


@router.post("/webhook/{workflow_id}")
async def chat_webhook(
    workflow_id: str,
    request: ChatWebhookRequest,
    background_tasks: BackgroundTasks,
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    """Receive a widget message and start the workflow in the background"""
    response, payload, trigger_node_id = await service.accept_message(workflow_id, request)
    background_tasks.add_task(service.run_trigger, workflow_id, payload, trigger_node_id)
    return response


@router.post("/response/{session_id}")
async def push_response(
    session_id: str,
    request: ChatResponseRequest,
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    """Queue a bot reply for the widget"""
    return await service.push_response(session_id, request)


@router.get("/session/{session_id}/messages")
async def poll_messages(
    session_id: str,
    after: Optional[str] = Query(default=None, description="ISO timestamp; only newer messages are returned"),
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    """Poll for new messages. Pending bot replies are delivered once."""
    return await service.poll(session_id, after)


@router.get("/session/{session_id}")
async def get_session(
    session_id: str,
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    return await service.get_session(session_id)


@router.get("/sessions")
async def list_sessions(
    workflow_id: Optional[str] = Query(default=None, alias="workflowId"),
    service: ChatService = Depends(get_chat_service),
) -> Dict[str, Any]:
    sessions = await service.list_sessions(workflow_id)
    return {"success": True, "count": len(sessions), "sessions": sessions}
