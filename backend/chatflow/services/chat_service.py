# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat Service

Bridges the embeddable chat widget and the workflow engine: incoming widget
messages start the workflow's chat trigger, bot replies are queued on the
session for the widget to poll.
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

from chatflow.chat.models import ChatResponseRequest, ChatWebhookRequest
from chatflow.chat.session_store import ChatSessionStore
from chatflow.core.errors import ChatflowError, NotFoundError, ValidationError, WorkflowNotActiveError
from chatflow.core.logging import get_service_logger, log_event
from chatflow.engine.exceptions import WorkflowEngineError
from chatflow.engine.executor import WorkflowExecutor

logger = get_service_logger("chat")

MAX_MESSAGE_LENGTH = 4000
MAX_RESPONSE_DELAY = 30


class ChatService:
    """Chat widget webhook, bot response push and polling"""

    def __init__(
        self,
        session_store: ChatSessionStore,
        executor: WorkflowExecutor,
        polling_interval: float = 2.0,
        session_max_age_hours: float = 24,
    ):
        self.session_store = session_store
        self.executor = executor
        self.polling_interval = polling_interval
        self.session_max_age_hours = session_max_age_hours

    async def accept_message(
        self,
        workflow_id: str,
        request: ChatWebhookRequest,
    ) -> Tuple[Dict[str, Any], Dict[str, Any], str]:
        """
        Record a widget message and build the chat trigger payload.

        Returns:
            (response body, trigger payload, trigger node id)
        """
        content = (request.message or "").strip()
        if not content:
            raise ValidationError("Message is required", field="message")
        if len(content) > MAX_MESSAGE_LENGTH:
            raise ValidationError(
                f"Message exceeds {MAX_MESSAGE_LENGTH} characters",
                field="message"
            )

        if not self.executor.is_active(workflow_id):
            raise WorkflowNotActiveError(workflow_id)
        trigger = self.executor.find_trigger(workflow_id, "chatTrigger")
        if trigger is None:
            raise NotFoundError("Chat trigger in workflow", workflow_id)

        session, created = await self.session_store.create_or_get_session(
            session_id=request.session_id,
            workflow_id=workflow_id,
            user_id=request.user_id,
            user_email=request.user_email,
            user_name=request.user_name,
            website_url=request.website_url,
        )
        if created:
            await self.session_store.purge_inactive(self.session_max_age_hours)
        if created and trigger.config.get("welcomeMessage"):
            await self.session_store.append_bot_message(
                session.id,
                trigger.config["welcomeMessage"],
                metadata={"welcome": True, "nodeId": trigger.id},
            )

        message = await self.session_store.append_user_message(session.id, content, request.metadata)

        payload = {
            "trigger": "chat",
            "workflowId": workflow_id,
            "sessionId": session.id,
            "message": {
                "id": message.id,
                "content": message.content,
                "timestamp": message.timestamp,
            },
            "user": {
                "id": session.user_id,
                "email": session.user_email,
                "name": session.user_name,
            },
            "session": {
                "id": session.id,
                "messagesCount": len(session.messages),
                "websiteUrl": session.website_url,
                "createdAt": session.created_at,
            },
            "metadata": request.metadata,
        }

        log_event(logger, "chat_message_received", workflow_id=workflow_id,
                  session_id=session.id, message_id=message.id, new_session=created)

        response = {
            "success": True,
            "sessionId": session.id,
            "messageId": message.id,
            "status": "processing",
            "pollingInterval": self.polling_interval,
        }
        return response, payload, trigger.id

    async def run_trigger(self, workflow_id: str, payload: Dict[str, Any], trigger_node_id: str) -> None:
        """Background task: execute the workflow for one widget message"""
        try:
            result = await self.executor.execute_workflow(workflow_id, payload, trigger_node_id)
        except (ChatflowError, WorkflowEngineError) as e:
            logger.error(f"Chat-triggered run of {workflow_id} did not start: {e}")
            return
        log_event(logger, "chat_run_finished", workflow_id=workflow_id,
                  execution_id=result.execution_id, status=result.status.value,
                  session_id=payload.get("sessionId"))

    async def push_response(self, session_id: str, request: ChatResponseRequest) -> Dict[str, Any]:
        """Queue a bot reply from an external system"""
        text = request.text
        if not text:
            raise ValidationError("Message content is required", field="content")

        await self.session_store.get_session(session_id)
        if request.delay:
            await asyncio.sleep(min(max(request.delay, 0), MAX_RESPONSE_DELAY))

        message = await self.session_store.append_bot_message(
            session_id,
            text,
            message_type=request.type,
            metadata=request.metadata,
            buttons=request.buttons,
        )
        return {"success": True, "messageId": message.id, "sessionId": session_id}

    async def poll(self, session_id: str, after: Optional[str] = None) -> Dict[str, Any]:
        result = await self.session_store.poll_messages(session_id, after)
        return {
            "success": True,
            "sessionId": session_id,
            "messages": [m.model_dump(mode="json", by_alias=True) for m in result.messages],
            "pendingResponses": [m.model_dump(mode="json", by_alias=True) for m in result.pending_responses],
            "hasNewMessages": result.has_new_messages,
        }

    async def get_session(self, session_id: str) -> Dict[str, Any]:
        session = await self.session_store.get_session(session_id)
        return {"success": True, "session": session.model_dump(mode="json", by_alias=True)}

    async def list_sessions(self, workflow_id: Optional[str] = None) -> List[Dict[str, Any]]:
        sessions = await self.session_store.list_sessions(workflow_id)
        return [s.summary() for s in sessions]
