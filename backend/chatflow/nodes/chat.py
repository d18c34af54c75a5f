# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat Response node - pushes a bot message to the widget session.
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeExecutionResult
from .base import BaseNode, NodeParameter, is_blank


def _message_text(config: Dict[str, Any]) -> Any:
    if config.get("useTemplate"):
        return config.get("templateText")
    return config.get("responseText") or config.get("message")


def _parse_buttons(value: Any) -> List[Dict[str, Any]]:
    if not value:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [{"text": label.strip(), "value": label.strip()} for label in value.split(",") if label.strip()]
    buttons = []
    for item in value if isinstance(value, list) else [value]:
        if isinstance(item, dict) and item.get("text"):
            buttons.append(item)
        elif isinstance(item, str) and item.strip():
            buttons.append({"text": item.strip(), "value": item.strip()})
    return buttons


class ChatResponseNode(BaseNode):
    type = "chatResponse"
    display_name = "Chat Response"
    description = "Send a reply to the website chat widget session that triggered the workflow"
    parameters = {
        "sessionId": NodeParameter(
            type="string",
            label="Session ID",
            default="{{sessionId}}",
            required=True,
        ),
        "useTemplate": NodeParameter(type="boolean", label="Use Template", default=False),
        "responseText": NodeParameter(
            type="string",
            label="Response Text",
            description="Supports templates like {{1. AI Agent.response}}"
        ),
        "templateText": NodeParameter(type="string", label="Template Text"),
        "message": NodeParameter(type="string", label="Message"),
        "responseType": NodeParameter(
            type="options",
            label="Response Type",
            default="text",
            options=["text", "html", "markdown"],
        ),
        "delay": NodeParameter(type="number", label="Delay (seconds)", default=0, min=0, max=30),
        "buttons": NodeParameter(type="array", label="Quick Reply Buttons"),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        text = _message_text(config)
        missing = is_blank(text) if resolved else text in (None, "")
        if missing:
            return ["Message is required"]
        return []

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        store = context.services.session_store
        if store is None:
            return NodeExecutionResult.fail(self.type, "Chat session store is not available")

        delay = float(config.get("delay") or 0)
        if delay > 0:
            await asyncio.sleep(delay)

        session_id = str(config["sessionId"])
        text = str(_message_text(config))
        message = await store.append_bot_message(
            session_id,
            text,
            message_type=config.get("responseType", "text"),
            metadata={
                "workflowId": context.workflow_id,
                "nodeId": context.current_node_id,
                "executionId": context.execution_id,
            },
            buttons=_parse_buttons(config.get("buttons")),
        )

        return NodeExecutionResult.ok(
            self.type,
            {
                "sessionId": session_id,
                "messageId": message.id,
                "message": text,
                "responseType": message.message_type,
                "storedAt": datetime.now(timezone.utc).isoformat(),
            },
            message="Chat response queued",
        )
