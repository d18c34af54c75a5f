# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Trigger nodes.

A trigger receives the event payload as its input and emits it (possibly
enriched) as its output. A trigger that filters the event out succeeds with
routes=[] so nothing downstream runs.
"""

from typing import Any, Dict, List
from urllib.parse import urlparse

from chatflow.engine import templates
from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeCategory, NodeExecutionResult
from .base import BaseNode, NodeParameter, is_blank


def split_list(value: Any) -> List[str]:
    """Accept a list or a comma/newline separated string"""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    text = str(value).replace("\n", ",")
    return [item.strip() for item in text.split(",") if item.strip()]


class ChatTriggerNode(BaseNode):
    type = "chatTrigger"
    display_name = "Chat Trigger"
    category = NodeCategory.TRIGGER
    description = "Starts the workflow when a website chat widget sends a message"
    parameters = {
        "filterKeywords": NodeParameter(
            type="string",
            label="Filter Keywords",
            default="",
            description="Only trigger when the message contains one of these comma-separated keywords"
        ),
        "allowedDomains": NodeParameter(
            type="string",
            label="Allowed Domains",
            default="",
            description="Comma-separated list of website domains allowed to trigger the workflow"
        ),
        "requireUserInfo": NodeParameter(type="boolean", label="Require User Info", default=False),
        "autoRespond": NodeParameter(type="boolean", label="Auto Respond", default=False),
        "autoResponseMessage": NodeParameter(
            type="string",
            label="Auto Response Message",
            default="Thanks for your message! We'll get back to you shortly."
        ),
        "welcomeMessage": NodeParameter(type="string", label="Welcome Message", default=""),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        if config.get("autoRespond") and is_blank(config.get("autoResponseMessage")):
            return ["Auto Response Message is required when Auto Respond is enabled"]
        return []

    def _filter_reason(self, config: Dict[str, Any], payload: Dict[str, Any]) -> str:
        content = str((payload.get("message") or {}).get("content") or "")

        keywords = split_list(config.get("filterKeywords"))
        if keywords and not any(k.lower() in content.lower() for k in keywords):
            return "Message does not match filter keywords"

        domains = [d.lower() for d in split_list(config.get("allowedDomains"))]
        if domains:
            website_url = (payload.get("session") or {}).get("websiteUrl") or ""
            host = (urlparse(website_url).hostname or "").lower()
            if not any(host == d or host.endswith("." + d) for d in domains):
                return f"Domain '{host or 'unknown'}' is not allowed"

        if config.get("requireUserInfo"):
            user = payload.get("user") or {}
            if not user.get("email"):
                return "User information is required"

        return ""

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        payload = templates.build_search_map(input_data)

        reason = self._filter_reason(config, payload)
        if reason:
            return NodeExecutionResult.ok(
                self.type,
                {**payload, "filtered": True, "filterReason": reason},
                message=reason,
                routes=[],
            )

        session_id = payload.get("sessionId")
        store = context.services.session_store
        if config.get("autoRespond") and session_id and store is not None:
            await store.append_bot_message(
                session_id,
                config["autoResponseMessage"],
                metadata={"autoResponse": True, "nodeId": context.current_node_id},
            )

        return NodeExecutionResult.ok(self.type, payload, message="Chat message received")


class TelegramTriggerNode(BaseNode):
    type = "telegramTrigger"
    display_name = "Telegram Trigger"
    category = NodeCategory.TRIGGER
    description = "Starts the workflow from a Telegram bot update"
    parameters = {
        "botToken": NodeParameter(
            type="string",
            label="Bot API Token",
            description="Token of the bot whose webhook delivers updates"
        ),
        "allowedUpdates": NodeParameter(
            type="string",
            label="Allowed Updates",
            default="message",
            description="Comma-separated update types to accept (message, edited_message, callback_query, ...)"
        ),
    }

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        update = templates.build_search_map(input_data)

        allowed = split_list(config.get("allowedUpdates"))
        if allowed and not any(kind in update for kind in allowed):
            return NodeExecutionResult.ok(
                self.type,
                {**update, "filtered": True},
                message="Update type not allowed",
                routes=[],
            )

        message = update.get("message") or update.get("edited_message") or {}
        callback = update.get("callback_query") or {}
        if not message and callback:
            message = callback.get("message") or {}

        data = dict(update)
        data.setdefault("chatId", (message.get("chat") or {}).get("id"))
        data.setdefault("text", message.get("text") or callback.get("data"))
        data.setdefault("from", message.get("from") or callback.get("from"))
        return NodeExecutionResult.ok(self.type, data, message="Telegram update received")


class WebhookTriggerNode(BaseNode):
    type = "webhookTrigger"
    display_name = "Webhook Trigger"
    category = NodeCategory.TRIGGER
    description = "Starts the workflow from an arbitrary JSON payload"
    parameters = {}

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        return NodeExecutionResult.ok(self.type, templates.build_search_map(input_data), message="Webhook received")
