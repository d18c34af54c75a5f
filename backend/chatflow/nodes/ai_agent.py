# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
AI Agent node - single-turn LLM call through the Anthropic Messages API.
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List

from anthropic import AsyncAnthropic, APIError

from chatflow.core.errors import sanitize_error_for_user
from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeExecutionResult
from .base import BaseNode, NodeParameter


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Process the input data and provide a relevant response."
)


def _connected_context(connected_nodes: List[Dict[str, Any]]) -> str:
    """Render data from connected dataStorage nodes for the system prompt"""
    blocks = []
    for node in connected_nodes:
        if node.get("type") != "dataStorage":
            continue
        output = node.get("output") or {}
        data = output.get("data") if isinstance(output, dict) else None
        if data is None:
            data = (node.get("config") or {}).get("data")
        if data:
            label = node.get("label") or node.get("id")
            blocks.append(f"[{label}]\n{json.dumps(data, indent=2, ensure_ascii=False, default=str)}")
    return "\n\n".join(blocks)


class AIAgentNode(BaseNode):
    type = "aiAgent"
    display_name = "AI Agent"
    description = "Uses an LLM to process input and generate a response."
    parameters = {
        "model": NodeParameter(
            type="string",
            label="Model",
            description="Claude model id; defaults to the configured model"
        ),
        "apiKey": NodeParameter(
            type="string",
            label="Claude API Key",
            description="Falls back to ANTHROPIC_API_KEY when empty"
        ),
        "systemPrompt": NodeParameter(type="string", label="System Prompt", default=DEFAULT_SYSTEM_PROMPT),
        "userMessage": NodeParameter(
            type="string",
            label="User Message",
            default="{{message.content}}",
            required=True,
            description="The user message to process. Can include templates like {{message.text}}."
        ),
        "maxTokens": NodeParameter(type="number", label="Max Tokens", min=1, max=8192),
        "temperature": NodeParameter(type="number", label="Temperature", default=0.7, min=0, max=1),
    }

    @asynccontextmanager
    async def _client(self, node_api_key: str, context: ExecutionContext):
        """Shared client unless the node carries its own key"""
        services = context.services
        if services.anthropic_client is not None and not node_api_key:
            yield services.anthropic_client
            return
        async with AsyncAnthropic(api_key=node_api_key or services.anthropic_api_key) as client:
            yield client

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        api_key = config.get("apiKey") or context.services.anthropic_api_key
        if not api_key and context.services.anthropic_client is None:
            return NodeExecutionResult.fail(self.type, "Claude API Key is required")

        model = config.get("model") or context.services.default_ai_model
        system_prompt = config.get("systemPrompt") or DEFAULT_SYSTEM_PROMPT
        extra = _connected_context(connected_nodes)
        if extra:
            system_prompt = f"{system_prompt}\n\nReference data:\n{extra}"

        user_message = config["userMessage"]
        try:
            async with self._client(config.get("apiKey"), context) as client:
                response = await client.messages.create(
                    model=model,
                    max_tokens=int(float(config.get("maxTokens") or context.services.default_max_tokens)),
                    temperature=float(config.get("temperature", 0.7)),
                    system=system_prompt,
                    messages=[{"role": "user", "content": user_message}],
                )
        except APIError as e:
            return NodeExecutionResult.fail(
                self.type,
                f"AI Agent failed: {sanitize_error_for_user(e, include_type=False)}"
            )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
        usage = getattr(response, "usage", None)
        return NodeExecutionResult.ok(
            self.type,
            {
                "response": text,
                "model": model,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "inputProcessed": user_message,
                "usage": {
                    "input_tokens": getattr(usage, "input_tokens", None),
                    "output_tokens": getattr(usage, "output_tokens", None),
                },
            },
            message="AI response generated",
        )
