# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for the AI Agent node with a stubbed Anthropic client
"""

from types import SimpleNamespace
from unittest.mock import patch

import pytest

from chatflow.engine.context import ExecutionServices
from chatflow.nodes.ai_agent import AIAgentNode


class FakeMessages:
    def __init__(self, text="Sure, happy to help."):
        self.text = text
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=self.text)],
            usage=SimpleNamespace(input_tokens=12, output_tokens=7),
        )


@pytest.fixture
def fake_client():
    return SimpleNamespace(messages=FakeMessages())


@pytest.fixture
def ai_services(session_store, fake_client):
    return ExecutionServices(
        session_store=session_store,
        anthropic_client=fake_client,
        default_ai_model="claude-test",
        default_max_tokens=256,
    )


@pytest.mark.asyncio
async def test_generates_response(make_context, ai_services, fake_client):
    payload = {"message": {"content": "Where is my order?"}}

    result = await AIAgentNode().execute({}, payload, [], make_context(services=ai_services))

    assert result.success is True
    assert result.data["response"] == "Sure, happy to help."
    assert result.data["usage"] == {"input_tokens": 12, "output_tokens": 7}
    call = fake_client.messages.calls[0]
    assert call["model"] == "claude-test"
    assert call["max_tokens"] == 256
    assert call["messages"] == [{"role": "user", "content": "Where is my order?"}]


@pytest.mark.asyncio
async def test_connected_data_storage_extends_system_prompt(make_context, ai_services, fake_client):
    connected = [{"id": "kb", "type": "dataStorage", "label": "FAQ", "config": {},
                  "output": {"data": {"shipping": "3 days"}}}]
    config = {"systemPrompt": "You are support.", "userMessage": "How long is shipping?", "maxTokens": "100"}

    await AIAgentNode().execute(config, {}, connected, make_context(services=ai_services))

    call = fake_client.messages.calls[0]
    assert call["system"].startswith("You are support.\n\nReference data:\n[FAQ]")
    assert '"shipping": "3 days"' in call["system"]
    assert call["max_tokens"] == 100


@pytest.mark.asyncio
async def test_missing_user_message(make_context, ai_services, fake_client):
    result = await AIAgentNode().execute({}, {}, [], make_context(services=ai_services))

    assert result.success is False
    assert result.error == "User Message is required"
    assert fake_client.messages.calls == []


@pytest.mark.asyncio
async def test_missing_api_key(make_context):
    services = ExecutionServices()
    result = await AIAgentNode().execute({"userMessage": "hi"}, {}, [], make_context(services=services))
    assert result.error == "Claude API Key is required"


class FakeAnthropic:
    """Stands in for AsyncAnthropic when a node carries its own key"""
    instances = []

    def __init__(self, api_key=None):
        self.api_key = api_key
        self.messages = FakeMessages("From the node key.")
        self.closed = False
        FakeAnthropic.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


@pytest.fixture
def fake_anthropic_class():
    FakeAnthropic.instances = []
    with patch("chatflow.nodes.ai_agent.AsyncAnthropic", FakeAnthropic):
        yield FakeAnthropic


@pytest.mark.asyncio
async def test_shared_client_reused_across_runs(make_context, ai_services, fake_client, fake_anthropic_class):
    for _ in range(3):
        await AIAgentNode().execute({"userMessage": "hi"}, {}, [], make_context(services=ai_services))

    assert len(fake_client.messages.calls) == 3
    assert fake_anthropic_class.instances == []


@pytest.mark.asyncio
async def test_node_api_key_uses_short_lived_client(make_context, ai_services, fake_client, fake_anthropic_class):
    config = {"userMessage": "hi", "apiKey": "sk-node"}

    result = await AIAgentNode().execute(config, {}, [], make_context(services=ai_services))

    assert result.data["response"] == "From the node key."
    assert fake_client.messages.calls == []
    [own_client] = fake_anthropic_class.instances
    assert own_client.api_key == "sk-node"
    assert own_client.closed is True
