# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for the Telegram Send Message node
"""

import json

import httpx
import pytest

from chatflow.engine.context import ExecutionServices
from chatflow.nodes.telegram import TelegramSendMessageNode, parse_poll_options
from tests.conftest import RecordingTransport


@pytest.fixture
def node():
    return TelegramSendMessageNode()


UPDATE = {"message": {"chat": {"id": 42}, "text": "hi", "from": {"first_name": "Ada"}}}


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_token_fails_before_any_request(self, node, make_context, recording_transport):
        config = {"botToken": "", "chatId": "123", "messageType": "text", "messageText": "hello"}

        result = await node.execute(config, UPDATE, [], make_context(node_type=node.type, input_data=UPDATE))

        assert result.success is False
        assert result.error == "Bot API Token is required"
        assert recording_transport.requests == []

    @pytest.mark.asyncio
    async def test_unresolved_chat_id_counts_as_missing(self, node, make_context, recording_transport):
        config = {"botToken": "123:abc", "chatId": "{{message.chat.id}}", "messageText": "hello"}

        result = await node.execute(config, {}, [], make_context(node_type=node.type, input_data={}))

        assert result.success is False
        assert result.error == "Chat ID is required"
        assert recording_transport.requests == []

    def test_editor_validation_accepts_templates(self, node):
        result = node.validate_config({"botToken": "{{$env.BOT}}", "chatId": "{{message.chat.id}}",
                                       "messageType": "text", "messageText": "hi"})
        assert result.valid is True

    def test_type_specific_requirements(self, node):
        result = node.validate_config({"botToken": "t", "chatId": "1", "messageType": "location",
                                       "latitude": 100}, resolved=True)
        assert "Latitude must be at most 90" in result.errors
        assert "Longitude is required" in result.errors

    def test_poll_option_count(self, node):
        result = node.validate_config({"botToken": "t", "chatId": "1", "messageType": "poll",
                                       "pollQuestion": "Q?", "pollOptions": "only"}, resolved=True)
        assert result.errors == ["Poll requires between 2 and 10 options"]


class TestSend:
    @pytest.mark.asyncio
    async def test_text_message(self, node, make_context, recording_transport):
        config = {
            "botToken": "123:abc",
            "chatId": "{{message.chat.id}}",
            "messageType": "text",
            "messageText": "You said {{message.text}}",
            "parseMode": "HTML",
        }

        result = await node.execute(config, UPDATE, [], make_context(node_type=node.type, input_data=UPDATE))

        assert result.success is True
        assert result.data["messageId"] == 1
        assert result.data["chatId"] == "42"
        request = recording_transport.requests[0]
        assert str(request.url) == "https://api.telegram.org/bot123:abc/sendMessage"
        assert json.loads(request.content) == {"chat_id": "42", "text": "You said hi", "parse_mode": "HTML"}

    @pytest.mark.asyncio
    async def test_photo_uses_send_photo(self, node, make_context, recording_transport):
        config = {"botToken": "t", "chatId": "7", "messageType": "photo",
                  "photoUrl": "https://example.com/cat.png", "photoCaption": "Cat"}

        result = await node.execute(config, {}, [], make_context(node_type=node.type))

        assert result.success is True
        request = recording_transport.requests[0]
        assert request.url.path.endswith("/sendPhoto")
        assert json.loads(request.content) == {"chat_id": "7", "photo": "https://example.com/cat.png", "caption": "Cat"}

    @pytest.mark.asyncio
    async def test_platform_error_becomes_failed_result(self, node, make_context):
        transport = RecordingTransport(status_code=400, json_body={"ok": False, "description": "Bad Request: chat not found"})
        services = ExecutionServices(http_client=httpx.AsyncClient(transport=httpx.MockTransport(transport)))
        config = {"botToken": "t", "chatId": "7", "messageText": "hi"}

        result = await node.execute(config, {}, [], make_context(node_type=node.type, services=services))

        assert result.success is False
        assert result.error == "Telegram API error: Bad Request: chat not found"
        assert len(transport.requests) == 1


class TestPollOptions:
    def test_json_array(self):
        assert parse_poll_options('["Yes", "No"]') == ["Yes", "No"]

    def test_comma_separated(self):
        assert parse_poll_options("Yes, No , Maybe") == ["Yes", "No", "Maybe"]

    def test_list(self):
        assert parse_poll_options(["a", " ", "b"]) == ["a", "b"]

    def test_invalid_json(self):
        with pytest.raises(ValueError):
            parse_poll_options("[not json")
