# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for ChatSessionStore
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from chatflow.chat.session_store import ChatSessionStore
from chatflow.core.errors import SessionNotFoundError, ValidationError


@pytest.fixture
def store():
    return ChatSessionStore()


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_generates_id(self, store):
        session, created = await store.create_or_get_session(workflow_id="wf_1")
        assert created is True
        assert session.id
        assert session.user_name == "Guest"
        assert session.workflow_id == "wf_1"

    @pytest.mark.asyncio
    async def test_create_is_idempotent(self, store):
        first, created_first = await store.create_or_get_session("s1", workflow_id="wf_1", user_name="Ada")
        await store.append_user_message("s1", "hello")

        second, created_second = await store.create_or_get_session("s1", workflow_id="wf_1", user_name="Bob")

        assert created_first is True
        assert created_second is False
        assert second is first
        assert second.user_name == "Ada"
        assert [m.content for m in second.messages] == ["hello"]

    @pytest.mark.asyncio
    async def test_concurrent_creation_yields_one_session(self, store):
        results = await asyncio.gather(*[store.create_or_get_session("same") for _ in range(5)])
        assert sum(1 for _, created in results if created) == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_unknown_session_raises(self, store):
        with pytest.raises(SessionNotFoundError):
            await store.append_user_message("nope", "hi")
        with pytest.raises(SessionNotFoundError):
            await store.append_bot_message("nope", "hi")
        with pytest.raises(SessionNotFoundError):
            await store.poll_messages("nope")
        with pytest.raises(SessionNotFoundError):
            await store.get_session("nope")

    @pytest.mark.asyncio
    async def test_list_filter_close_and_delete(self, store):
        await store.create_or_get_session("a", workflow_id="wf_1")
        await store.create_or_get_session("b", workflow_id="wf_2")

        assert [s.id for s in await store.list_sessions("wf_1")] == ["a"]
        assert len(await store.list_sessions()) == 2

        closed = await store.close_session("a")
        assert closed.is_active is False

        assert await store.delete_session("b") is True
        assert await store.delete_session("b") is False
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_purge_inactive(self, store):
        old, _ = await store.create_or_get_session("old")
        await store.create_or_get_session("fresh")
        old.updated_at = (datetime.now(timezone.utc) - timedelta(hours=48)).isoformat()

        assert await store.purge_inactive(24) == 1
        assert [s.id for s in await store.list_sessions()] == ["fresh"]

    @pytest.mark.asyncio
    async def test_removed_sessions_leave_no_locks(self, store):
        old, _ = await store.create_or_get_session("old")
        await store.create_or_get_session("gone")
        old.updated_at = (datetime.now(timezone.utc) - timedelta(hours=48)).isoformat()
        await store.purge_inactive(24)
        await store.delete_session("gone")

        for session_id in ("old", "gone"):
            with pytest.raises(SessionNotFoundError):
                await store.append_bot_message(session_id, "late reply")
            with pytest.raises(SessionNotFoundError):
                await store.close_session(session_id)

        assert store._locks == {}


class TestMessages:
    @pytest.mark.asyncio
    async def test_messages_only_grow(self, store):
        await store.create_or_get_session("s1")
        await store.append_user_message("s1", "one")
        await store.append_bot_message("s1", "two")
        await store.poll_messages("s1")
        await store.append_user_message("s1", "three")

        session = await store.get_session("s1")
        assert [m.content for m in session.messages] == ["one", "two", "three"]
        assert [m.type for m in session.messages] == ["user", "bot", "user"]

    @pytest.mark.asyncio
    async def test_bot_message_is_pending_until_polled(self, store):
        await store.create_or_get_session("s1")
        message = await store.append_bot_message("s1", "reply", metadata={"nodeId": "n1"})

        result = await store.poll_messages("s1")

        assert [m.id for m in result.pending_responses] == [message.id]
        assert result.has_new_messages is True
        assert (await store.get_session("s1")).pending_responses == []

    @pytest.mark.asyncio
    async def test_pending_drained_at_most_once(self, store):
        await store.create_or_get_session("s1")
        for i in range(3):
            await store.append_bot_message("s1", f"reply {i}")

        polls = await asyncio.gather(*[store.poll_messages("s1") for _ in range(4)])

        delivered = [m.content for poll in polls for m in poll.pending_responses]
        assert sorted(delivered) == ["reply 0", "reply 1", "reply 2"]

    @pytest.mark.asyncio
    async def test_repeated_polls_without_new_bot_messages(self, store):
        await store.create_or_get_session("s1")
        user_message = await store.append_user_message("s1", "hello")

        first = await store.poll_messages("s1", after=user_message.timestamp)
        second = await store.poll_messages("s1", after=user_message.timestamp)

        for result in (first, second):
            assert result.has_new_messages is False
            assert result.pending_responses == []

    @pytest.mark.asyncio
    async def test_after_filters_older_messages(self, store):
        await store.create_or_get_session("s1")
        first = await store.append_user_message("s1", "first")
        await asyncio.sleep(0.01)
        await store.append_user_message("s1", "second")

        result = await store.poll_messages("s1", after=first.timestamp)

        assert [m.content for m in result.messages] == ["second"]
        assert result.has_new_messages is True

    @pytest.mark.asyncio
    async def test_invalid_after(self, store):
        await store.create_or_get_session("s1")
        with pytest.raises(ValidationError):
            await store.poll_messages("s1", after="yesterday")

    @pytest.mark.asyncio
    async def test_unsupported_message_type(self, store):
        await store.create_or_get_session("s1")
        with pytest.raises(ValidationError):
            await store.append_bot_message("s1", "hi", message_type="video")

    @pytest.mark.asyncio
    async def test_buttons_are_kept(self, store):
        await store.create_or_get_session("s1")
        message = await store.append_bot_message("s1", "Pick one", buttons=[{"text": "Yes", "value": "yes"}])
        assert message.buttons[0].text == "Yes"
