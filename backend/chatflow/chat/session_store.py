# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat Session Store

In-memory session transcripts plus the pending-response buffer that chat
widgets drain by polling.

Concurrency:
- one asyncio.Lock per session guards every mutation of that session
- a store-level lock only guards creating session entries
- a poll swaps the pending buffer for an empty list under the session lock,
  so a bot message is handed to at most one poll
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from chatflow.core.errors import SessionNotFoundError, ValidationError
from chatflow.core.logging import get_logger
from .models import ChatButton, ChatMessage, ChatSession, PollResult


logger = get_logger("chatflow.chat.sessions")

MESSAGE_TYPES = ("text", "html", "markdown")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class ChatSessionStore:
    """Session-keyed message history with a drainable pending buffer"""

    def __init__(self):
        self._sessions: Dict[str, ChatSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._global_lock = asyncio.Lock()

    def _get_lock(self, session_id: str) -> asyncio.Lock:
        # Locks live exactly as long as their session
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFoundError(session_id)
        return lock

    def _require(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def create_or_get_session(
        self,
        session_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_email: Optional[str] = None,
        user_name: Optional[str] = None,
        website_url: Optional[str] = None,
    ) -> Tuple[ChatSession, bool]:
        """
        Return the existing session or create it.

        Idempotent: calling twice with the same id yields the same session and
        never resets its messages.

        Returns:
            (session, created)
        """
        async with self._global_lock:
            session_id = session_id or _new_id("session")
            existing = self._sessions.get(session_id)
            if existing is not None:
                return existing, False

            timestamp = _now().isoformat()
            session = ChatSession(
                id=session_id,
                workflow_id=workflow_id,
                user_id=user_id or _new_id("user"),
                user_email=user_email,
                user_name=user_name or "Guest",
                website_url=website_url,
                created_at=timestamp,
                updated_at=timestamp,
            )
            self._sessions[session_id] = session
            self._locks[session_id] = asyncio.Lock()

        logger.info(f"Created chat session {session_id} for workflow {workflow_id}")
        return session, True

    async def append_user_message(
        self,
        session_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        session = self._require(session_id)
        message = ChatMessage(
            id=_new_id("msg"),
            type="user",
            content=content,
            timestamp=_now().isoformat(),
            metadata=metadata or {},
        )
        async with self._get_lock(session_id):
            session.messages.append(message)
            session.updated_at = message.timestamp
        return message

    async def append_bot_message(
        self,
        session_id: str,
        content: str,
        message_type: str = "text",
        metadata: Optional[Dict[str, Any]] = None,
        buttons: Optional[List[Any]] = None,
    ) -> ChatMessage:
        """Append a bot reply to the transcript and the pending buffer"""
        if message_type not in MESSAGE_TYPES:
            raise ValidationError(
                f"Unsupported message type '{message_type}'",
                field="messageType"
            )

        session = self._require(session_id)
        message = ChatMessage(
            id=_new_id("msg"),
            type="bot",
            content=content,
            message_type=message_type,
            timestamp=_now().isoformat(),
            metadata=metadata or {},
            buttons=[b if isinstance(b, ChatButton) else ChatButton.model_validate(b) for b in (buttons or [])],
        )
        async with self._get_lock(session_id):
            session.messages.append(message)
            session.pending_responses.append(message)
            session.updated_at = message.timestamp

        logger.info(f"Queued bot message {message.id} for session {session_id}")
        return message

    async def poll_messages(self, session_id: str, after: Optional[str] = None) -> PollResult:
        """
        Messages strictly newer than `after` plus the drained pending buffer.

        Without `after` the full transcript is returned; it only counts as new
        when `after` is given.
        """
        session = self._require(session_id)

        after_dt = None
        if after:
            try:
                after_dt = _parse_timestamp(after)
            except ValueError:
                raise ValidationError(f"Invalid 'after' timestamp: {after}", field="after")

        async with self._get_lock(session_id):
            pending, session.pending_responses = session.pending_responses, []
            if after_dt is None:
                messages = list(session.messages)
            else:
                messages = [m for m in session.messages if _parse_timestamp(m.timestamp) > after_dt]

        has_new = bool(pending) or (after_dt is not None and bool(messages))
        return PollResult(messages=messages, pending_responses=pending, has_new_messages=has_new)

    async def get_session(self, session_id: str) -> ChatSession:
        return self._require(session_id)

    async def list_sessions(self, workflow_id: Optional[str] = None) -> List[ChatSession]:
        sessions = list(self._sessions.values())
        if workflow_id:
            sessions = [s for s in sessions if s.workflow_id == workflow_id]
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)

    async def close_session(self, session_id: str) -> ChatSession:
        session = self._require(session_id)
        async with self._get_lock(session_id):
            session.is_active = False
            session.updated_at = _now().isoformat()
        return session

    async def delete_session(self, session_id: str) -> bool:
        async with self._global_lock:
            removed = self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        return removed is not None

    async def purge_inactive(self, max_age_hours: float = 24) -> int:
        """Drop sessions with no activity for `max_age_hours`"""
        cutoff = _now() - timedelta(hours=max_age_hours)
        async with self._global_lock:
            stale = [
                session_id for session_id, session in self._sessions.items()
                if _parse_timestamp(session.updated_at) < cutoff
            ]
            for session_id in stale:
                self._sessions.pop(session_id, None)
                self._locks.pop(session_id, None)

        if stale:
            logger.info(f"Purged {len(stale)} inactive chat sessions")
        return len(stale)

    def __len__(self) -> int:
        return len(self._sessions)
