# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat widget sessions.
"""

from chatflow.chat.session_store import ChatSessionStore
from chatflow.chat.models import ChatMessage, ChatSession, PollResult

__all__ = ["ChatSessionStore", "ChatMessage", "ChatSession", "PollResult"]
