# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chat widget models
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict


class ChatButton(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str
    value: Optional[str] = None
    url: Optional[str] = None


class ChatMessage(BaseModel):
    """One message in a session transcript"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: str  # "user" | "bot"
    content: str
    message_type: str = Field(default="text", alias="messageType")  # text | html | markdown
    timestamp: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    buttons: List[ChatButton] = Field(default_factory=list)


class ChatSession(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    workflow_id: Optional[str] = Field(default=None, alias="workflowId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    user_name: str = Field(default="Guest", alias="userName")
    website_url: Optional[str] = Field(default=None, alias="websiteUrl")
    messages: List[ChatMessage] = Field(default_factory=list)
    pending_responses: List[ChatMessage] = Field(default_factory=list, alias="pendingResponses")
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")
    is_active: bool = Field(default=True, alias="isActive")

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "workflowId": self.workflow_id,
            "userName": self.user_name,
            "userEmail": self.user_email,
            "websiteUrl": self.website_url,
            "messagesCount": len(self.messages),
            "pendingCount": len(self.pending_responses),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isActive": self.is_active,
        }


class PollResult(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    pending_responses: List[ChatMessage] = Field(default_factory=list)
    has_new_messages: bool = False


# =============================================================================
# API PAYLOADS
# =============================================================================

class ChatWebhookRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    message: Optional[str] = None
    session_id: Optional[str] = Field(default=None, alias="sessionId")
    user_id: Optional[str] = Field(default=None, alias="userId")
    user_email: Optional[str] = Field(default=None, alias="userEmail")
    user_name: Optional[str] = Field(default=None, alias="userName")
    website_url: Optional[str] = Field(default=None, alias="websiteUrl")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChatResponseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: Optional[str] = None
    message: Optional[str] = None
    type: str = "text"
    metadata: Dict[str, Any] = Field(default_factory=dict)
    buttons: List[ChatButton] = Field(default_factory=list)
    delay: float = 0

    @property
    def text(self) -> str:
        return (self.content or self.message or "").strip()
