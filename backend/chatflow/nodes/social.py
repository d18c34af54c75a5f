# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Social platform send nodes: Facebook Messenger, Instagram DM, WhatsApp Cloud
API and LinkedIn posts.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeExecutionResult
from .base import BaseNode, NodeParameter, ensure_ok_json, is_blank


GRAPH_API_BASE = "https://graph.facebook.com/v18.0"
LINKEDIN_API_BASE = "https://api.linkedin.com/v2"

MEDIA_TYPES = ("image", "video", "audio", "file")
PHONE_PATTERN = re.compile(r"^\+\d{10,15}$")
LINKEDIN_MAX_CHARS = 3000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_json(value: Any, what: str) -> Any:
    if isinstance(value, (dict, list)):
        return value
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {what} JSON format")


def _missing(value: Any, resolved: bool) -> bool:
    return is_blank(value) if resolved else value in (None, "")


# =============================================================================
# FACEBOOK
# =============================================================================

class FacebookSendMessageNode(BaseNode):
    type = "facebookSendMessage"
    display_name = "Facebook Send Message"
    description = "Send a Messenger message from a Facebook Page"
    parameters = {
        "pageId": NodeParameter(type="string", label="Page ID", required=True),
        "recipientId": NodeParameter(
            type="string",
            label="Recipient ID",
            default="{{sender.id}}",
            required=True,
            description="Page-scoped ID of the user"
        ),
        "messageType": NodeParameter(
            type="options",
            label="Message Type",
            default="text",
            options=["text", "image", "video", "audio", "file", "template", "quick_reply"],
        ),
        "messageText": NodeParameter(type="string", label="Message Text"),
        "mediaUrl": NodeParameter(type="string", label="Media URL"),
        "quickReplies": NodeParameter(type="json", label="Quick Replies"),
        "template": NodeParameter(type="json", label="Template"),
        "notificationType": NodeParameter(
            type="options",
            label="Notification Type",
            default="REGULAR",
            options=["REGULAR", "SILENT_PUSH", "NO_PUSH"],
        ),
        "accessToken": NodeParameter(type="string", label="Page Access Token", required=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        message_type = config.get("messageType", "text")
        errors = []
        if message_type == "text" and _missing(config.get("messageText"), resolved):
            errors.append("Message Text is required")
        if message_type in MEDIA_TYPES and _missing(config.get("mediaUrl"), resolved):
            errors.append(f"Media URL is required for {message_type} messages")
        if message_type == "template" and _missing(config.get("template"), resolved):
            errors.append("Template data is required for template messages")
        return errors

    def build_message(self, config: Dict[str, Any]) -> Dict[str, Any]:
        message_type = config.get("messageType", "text")
        if message_type in MEDIA_TYPES:
            return {"attachment": {"type": message_type, "payload": {"url": config["mediaUrl"], "is_reusable": True}}}
        if message_type == "template":
            return {"attachment": {"type": "template", "payload": _parse_json(config["template"], "template")}}
        if message_type == "quick_reply":
            message = {"text": config.get("messageText") or "Please choose an option:"}
            if config.get("quickReplies"):
                message["quick_replies"] = _parse_json(config["quickReplies"], "quick replies")
            return message
        return {"text": config.get("messageText", "")}

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        payload = {
            "recipient": {"id": config["recipientId"]},
            "message": self.build_message(config),
            "notification_type": config.get("notificationType", "REGULAR"),
        }
        async with context.services.http() as client:
            response = await client.post(
                f"{GRAPH_API_BASE}/me/messages",
                params={"access_token": config["accessToken"]},
                json=payload,
            )
        body = ensure_ok_json("Facebook", response)

        return NodeExecutionResult.ok(
            self.type,
            {
                "messageId": body.get("message_id"),
                "recipientId": body.get("recipient_id", config["recipientId"]),
                "pageId": config["pageId"],
                "messageType": config.get("messageType", "text"),
                "sentAt": _now(),
            },
            message="Facebook message sent",
        )


# =============================================================================
# INSTAGRAM
# =============================================================================

class InstagramSendDMNode(BaseNode):
    type = "instagramSendDM"
    display_name = "Instagram Send DM"
    description = "Send a direct message from an Instagram business account"
    parameters = {
        "accountId": NodeParameter(type="string", label="Instagram Account ID", required=True),
        "recipientId": NodeParameter(
            type="string",
            label="Recipient ID",
            default="{{sender.id}}",
            required=True,
        ),
        "messageType": NodeParameter(
            type="options",
            label="Message Type",
            default="text",
            options=["text", "image", "video", "audio"],
        ),
        "messageText": NodeParameter(type="string", label="Message Text"),
        "mediaUrl": NodeParameter(type="string", label="Media URL"),
        "accessToken": NodeParameter(type="string", label="Access Token", required=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        message_type = config.get("messageType", "text")
        if message_type == "text" and _missing(config.get("messageText"), resolved):
            return ["Message Text is required for text messages"]
        if message_type in MEDIA_TYPES and _missing(config.get("mediaUrl"), resolved):
            return [f"Media URL is required for {message_type} messages"]
        return []

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        message_type = config.get("messageType", "text")
        if message_type == "text":
            message = {"text": config["messageText"]}
        else:
            message = {"attachment": {"type": message_type, "payload": {"url": config["mediaUrl"]}}}

        async with context.services.http() as client:
            response = await client.post(
                f"{GRAPH_API_BASE}/{config['accountId']}/messages",
                params={"access_token": config["accessToken"]},
                json={"recipient": {"id": config["recipientId"]}, "message": message},
            )
        body = ensure_ok_json("Instagram", response)

        return NodeExecutionResult.ok(
            self.type,
            {
                "messageId": body.get("message_id"),
                "recipientId": config["recipientId"],
                "accountId": config["accountId"],
                "messageType": message_type,
                "sentAt": _now(),
            },
            message="Instagram DM sent",
        )


# =============================================================================
# WHATSAPP
# =============================================================================

class WhatsAppSendMessageNode(BaseNode):
    type = "whatsappSendMessage"
    display_name = "WhatsApp Send Message"
    description = "Send a text or template message through the WhatsApp Cloud API"
    parameters = {
        "phoneNumber": NodeParameter(
            type="string",
            label="Recipient Phone Number",
            required=True,
            description="International format, e.g. +15551234567"
        ),
        "messageType": NodeParameter(type="options", label="Message Type", default="text",
                                     options=["text", "template"]),
        "messageText": NodeParameter(type="string", label="Message Text"),
        "templateName": NodeParameter(type="string", label="Template Name", default="hello_world"),
        "languageCode": NodeParameter(type="string", label="Language Code", default="en_US"),
        "phoneNumberId": NodeParameter(type="string", label="Phone Number ID", required=True),
        "accessToken": NodeParameter(type="string", label="Access Token", required=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        errors = []
        phone = config.get("phoneNumber")
        if resolved and not is_blank(phone) and not PHONE_PATTERN.match(str(phone).replace(" ", "")):
            errors.append("Phone number must be in international format (+ followed by 10-15 digits)")
        if config.get("messageType", "text") == "text" and _missing(config.get("messageText"), resolved):
            errors.append("Message Text is required")
        return errors

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        message_type = config.get("messageType", "text")
        body = {
            "messaging_product": "whatsapp",
            "to": re.sub(r"\D", "", str(config["phoneNumber"])),
            "type": message_type,
        }
        if message_type == "template":
            body["template"] = {
                "name": config.get("templateName") or "hello_world",
                "language": {"code": config.get("languageCode") or "en_US"},
            }
        else:
            body["text"] = {"body": config["messageText"]}

        async with context.services.http() as client:
            response = await client.post(
                f"{GRAPH_API_BASE}/{config['phoneNumberId']}/messages",
                headers={"Authorization": f"Bearer {config['accessToken']}"},
                json=body,
            )
        data = ensure_ok_json("WhatsApp", response)

        messages = data.get("messages") or [{}]
        return NodeExecutionResult.ok(
            self.type,
            {
                "messageId": messages[0].get("id"),
                "status": messages[0].get("message_status", "sent"),
                "to": body["to"],
                "messageType": message_type,
                "sentAt": _now(),
            },
            message="WhatsApp message sent",
        )


# =============================================================================
# LINKEDIN
# =============================================================================

def append_hashtags(text: str, hashtags: Any) -> str:
    if not hashtags:
        return text
    tags = hashtags if isinstance(hashtags, list) else str(hashtags).split(",")
    rendered = " ".join(f"#{tag.strip().lstrip('#')}" for tag in tags if tag.strip())
    return f"{text}\n\n{rendered}" if rendered else text


class LinkedInCreatePostNode(BaseNode):
    type = "linkedinCreatePost"
    display_name = "LinkedIn Create Post"
    description = "Publish a UGC post for a member or an organization"
    parameters = {
        "postType": NodeParameter(type="options", label="Post Type", default="personal",
                                  options=["personal", "company"]),
        "personId": NodeParameter(type="string", label="Person ID",
                                  description="Member id (required for personal posts)"),
        "companyId": NodeParameter(type="string", label="Company ID",
                                   description="Organization id (required for company posts)"),
        "postText": NodeParameter(type="string", label="Post Text", required=True),
        "visibility": NodeParameter(type="options", label="Post Visibility", default="PUBLIC",
                                    options=["PUBLIC", "CONNECTIONS"]),
        "linkUrl": NodeParameter(type="string", label="Link URL"),
        "linkTitle": NodeParameter(type="string", label="Link Title"),
        "linkDescription": NodeParameter(type="string", label="Link Description"),
        "hashtags": NodeParameter(type="string", label="Hashtags", description="Comma-separated"),
        "accessToken": NodeParameter(type="string", label="Access Token", required=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        errors = []
        post_type = config.get("postType", "personal")
        if post_type == "company" and _missing(config.get("companyId"), resolved):
            errors.append("Company ID is required for company posts")
        if post_type == "personal" and _missing(config.get("personId"), resolved):
            errors.append("Person ID is required for personal posts")
        if resolved and isinstance(config.get("postText"), str):
            text = append_hashtags(config["postText"], config.get("hashtags"))
            if len(text) > LINKEDIN_MAX_CHARS:
                errors.append(f"Post text exceeds {LINKEDIN_MAX_CHARS} characters ({len(text)})")
        return errors

    def build_payload(self, config: Dict[str, Any]) -> Dict[str, Any]:
        if config.get("postType", "personal") == "company":
            author = f"urn:li:organization:{config['companyId']}"
        else:
            author = f"urn:li:person:{config['personId']}"

        share: Dict[str, Any] = {
            "shareCommentary": {"text": append_hashtags(config["postText"], config.get("hashtags"))},
            "shareMediaCategory": "NONE",
        }
        if config.get("linkUrl"):
            share["shareMediaCategory"] = "ARTICLE"
            share["media"] = [{
                "status": "READY",
                "originalUrl": config["linkUrl"],
                "title": {"text": config.get("linkTitle") or ""},
                "description": {"text": config.get("linkDescription") or ""},
            }]

        return {
            "author": author,
            "lifecycleState": "PUBLISHED",
            "specificContent": {"com.linkedin.ugc.ShareContent": share},
            "visibility": {"com.linkedin.ugc.MemberNetworkVisibility": config.get("visibility", "PUBLIC")},
        }

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        payload = self.build_payload(config)
        async with context.services.http() as client:
            response = await client.post(
                f"{LINKEDIN_API_BASE}/ugcPosts",
                headers={
                    "Authorization": f"Bearer {config['accessToken']}",
                    "X-Restli-Protocol-Version": "2.0.0",
                },
                json=payload,
            )
        body = ensure_ok_json("LinkedIn", response)

        post_id = body.get("id") or response.headers.get("x-restli-id")
        text = payload["specificContent"]["com.linkedin.ugc.ShareContent"]["shareCommentary"]["text"]
        return NodeExecutionResult.ok(
            self.type,
            {
                "postId": post_id,
                "url": f"https://www.linkedin.com/feed/update/{post_id}" if post_id else None,
                "characterCount": len(text),
                "visibility": config.get("visibility", "PUBLIC"),
                "createdAt": _now(),
            },
            message="LinkedIn post created",
        )
