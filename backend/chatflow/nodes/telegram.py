# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Telegram Send Message node.

Calls the Telegram Bot API: POST https://api.telegram.org/bot{token}/{method}
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, List

from chatflow.engine.context import ExecutionContext
from chatflow.engine.exceptions import ExternalAPIError
from chatflow.engine.models import NodeExecutionResult
from .base import BaseNode, NodeParameter, ensure_ok_json, is_blank


TELEGRAM_API_BASE = "https://api.telegram.org"

MESSAGE_TYPES = [
    "text", "photo", "video", "audio", "voice", "document",
    "animation", "sticker", "location", "contact", "poll", "banUser",
]

# messageType -> (Bot API method, config field holding the media, payload key)
MEDIA_METHODS = {
    "photo": ("sendPhoto", "photoUrl", "photo"),
    "video": ("sendVideo", "videoUrl", "video"),
    "audio": ("sendAudio", "audioUrl", "audio"),
    "voice": ("sendVoice", "voiceUrl", "voice"),
    "document": ("sendDocument", "documentUrl", "document"),
    "animation": ("sendAnimation", "animationUrl", "animation"),
    "sticker": ("sendSticker", "stickerFileId", "sticker"),
}

CAPTION_FIELDS = {
    "photo": "photoCaption",
    "video": "videoCaption",
    "audio": "audioCaption",
}

# Required fields per message type, with the label used in error messages
TYPE_REQUIREMENTS = {
    "text": [("messageText", "Message Text")],
    "photo": [("photoUrl", "Photo URL")],
    "video": [("videoUrl", "Video URL")],
    "audio": [("audioUrl", "Audio URL")],
    "voice": [("voiceUrl", "Voice URL")],
    "document": [("documentUrl", "Document URL")],
    "animation": [("animationUrl", "Animation URL")],
    "sticker": [("stickerFileId", "Sticker File ID")],
    "location": [("latitude", "Latitude"), ("longitude", "Longitude")],
    "contact": [("contactPhoneNumber", "Contact Phone Number"), ("contactFirstName", "Contact First Name")],
    "poll": [("pollQuestion", "Poll Question"), ("pollOptions", "Poll Options")],
    "banUser": [("banUserId", "User ID")],
}


def parse_poll_options(value: Any) -> List[str]:
    """Poll options from a list, a JSON array string, or comma-separated values"""
    if isinstance(value, list):
        return [str(option).strip() for option in value if str(option).strip()]
    text = str(value or "").strip()
    if text.startswith("["):
        try:
            options = json.loads(text)
        except ValueError:
            raise ValueError("Invalid poll options format. Provide JSON array or comma-separated values.")
        if not isinstance(options, list):
            raise ValueError("Invalid poll options format. Provide JSON array or comma-separated values.")
        return [str(option).strip() for option in options if str(option).strip()]
    return [option.strip() for option in text.split(",") if option.strip()]


def _to_number(value: Any):
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return int(number) if number.is_integer() else number


class TelegramSendMessageNode(BaseNode):
    type = "telegramSendMessage"
    display_name = "Telegram Send Message"
    description = "Send a message, media, location, contact or poll through a Telegram bot"
    parameters = {
        "botToken": NodeParameter(
            type="string",
            label="Bot API Token",
            required=True,
            description="The API token for your Telegram bot."
        ),
        "chatId": NodeParameter(
            type="string",
            label="Chat ID",
            default="{{message.chat.id}}",
            required=True,
            description="Chat ID where to send the message. Use template variables like {{message.chat.id}}"
        ),
        "messageType": NodeParameter(
            type="options",
            label="Message Type",
            default="text",
            required=True,
            options=MESSAGE_TYPES,
        ),
        "messageText": NodeParameter(
            type="string",
            label="Message Text",
            default="Hello! This is an automated response from the workflow.",
            description="Supports templates like {{message.text}}."
        ),
        "parseMode": NodeParameter(type="options", label="Parse Mode", default="none",
                                   options=["none", "HTML", "Markdown", "MarkdownV2"]),
        "disableWebPagePreview": NodeParameter(type="boolean", label="Disable Web Page Preview", default=False),
        "photoUrl": NodeParameter(type="string", label="Photo URL"),
        "photoCaption": NodeParameter(type="string", label="Photo Caption"),
        "videoUrl": NodeParameter(type="string", label="Video URL"),
        "videoCaption": NodeParameter(type="string", label="Video Caption"),
        "videoDuration": NodeParameter(type="number", label="Video Duration", min=0),
        "audioUrl": NodeParameter(type="string", label="Audio URL"),
        "audioCaption": NodeParameter(type="string", label="Audio Caption"),
        "voiceUrl": NodeParameter(type="string", label="Voice URL"),
        "documentUrl": NodeParameter(type="string", label="Document URL"),
        "animationUrl": NodeParameter(type="string", label="Animation URL"),
        "stickerFileId": NodeParameter(type="string", label="Sticker File ID"),
        "latitude": NodeParameter(type="number", label="Latitude", min=-90, max=90),
        "longitude": NodeParameter(type="number", label="Longitude", min=-180, max=180),
        "locationHorizontalAccuracy": NodeParameter(type="number", label="Horizontal Accuracy", min=0, max=1500),
        "contactPhoneNumber": NodeParameter(type="string", label="Contact Phone Number"),
        "contactFirstName": NodeParameter(type="string", label="Contact First Name"),
        "contactLastName": NodeParameter(type="string", label="Contact Last Name"),
        "pollQuestion": NodeParameter(type="string", label="Poll Question"),
        "pollOptions": NodeParameter(type="string", label="Poll Options",
                                     description="JSON array or comma-separated values"),
        "banUserId": NodeParameter(type="string", label="User ID"),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        message_type = config.get("messageType", "text")
        errors = []
        for field_name, label in TYPE_REQUIREMENTS.get(message_type, []):
            value = config.get(field_name)
            missing = is_blank(value) if resolved else value in (None, "")
            if missing:
                errors.append(f"{label} is required")

        if message_type == "poll" and resolved and not is_blank(config.get("pollOptions")):
            try:
                options = parse_poll_options(config["pollOptions"])
            except ValueError as e:
                errors.append(str(e))
            else:
                if not 2 <= len(options) <= 10:
                    errors.append("Poll requires between 2 and 10 options")
        return errors

    def build_request(self, config: Dict[str, Any]):
        """Return (method, payload) for the configured message type"""
        message_type = config.get("messageType", "text")
        chat_id = config["chatId"]

        if message_type == "text":
            payload = {"chat_id": chat_id, "text": config["messageText"]}
            if config.get("parseMode") and config["parseMode"] != "none":
                payload["parse_mode"] = config["parseMode"]
            if config.get("disableWebPagePreview"):
                payload["disable_web_page_preview"] = True
            return "sendMessage", payload

        if message_type in MEDIA_METHODS:
            method, field_name, key = MEDIA_METHODS[message_type]
            payload = {"chat_id": chat_id, key: config[field_name]}
            caption = config.get(CAPTION_FIELDS.get(message_type, ""))
            if caption:
                payload["caption"] = caption
            if message_type == "video" and _to_number(config.get("videoDuration")):
                payload["duration"] = _to_number(config["videoDuration"])
            return method, payload

        if message_type == "location":
            payload = {
                "chat_id": chat_id,
                "latitude": _to_number(config["latitude"]),
                "longitude": _to_number(config["longitude"]),
            }
            accuracy = _to_number(config.get("locationHorizontalAccuracy"))
            if accuracy:
                payload["horizontal_accuracy"] = accuracy
            return "sendLocation", payload

        if message_type == "contact":
            payload = {
                "chat_id": chat_id,
                "phone_number": config["contactPhoneNumber"],
                "first_name": config["contactFirstName"],
            }
            if config.get("contactLastName"):
                payload["last_name"] = config["contactLastName"]
            return "sendContact", payload

        if message_type == "poll":
            return "sendPoll", {
                "chat_id": chat_id,
                "question": config["pollQuestion"],
                "options": parse_poll_options(config["pollOptions"]),
            }

        if message_type == "banUser":
            return "banChatMember", {"chat_id": chat_id, "user_id": config["banUserId"]}

        raise ValueError(f"Unsupported message type: {message_type}")

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        method, payload = self.build_request(config)
        url = f"{TELEGRAM_API_BASE}/bot{config['botToken']}/{method}"

        async with context.services.http() as client:
            response = await client.post(url, json=payload)

        body = ensure_ok_json("Telegram", response)
        if not body.get("ok"):
            raise ExternalAPIError("Telegram", body.get("description") or "request rejected")

        result = body.get("result")
        message_id = result.get("message_id") if isinstance(result, dict) else None
        return NodeExecutionResult.ok(
            self.type,
            {
                "messageId": message_id,
                "chatId": config["chatId"],
                "messageType": config.get("messageType", "text"),
                "sentAt": datetime.now(timezone.utc).isoformat(),
                "response": result,
            },
            message=f"Telegram {config.get('messageType', 'text')} sent",
        )
