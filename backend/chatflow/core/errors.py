# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Errors surfaced by the Chatflow API.

Each class fixes the HTTP status it renders with; main.py turns any
ChatflowError into `{success: false, error, details}`.
"""

from typing import Optional


class ChatflowError(Exception):
    """Base class carrying an HTTP status and a details payload."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(ChatflowError):
    """Workflow, session or node type lookup missed."""

    status_code = 404

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}")
        self.identifier = identifier


class SessionNotFoundError(NotFoundError):
    def __init__(self, session_id: str):
        super().__init__("Session", session_id)


class WorkflowNotActiveError(NotFoundError):
    """Unknown to the executor, or deactivated."""

    def __init__(self, workflow_id: str):
        super().__init__("Active workflow", workflow_id)


class ValidationError(ChatflowError):
    """Bad request body, id or workflow graph; `field` names the offender when known."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, details=details)
        self.field = field


class ConflictError(ChatflowError):
    status_code = 409


class ConfigurationError(ChatflowError):
    """chatflow.yaml is unreadable or holds an unsupported value."""

    def __init__(self, message: str, config_file: Optional[str] = None):
        super().__init__(message, details={"configFile": str(config_file)} if config_file else None)


def sanitize_error_for_user(error: Exception, include_type: bool = True) -> str:
    """
    One-line message for node results and API bodies.

    Platform error bodies and tracebacks keep their first line only, capped
    at 500 characters.
    """
    lines = str(error).strip().splitlines()
    error_msg = lines[0].strip() if lines else ""
    if len(error_msg) > 500:
        error_msg = error_msg[:500] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"
    return error_msg
