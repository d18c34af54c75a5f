# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .chat_service import ChatService
from .workflow_service import WorkflowService

__all__ = ["ChatService", "WorkflowService"]
