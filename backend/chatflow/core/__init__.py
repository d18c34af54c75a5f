# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the Chatflow backend.

This package contains:
- config: Configuration management
- dependencies: Dependency injection
- errors: Custom exceptions
- logging: Structured logging
"""

from chatflow.core.config import get_config, Config
from chatflow.core.errors import ChatflowError, NotFoundError, ValidationError
from chatflow.core.logging import get_logger

__all__ = [
    "get_config",
    "Config",
    "ChatflowError",
    "NotFoundError",
    "ValidationError",
    "get_logger",
]
