# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chatflow - trigger/action workflow engine for chat and messaging platforms.
"""

__version__ = "1.0.0"
