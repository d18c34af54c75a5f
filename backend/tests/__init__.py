# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Suite for the Chatflow backend

Structure:
- unit/: template resolver, context, stores, config
- nodes/: node implementations and registry
- engine/: validation and executor
- api/: HTTP endpoints through TestClient
"""
