# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow node types and the registry that maps type tags to them.
"""

from chatflow.nodes.base import BaseNode, NodeParameter, ValidationResult
from chatflow.nodes.registry import NodeRegistry, build_default_registry

__all__ = ["BaseNode", "NodeParameter", "ValidationResult", "NodeRegistry", "build_default_registry"]
