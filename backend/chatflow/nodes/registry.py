# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node Registry

Explicit map from type tag to node class. No module-level singleton: the
application builds one registry at startup and injects it.
"""

from typing import Any, Dict, List, Type

from chatflow.engine.exceptions import UnknownNodeTypeError
from chatflow.engine.models import NodeCategory
from .base import BaseNode


class NodeRegistry:
    """Catalog of node types available to workflows"""

    def __init__(self):
        self._nodes: Dict[str, Type[BaseNode]] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, node_class: Type[BaseNode], aliases: List[str] = None) -> Type[BaseNode]:
        if not node_class.type:
            raise ValueError(f"{node_class.__name__} has no type tag")
        self._nodes[node_class.type] = node_class
        for alias in aliases or []:
            self._aliases[alias] = node_class.type
        return node_class

    def _canonical(self, node_type: str) -> str:
        return self._aliases.get(node_type, node_type)

    def has(self, node_type: str) -> bool:
        return self._canonical(node_type) in self._nodes

    def get(self, node_type: str) -> Type[BaseNode]:
        node_class = self._nodes.get(self._canonical(node_type))
        if node_class is None:
            raise UnknownNodeTypeError(node_type)
        return node_class

    def create(self, node_type: str) -> BaseNode:
        return self.get(node_type)()

    def is_trigger(self, node_type: str) -> bool:
        if not self.has(node_type):
            return False
        return self.get(node_type).category == NodeCategory.TRIGGER

    def list_types(self) -> List[str]:
        return sorted(self._nodes.keys())

    def describe(self) -> List[Dict[str, Any]]:
        return [self._nodes[node_type].describe() for node_type in self.list_types()]


def build_default_registry() -> NodeRegistry:
    """Registry with every built-in node type"""
    from .triggers import ChatTriggerNode, TelegramTriggerNode, WebhookTriggerNode
    from .telegram import TelegramSendMessageNode
    from .chat import ChatResponseNode
    from .ai_agent import AIAgentNode
    from .social import (
        FacebookSendMessageNode,
        InstagramSendDMNode,
        WhatsAppSendMessageNode,
        LinkedInCreatePostNode,
    )
    from .http import HttpRequestNode, DataStorageNode
    from .logic import IfNode, SwitchNode, FilterNode, MergeNode

    registry = NodeRegistry()

    registry.register(ChatTriggerNode)
    registry.register(TelegramTriggerNode)
    registry.register(WebhookTriggerNode, aliases=["trigger", "manualTrigger"])

    registry.register(TelegramSendMessageNode)
    registry.register(ChatResponseNode, aliases=["chatTriggerResponse"])
    registry.register(AIAgentNode)
    registry.register(FacebookSendMessageNode)
    registry.register(InstagramSendDMNode)
    registry.register(WhatsAppSendMessageNode)
    registry.register(LinkedInCreatePostNode)
    registry.register(HttpRequestNode)
    registry.register(DataStorageNode)

    registry.register(IfNode)
    registry.register(SwitchNode)
    registry.register(FilterNode)
    registry.register(MergeNode)

    return registry
