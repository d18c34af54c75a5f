# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Context

Per-node-invocation view of a workflow run: the current node, every graph
node with its output so far, workflow metadata, and the collaborators a node
may use for side effects.
"""

import re
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional, Tuple, Union

import httpx

from . import templates
from .templates import UnresolvedPolicy


MAX_EXPRESSION_DEPTH = 3

NODE_REFERENCE_PATTERN = re.compile(
    r"^\$node\[\s*[\"']?(?P<name>[^\"'\]]+)[\"']?\s*\](?:\.json)?(?:\.(?P<rest>.+))?$"
)


@dataclass
class ExecutionServices:
    """
    Collaborators handed to nodes.

    Nodes reach outbound platforms only through `http()` and the chat widget
    only through `session_store`, so tests can swap both.
    """
    session_store: Any = None
    http_client: Optional[httpx.AsyncClient] = None
    http_timeout: float = 30.0
    anthropic_client: Any = None
    anthropic_api_key: Optional[str] = None
    default_ai_model: str = "claude-3-5-sonnet-20241022"
    default_max_tokens: int = 1024
    env: Dict[str, Any] = field(default_factory=dict)

    @asynccontextmanager
    async def http(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a short-lived one when none is injected"""
        if self.http_client is not None:
            yield self.http_client
            return
        async with httpx.AsyncClient(timeout=self.http_timeout) as client:
            yield client


class ExecutionContext:
    """
    Execution context for one node invocation.

    Tracks:
    - current node id
    - nodes_map: node_id -> {type, label, config, output_data}
    - workflow metadata (id, name, active)
    """

    def __init__(
        self,
        execution_id: str,
        workflow_data: Dict[str, Any],
        current_node_id: Optional[str],
        nodes_map: Dict[str, Dict[str, Any]],
        services: Optional[ExecutionServices] = None,
        policy: Union[UnresolvedPolicy, str] = UnresolvedPolicy.KEEP_LITERAL,
    ):
        self.execution_id = execution_id
        self.workflow_data = workflow_data
        self.current_node_id = current_node_id
        self.nodes_map = nodes_map
        self.services = services or ExecutionServices()
        self.policy = UnresolvedPolicy(policy)

    @property
    def workflow_id(self) -> Optional[str]:
        return self.workflow_data.get("id")

    @property
    def current_node(self) -> Optional[Dict[str, Any]]:
        return self.nodes_map.get(self.current_node_id) if self.current_node_id else None

    def get_node_output(self, name_or_id: str) -> Optional[Dict[str, Any]]:
        """Find a node's output by id, then by label"""
        node = self.nodes_map.get(name_or_id)
        if node is None:
            for candidate in self.nodes_map.values():
                if candidate.get("label") == name_or_id:
                    node = candidate
                    break
        if node is None:
            return None
        return node.get("output_data")

    def _resolve_expression(self, expression: str, input_data: Any) -> Tuple[bool, Any]:
        expression = expression.strip()

        if expression == "$json":
            return True, templates.build_search_map(input_data)
        if expression.startswith("$json."):
            return templates.lookup(expression[len("$json."):], input_data)

        if expression.startswith("$node"):
            match = NODE_REFERENCE_PATTERN.match(expression)
            if not match:
                return False, None
            output = self.get_node_output(match.group("name").strip())
            if output is None:
                return False, None
            rest = match.group("rest")
            if not rest:
                return True, output
            return templates.lookup(rest, output)

        if expression.startswith("$workflow."):
            key = expression[len("$workflow."):]
            if key in self.workflow_data:
                return True, self.workflow_data[key]
            return False, None

        if expression in ("$execution_id", "$executionId"):
            return True, self.execution_id

        if expression == "$now":
            return True, datetime.now(timezone.utc).isoformat()

        if expression.startswith("$env."):
            key = expression[len("$env."):]
            if key in self.services.env:
                return True, self.services.env[key]
            return False, None

        return templates.lookup(expression, input_data)

    def evaluate_expression(self, template: Any, node_id: Optional[str] = None,
                            input_data: Any = None, depth: int = 0) -> Any:
        """
        Resolve a template string for `node_id` (defaults to the current node).

        Pure: reads nodes_map and workflow metadata, never mutates them.
        Values that themselves contain templates are resolved again, up to
        MAX_EXPRESSION_DEPTH.
        """
        if not isinstance(template, str) or "{{" not in template:
            return template

        if input_data is None:
            target = self.nodes_map.get(node_id or self.current_node_id) or {}
            input_data = target.get("input_data")

        resolved = templates.substitute(
            template,
            lambda expression: self._resolve_expression(expression, input_data),
            self.policy,
        )

        if resolved != template and "{{" in resolved and depth + 1 < MAX_EXPRESSION_DEPTH:
            return self.evaluate_expression(resolved, node_id, input_data, depth + 1)
        return resolved

    def process_templates(self, config: Any, node_id: Optional[str] = None, input_data: Any = None) -> Any:
        """Recursively resolve every string in a node config"""
        if isinstance(config, str):
            return self.evaluate_expression(config, node_id, input_data)
        if isinstance(config, dict):
            return {k: self.process_templates(v, node_id, input_data) for k, v in config.items()}
        if isinstance(config, list):
            return [self.process_templates(v, node_id, input_data) for v in config]
        return config
