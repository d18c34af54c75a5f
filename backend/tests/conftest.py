# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared fixtures for the Chatflow backend tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import httpx
import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from chatflow.chat.session_store import ChatSessionStore
from chatflow.core.config import Config
from chatflow.engine.context import ExecutionContext, ExecutionServices
from chatflow.nodes.registry import build_default_registry


@pytest.fixture
def temp_dir():
    """Temporary directory removed after the test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry():
    return build_default_registry()


@pytest.fixture
def session_store():
    return ChatSessionStore()


class RecordingTransport:
    """httpx.MockTransport handler that records requests and replies with a canned response"""

    def __init__(self, status_code: int = 200, json_body: Any = None):
        self.status_code = status_code
        self.json_body = json_body if json_body is not None else {"ok": True, "result": {"message_id": 1}}
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.json_body)


@pytest.fixture
def recording_transport():
    return RecordingTransport()


@pytest.fixture
def services(session_store, recording_transport):
    """ExecutionServices wired to the in-memory session store and a mock HTTP transport"""
    return ExecutionServices(
        session_store=session_store,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(recording_transport)),
    )


@pytest.fixture
def make_context(services):
    """Build an ExecutionContext for a single node invocation"""
    def _make(node_id: str = "node1", node_type: str = "test", input_data: Any = None,
              nodes_map: Dict[str, Dict[str, Any]] = None, **kwargs) -> ExecutionContext:
        nodes_map = nodes_map or {
            node_id: {
                "id": node_id,
                "type": node_type,
                "label": None,
                "config": {},
                "input_data": input_data,
                "output_data": None,
            }
        }
        return ExecutionContext(
            "exec_test",
            {"id": "wf_test", "name": "Test Workflow", "active": True},
            node_id,
            nodes_map,
            services=kwargs.pop("services", services),
            **kwargs,
        )
    return _make


@pytest.fixture
def test_config(temp_dir):
    """Config pointing every data path at a temporary directory"""
    return Config(
        public_base_url="http://testserver",
        workflows_path=str(temp_dir / "workflows"),
        state_file=str(temp_dir / "state" / "active_workflows.json"),
        executions_path=str(temp_dir / "executions"),
        node_timeout=5.0,
        log_format="text",
    )


def chat_workflow(workflow_id: str = "wf_chat", reply: str = "Echo: {{message.content}}") -> Dict[str, Any]:
    """chatTrigger -> chatResponse"""
    return {
        "id": workflow_id,
        "name": "Chat echo",
        "nodes": [
            {"id": "trigger", "type": "chatTrigger", "label": "Chat Trigger", "config": {}},
            {"id": "reply", "type": "chatResponse", "label": "Reply", "config": {"responseText": reply}},
        ],
        "edges": [{"source": "trigger", "target": "reply"}],
    }


@pytest.fixture
def chat_workflow_factory():
    return chat_workflow
