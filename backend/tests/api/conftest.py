# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Fixtures for API tests: an isolated app per test
"""

import pytest
from fastapi.testclient import TestClient

from chatflow.main import create_app


@pytest.fixture
def app(test_config):
    return create_app(test_config)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def active_chat_workflow(client, chat_workflow_factory):
    """Create and activate the chat echo workflow; returns its id"""
    workflow = chat_workflow_factory()
    assert client.post("/api/workflows", json=workflow).status_code == 201
    assert client.post(f"/api/workflows/{workflow['id']}/activate").status_code == 200
    return workflow["id"]
