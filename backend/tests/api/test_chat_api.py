# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for the chat widget API
"""


def send(client, workflow_id, message, **extra):
    return client.post(f"/api/chat/webhook/{workflow_id}", json={"message": message, **extra})


class TestWebhook:
    def test_message_round_trip(self, client, active_chat_workflow):
        response = send(client, active_chat_workflow, "hello", sessionId="widget-1", userName="Ada")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["sessionId"] == "widget-1"
        assert body["status"] == "processing"
        assert body["pollingInterval"] == 2.0

        poll = client.get("/api/chat/session/widget-1/messages").json()
        assert [m["content"] for m in poll["pendingResponses"]] == ["Echo: hello"]
        assert poll["hasNewMessages"] is True
        assert [m["type"] for m in poll["messages"]] == ["user", "bot"]

        again = client.get("/api/chat/session/widget-1/messages").json()
        assert again["pendingResponses"] == []

    def test_generates_session_id(self, client, active_chat_workflow):
        body = send(client, active_chat_workflow, "hi").json()
        assert body["sessionId"]

        session = client.get(f"/api/chat/session/{body['sessionId']}").json()["session"]
        assert session["workflowId"] == active_chat_workflow
        assert session["userName"] == "Guest"

    def test_empty_message(self, client, active_chat_workflow):
        response = send(client, active_chat_workflow, "   ")

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Message is required", "details": {}}

    def test_message_too_long(self, client, active_chat_workflow):
        assert send(client, active_chat_workflow, "x" * 4001).status_code == 400

    def test_inactive_workflow(self, client, chat_workflow_factory):
        client.post("/api/workflows", json=chat_workflow_factory())

        response = send(client, "wf_chat", "hello")

        assert response.status_code == 404
        assert response.json()["success"] is False

    def test_workflow_without_chat_trigger(self, client):
        client.post("/api/workflows", json={
            "id": "wf_hook",
            "nodes": [{"id": "t", "type": "webhookTrigger"}],
            "edges": [],
        })
        client.post("/api/workflows/wf_hook/activate")

        response = send(client, "wf_hook", "hello")

        assert response.status_code == 404
        assert "Chat trigger" in response.json()["error"]

    def test_welcome_message_on_new_session(self, client):
        workflow = {
            "id": "wf_welcome",
            "nodes": [{"id": "t", "type": "chatTrigger", "config": {"welcomeMessage": "Hi! How can we help?"}}],
            "edges": [],
        }
        client.post("/api/workflows", json=workflow)
        client.post("/api/workflows/wf_welcome/activate")

        send(client, "wf_welcome", "first", sessionId="s-welcome")
        send(client, "wf_welcome", "second", sessionId="s-welcome")

        session = client.get("/api/chat/session/s-welcome").json()["session"]
        assert [m["content"] for m in session["messages"]] == ["Hi! How can we help?", "first", "second"]


class TestPushAndPoll:
    def test_push_response(self, client, active_chat_workflow):
        send(client, active_chat_workflow, "hello", sessionId="s1")
        client.get("/api/chat/session/s1/messages")

        response = client.post("/api/chat/response/s1", json={
            "content": "An agent will join shortly",
            "buttons": [{"text": "OK", "value": "ok"}],
        })

        assert response.status_code == 200
        poll = client.get("/api/chat/session/s1/messages").json()
        assert poll["pendingResponses"][0]["content"] == "An agent will join shortly"
        assert poll["pendingResponses"][0]["buttons"][0]["text"] == "OK"

    def test_push_requires_content(self, client, active_chat_workflow):
        send(client, active_chat_workflow, "hello", sessionId="s1")
        response = client.post("/api/chat/response/s1", json={"content": ""})

        assert response.status_code == 400
        assert response.json()["error"] == "Message content is required"

    def test_unknown_session(self, client):
        assert client.get("/api/chat/session/nope/messages").status_code == 404
        assert client.get("/api/chat/session/nope").status_code == 404
        assert client.post("/api/chat/response/nope", json={"content": "hi"}).status_code == 404

    def test_poll_after_timestamp(self, client, active_chat_workflow):
        send(client, active_chat_workflow, "hello", sessionId="s1")
        first = client.get("/api/chat/session/s1/messages").json()
        last_seen = first["messages"][-1]["timestamp"]

        poll = client.get("/api/chat/session/s1/messages", params={"after": last_seen}).json()

        assert poll["messages"] == []
        assert poll["pendingResponses"] == []
        assert poll["hasNewMessages"] is False

    def test_invalid_after(self, client, active_chat_workflow):
        send(client, active_chat_workflow, "hello", sessionId="s1")
        assert client.get("/api/chat/session/s1/messages", params={"after": "soon"}).status_code == 400

    def test_list_sessions(self, client, active_chat_workflow):
        send(client, active_chat_workflow, "a", sessionId="s1")
        send(client, active_chat_workflow, "b", sessionId="s2")

        body = client.get("/api/chat/sessions", params={"workflowId": active_chat_workflow}).json()

        assert body["count"] == 2
        assert {s["id"] for s in body["sessions"]} == {"s1", "s2"}
        assert client.get("/api/chat/sessions", params={"workflowId": "other"}).json()["count"] == 0
