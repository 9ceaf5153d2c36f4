"""
Tests for the HTTP API.

Run with:  python -m pytest tests/test_server.py -v
"""

import pytest
import requests
from fastapi.testclient import TestClient

from conftest import FakeFactory, raw
from vista_companion.api.config import load_config
from vista_companion.api.server import NOT_CONNECTED, SCAN_QR, STILL_INITIALIZING, create_app
from vista_companion.bridge import remote as remote_module
from vista_companion.bridge.adapter import MessagingBridge
from vista_companion.bridge.models import ChatInfo
from vista_companion.bridge.provider import BridgeProvider
from vista_companion.conversation.orchestrator import Reply


class ServiceResponse:
    status_code = 200

    def __init__(self, payload):
        self._payload = payload

    def json(self):
        return self._payload


class StubConversation:
    def __init__(self, error=None):
        self.error = error

    def respond(self, text):
        if self.error is not None:
            raise self.error
        return Reply(response=f"echo: {text}", emotion="neutral")


@pytest.fixture
def config(tmp_path):
    return load_config(tmp_path / "missing.json")


@pytest.fixture
def api(config, make_bridge):
    def _api(bridge=None, conversation=None, **overrides):
        bridge = bridge or make_bridge()
        app = create_app(
            dict(config, **overrides),
            provider=BridgeProvider(lambda: bridge),
            conversation=conversation or StubConversation(),
            sleep=lambda seconds: None,
        )
        return TestClient(app)
    return _api


# ============================================================
# /api/chat
# ============================================================

class TestChat:

    def test_reply(self, api):
        resp = api().post("/api/chat", json={"message": "hello"})
        assert resp.status_code == 200
        assert resp.json() == {"response": "echo: hello", "emotion": "neutral", "command": None}

    @pytest.mark.parametrize("body", [{}, {"message": ""}, {"message": 5}])
    def test_message_required(self, api, body):
        resp = api().post("/api/chat", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message is required"}

    def test_failure_still_answers(self, api):
        resp = api(conversation=StubConversation(RuntimeError("boom"))).post(
            "/api/chat", json={"message": "hello"}
        )
        assert resp.status_code == 500
        assert resp.json()["emotion"] == "sad"
        assert resp.json()["response"]


# ============================================================
# /api/whatsapp/*
# ============================================================

class TestConnect:

    def test_returns_qr(self, api, make_bridge):
        def configure(client, index):
            client.on_initialize = lambda c: c.emit("qr", "QR-DATA")

        resp = api(make_bridge(FakeFactory(configure))).post("/api/whatsapp/connect")
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "ready": False, "qrCode": "QR-DATA", "message": SCAN_QR}

    def test_still_initializing(self, api):
        resp = api().post("/api/whatsapp/connect")
        assert resp.json() == {
            "success": True, "ready": False, "qrCode": None, "message": STILL_INITIALIZING,
        }

    def test_no_client_configured(self, api):
        resp = api(MessagingBridge(None)).post("/api/whatsapp/connect")
        assert resp.status_code == 503
        assert resp.json()["requiresExternalService"] is True


class TestStatusAndQr:

    def test_status(self, api):
        resp = api().get("/api/whatsapp/status")
        assert resp.json() == {"connected": False, "qrCode": None, "phase": "uninitialized"}

    def test_status_after_ready(self, api, ready_bridge):
        resp = api(ready_bridge).get("/api/whatsapp/status")
        assert resp.json() == {"connected": True, "qrCode": None, "phase": "ready"}

    def test_pending_qr(self, api, bridge, factory):
        factory.client.emit("qr", "Q")
        resp = api(bridge).get("/api/whatsapp/qr")
        assert resp.json() == {"qrCode": "Q", "connected": False}

    def test_no_qr(self, api):
        assert api().get("/api/whatsapp/qr").status_code == 404


class TestSend:

    def test_message_required(self, api, ready_bridge):
        resp = api(ready_bridge).post("/api/whatsapp/send", json={"contact": "Bob"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message is required"}

    def test_not_connected(self, api):
        resp = api().post("/api/whatsapp/send", json={"contact": "Bob", "message": "hi"})
        assert resp.status_code == 400
        assert resp.json() == {"error": NOT_CONNECTED}

    def test_target_required(self, api, ready_bridge, factory):
        resp = api(ready_bridge).post("/api/whatsapp/send", json={"message": "hi"})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Either contact or replyTo is required"}
        assert factory.client.sent == []

    def test_send_to_contact(self, api, ready_bridge, factory):
        factory.client.add_chat(ChatInfo("b@c.us", "Bob"))
        resp = api(ready_bridge).post("/api/whatsapp/send", json={"contact": "bob", "message": "hi"})
        assert resp.json() == {"success": True, "message": "Message sent to bob"}
        assert factory.client.sent == [("b@c.us", "hi")]

    def test_reply_to_message(self, api, ready_bridge, factory):
        factory.client.add_chat(ChatInfo("b@c.us", "Bob"), raw("b1", "b@c.us", "hey", 10))
        resp = api(ready_bridge).post("/api/whatsapp/send", json={"replyTo": "b1", "message": "ok"})
        assert resp.json() == {"success": True, "message": "Reply sent to Bob"}
        assert factory.client.replies == [("b@c.us", "b1", "ok")]

    def test_unknown_contact(self, api, ready_bridge):
        resp = api(ready_bridge).post("/api/whatsapp/send", json={"contact": "zed", "message": "hi"})
        assert resp.status_code == 404


class TestMessages:

    def test_not_connected(self, api):
        resp = api().get("/api/whatsapp/messages")
        assert resp.status_code == 400

    def test_unread(self, api, ready_bridge, factory):
        factory.client.add_chat(ChatInfo("a@c.us", "Alice", unread_count=1),
                                raw("a1", "a@c.us", "hi", 60, notify_name="Alice"))
        resp = api(ready_bridge).get("/api/whatsapp/messages", params={"unread": "true"})
        assert resp.json() == {
            "success": True,
            "messages": [{
                "id": "a1",
                "from": "Alice",
                "body": "hi",
                "timestamp": "1970-01-01T00:01:00+00:00",
                "isGroup": False,
                "contactName": "Alice",
            }],
            "count": 1,
        }

    def test_from_contact(self, api, ready_bridge, factory):
        factory.client.add_chat(ChatInfo("a@c.us", "Alice"),
                                raw("a1", "a@c.us", "one", 1), raw("a2", "a@c.us", "two", 2))
        resp = api(ready_bridge).get("/api/whatsapp/messages", params={"contact": "ali", "limit": 1})
        assert [m["id"] for m in resp.json()["messages"]] == ["a2"]


# ============================================================
# Remote service mode and lifecycle
# ============================================================

class TestRemoteMode:

    def test_unreachable_service(self, api, monkeypatch):
        def refuse(*args, **kwargs):
            raise requests.ConnectionError("refused")

        monkeypatch.setattr(remote_module.requests, "request", refuse)
        client = api(whatsapp_service_url="http://wa-service")
        assert client.get("/api/whatsapp/status").json() == {
            "connected": False, "qrCode": None, "serviceUnavailable": True,
        }
        assert client.post("/api/whatsapp/connect").status_code == 503

    def test_chat_commands_go_to_the_service(self, config, make_bridge, monkeypatch):
        calls = []
        answers = [
            {"connected": True, "qrCode": None},
            {"success": True, "count": 1, "messages": [{
                "id": "m1", "from": "Ann", "body": "lunch?",
                "timestamp": "2026-01-01T12:00:00+00:00", "isGroup": False, "contactName": "Ann",
            }]},
        ]

        def fake_request(method, url, timeout, **kwargs):
            calls.append((method, url))
            return ServiceResponse(answers.pop(0))

        monkeypatch.setattr(remote_module.requests, "request", fake_request)
        app = create_app(
            dict(config, whatsapp_service_url="http://wa-service"),
            provider=BridgeProvider(make_bridge),
            sleep=lambda seconds: None,
        )
        resp = TestClient(app).post("/api/chat", json={"message": "check my whatsapp messages"})

        assert resp.status_code == 200
        assert 'From Ann: "lunch?"' in resp.json()["response"]
        assert [url for _, url in calls] == ["http://wa-service/status", "http://wa-service/messages"]


class TestLifespan:

    def test_shutdown_closes_bridge(self, api, factory):
        with api() as client:
            client.get("/api/whatsapp/status")
        assert factory.client.destroyed
