"""
Tests for the remote bridge client, the bridge provider and the CLI commands
that sit on top of them.

Run with:  python -m pytest tests/test_remote.py -v
"""

import pytest
import requests
from click.testing import CliRunner

from vista_companion.bridge import remote as remote_module
from vista_companion.bridge.client import load_client_factory
from vista_companion.bridge.errors import BridgeError
from vista_companion.bridge.models import ChatInfo, Message
from vista_companion.bridge.provider import BridgeProvider, bridge_from_config
from vista_companion.bridge.remote import RemoteBridge, RemoteBridgeUnavailable, RemoteCommandBridge
from vista_companion.main import cli


class FakeResponse:
    def __init__(self, status_code, payload):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture
def http(monkeypatch):
    """Records requests and answers with the queued responses."""
    calls = []
    responses = []

    def fake_request(method, url, timeout, **kwargs):
        calls.append((method, url, kwargs))
        answer = responses.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer

    monkeypatch.setattr(remote_module.requests, "request", fake_request)
    return calls, responses


# ============================================================
# RemoteBridge
# ============================================================

class TestRemoteBridge:

    def test_send_payload(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"success": True, "message": "Message sent to Bob"}))

        data = RemoteBridge("http://svc/").send("hi", contact="Bob")
        assert data["message"] == "Message sent to Bob"
        assert calls == [("POST", "http://svc/send",
                          {"json": {"contact": "Bob", "message": "hi", "replyTo": None}})]

    def test_messages_query(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"success": True, "messages": [], "count": 0}))

        RemoteBridge("http://svc").messages(contact="Ann", unread=True, limit=5)
        assert calls[0][2]["params"] == {"limit": 5, "contact": "Ann", "unread": "true"}

    def test_error_body_is_raised(self, http):
        calls, responses = http
        responses.append(FakeResponse(400, {"error": "WhatsApp not connected. Please connect first."}))
        with pytest.raises(BridgeError, match="not connected"):
            RemoteBridge("http://svc").status()

    def test_non_json_error(self, http):
        calls, responses = http
        responses.append(FakeResponse(502, None))
        with pytest.raises(BridgeError, match="HTTP 502"):
            RemoteBridge("http://svc").qr()

    def test_unreachable(self, http):
        calls, responses = http
        responses.append(requests.ConnectionError("refused"))
        with pytest.raises(RemoteBridgeUnavailable):
            RemoteBridge("http://svc").connect()


WIRE_MESSAGE = {
    "id": "m1",
    "from": "Ann",
    "body": "lunch?",
    "timestamp": "2026-01-01T12:00:00Z",
    "isGroup": False,
    "contactName": "Ann",
}


class TestRemoteCommandBridge:

    def test_connected_from_status(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"connected": True, "qrCode": None}))
        assert RemoteCommandBridge(RemoteBridge("http://svc")).is_connected() is True

    def test_unreachable_service_is_not_connected(self, http):
        calls, responses = http
        responses.append(requests.ConnectionError("refused"))
        assert RemoteCommandBridge(RemoteBridge("http://svc")).is_connected() is False

    def test_messages_are_decoded(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"success": True, "messages": [WIRE_MESSAGE], "count": 1}))

        found = RemoteCommandBridge(RemoteBridge("http://svc")).list_unread(contact="Ann")
        assert [(m.id, m.sender, m.body) for m in found] == [("m1", "Ann", "lunch?")]
        assert found[0].timestamp.utcoffset().total_seconds() == 0
        assert calls[0][2]["params"] == {"limit": 10, "contact": "Ann", "unread": "true"}

    def test_malformed_message(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"messages": [{"body": "no id"}]}))
        with pytest.raises(BridgeError, match="Malformed"):
            RemoteCommandBridge(RemoteBridge("http://svc")).list_recent(limit=3)

    def test_reply_posts_reply_to(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"success": True, "message": "Reply sent to Ann"}))

        RemoteCommandBridge(RemoteBridge("http://svc")).reply("m1", "sure")
        assert calls[0][2]["json"] == {"contact": None, "message": "sure", "replyTo": "m1"}

    def test_wire_form_round_trips(self):
        message = Message.from_dict(WIRE_MESSAGE)
        assert message.to_dict()["timestamp"] == "2026-01-01T12:00:00+00:00"



# ============================================================
# BridgeProvider and client factories
# ============================================================

class TestBridgeProvider:

    def test_builds_once(self, make_bridge):
        built = []

        def build():
            built.append(make_bridge())
            return built[-1]

        provider = BridgeProvider(build)
        assert provider.get() is provider.get()
        assert len(built) == 1

    def test_close_shuts_down(self, make_bridge, factory):
        provider = BridgeProvider(make_bridge)
        provider.get()
        provider.close()
        assert factory.client.destroyed

    def test_from_config_without_client(self, tmp_path):
        config = {
            "client_factory": "",
            "session_dir": str(tmp_path / "session"),
            "poll_attempts": 1,
            "poll_interval": 0.0,
            "recreate_poll_attempts": 1,
            "reconnect_delay": 0.0,
            "auto_connect_delay": 0.0,
        }
        bridge = bridge_from_config(config)
        assert bridge.is_connected() is False


class TestLoadClientFactory:

    def test_empty(self):
        assert load_client_factory("") is None
        assert load_client_factory(None) is None

    def test_resolves_callable(self):
        assert load_client_factory("vista_companion.bridge.models:ChatInfo") is ChatInfo

    def test_bad_format(self):
        with pytest.raises(ValueError, match="module:callable"):
            load_client_factory("no_colon_here")


# ============================================================
# CLI
# ============================================================

class TestWhatsAppCli:

    def test_status_connected(self, http):
        calls, responses = http
        responses.append(FakeResponse(200, {"connected": True, "qrCode": None, "phase": "ready"}))

        result = CliRunner().invoke(cli, ["whatsapp", "--server", "http://vista:9000", "status"])
        assert result.exit_code == 0
        assert "Connected" in result.output
        assert calls[0][1] == "http://vista:9000/api/whatsapp/status"

    def test_send_needs_a_target(self):
        result = CliRunner().invoke(cli, ["whatsapp", "send", "hello"])
        assert result.exit_code != 0
        assert "--to or --reply-to" in result.output

    def test_connect_failure_exits_nonzero(self, http):
        calls, responses = http
        responses.append(requests.ConnectionError("refused"))
        result = CliRunner().invoke(cli, ["whatsapp", "connect"])
        assert result.exit_code == 1
        assert "Connect failed" in result.output
