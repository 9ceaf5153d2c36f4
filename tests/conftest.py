"""Shared fakes for the bridge, executor and server tests."""

from typing import Callable, Dict, List, Optional

import pytest

from vista_companion.api import config as config_module
from vista_companion.bridge.adapter import MessagingBridge
from vista_companion.bridge.models import ChatInfo, ContactInfo, RawMessage

NAME_LOOKUP_ERROR = "Cannot read properties of undefined (reading 'getIsMyContact')"


class FakeClient:
    """In-memory MessagingClient. Tests drive lifecycle events with emit()."""

    def __init__(self, session_dir: str = ""):
        self.session_dir = session_dir
        self.handlers: Dict[str, List[Callable]] = {}
        self.chats: List[ChatInfo] = []
        self.messages: Dict[str, List[RawMessage]] = {}
        self.contacts: List[ContactInfo] = []
        self.fetch_errors: Dict[str, Exception] = {}
        self.list_chats_error: Optional[Exception] = None
        self.contacts_error: Optional[Exception] = None
        self.initialize_error: Optional[Exception] = None
        self.on_initialize: Optional[Callable[["FakeClient"], None]] = None
        self.initialized = False
        self.identity = False
        self.destroyed = False
        self.initialize_calls = 0
        self.list_chats_calls = 0
        self.sent: List[tuple] = []
        self.replies: List[tuple] = []

    # lifecycle

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event, *args):
        for handler in self.handlers.get(event, []):
            handler(*args)

    def initialize(self):
        self.initialize_calls += 1
        if self.initialize_error is not None:
            raise self.initialize_error
        self.initialized = True
        if self.on_initialize is not None:
            self.on_initialize(self)

    def is_initialized(self):
        return self.initialized

    def has_identity(self):
        return self.identity

    def destroy(self):
        self.destroyed = True

    # data

    def add_chat(self, chat: ChatInfo, *messages: RawMessage):
        self.chats.append(chat)
        self.messages[chat.id] = sorted(messages, key=lambda m: m.timestamp, reverse=True)

    def list_chats(self):
        self.list_chats_calls += 1
        if self.list_chats_error is not None:
            raise self.list_chats_error
        return list(self.chats)

    def fetch_messages(self, chat_id, limit):
        if chat_id in self.fetch_errors:
            raise self.fetch_errors[chat_id]
        return self.messages.get(chat_id, [])[:limit]

    def send_message(self, chat_id, body):
        self.sent.append((chat_id, body))

    def reply_to_message(self, chat_id, message_id, body):
        self.replies.append((chat_id, message_id, body))

    def get_contacts(self):
        if self.contacts_error is not None:
            raise self.contacts_error
        return list(self.contacts)


class FakeFactory:
    """Client factory that records every client it builds.

    ``configure(client, index)`` runs on each new client before the bridge
    binds to it.
    """

    def __init__(self, configure: Optional[Callable[[FakeClient, int], None]] = None):
        self.configure = configure
        self.created: List[FakeClient] = []

    def __call__(self, session_dir: str) -> FakeClient:
        client = FakeClient(session_dir)
        if self.configure is not None:
            self.configure(client, len(self.created))
        self.created.append(client)
        return client

    @property
    def client(self) -> FakeClient:
        return self.created[-1]


class RecordingScheduler:
    def __init__(self):
        self.calls: List[tuple] = []

    def __call__(self, delay, fn):
        self.calls.append((delay, fn))
        return fn

    def run_all(self):
        calls, self.calls = self.calls, []
        for _, fn in calls:
            fn()


class SleepRecorder:
    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def raw(msg_id: str, chat_id: str, body: str, timestamp: float, **kwargs) -> RawMessage:
    return RawMessage(id=msg_id, chat_id=chat_id, body=body, timestamp=timestamp, **kwargs)


@pytest.fixture
def factory():
    return FakeFactory()


@pytest.fixture
def scheduler():
    return RecordingScheduler()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def make_bridge(factory, scheduler, sleeper, tmp_path):
    def _make(client_factory=factory, **kwargs) -> MessagingBridge:
        kwargs.setdefault("poll_attempts", 3)
        kwargs.setdefault("recreate_poll_attempts", 2)
        return MessagingBridge(
            client_factory,
            session_dir=str(tmp_path / "session"),
            sleep=sleeper,
            scheduler=scheduler,
            **kwargs,
        )
    return _make


@pytest.fixture
def bridge(make_bridge):
    return make_bridge()


@pytest.fixture
def ready_bridge(bridge, factory):
    factory.client.emit("ready")
    return bridge


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var in list(config_module.ENV_OVERRIDES) + [
        "GROQ_API_KEY", "GEMINI_API_KEY", "ANTHROPIC_API_KEY",
    ]:
        monkeypatch.delenv(env_var, raising=False)
