"""The messaging client capability the bridge adapter drives.

The concrete client (a browser-automated WhatsApp Web session, in practice)
lives outside this package. It is plugged in through a factory named in the
config as ``"module:callable"``; the callable receives the session directory
and returns an object implementing ``MessagingClient``.
"""

from __future__ import annotations

import importlib
import logging
from typing import Callable, List, Optional, Protocol

from vista_companion.bridge.models import ChatInfo, ContactInfo, RawMessage

logger = logging.getLogger(__name__)

# Lifecycle events emitted by the client.
EVENT_QR = "qr"
EVENT_AUTHENTICATED = "authenticated"
EVENT_READY = "ready"
EVENT_AUTH_FAILURE = "auth_failure"
EVENT_DISCONNECTED = "disconnected"
EVENT_MESSAGE = "message"

LOGOUT_REASON = "LOGOUT"


class MessagingClient(Protocol):
    def initialize(self) -> None:
        """Start the session. May emit ``qr``/``authenticated``/``ready``."""

    def on(self, event: str, handler: Callable[..., None]) -> None: ...

    def is_initialized(self) -> bool:
        """True once the underlying session/page exists."""

    def has_identity(self) -> bool:
        """True once the client knows which account it is logged in as."""

    def list_chats(self) -> List[ChatInfo]: ...

    def fetch_messages(self, chat_id: str, limit: int) -> List[RawMessage]:
        """Most recent ``limit`` messages of a chat, newest first."""

    def send_message(self, chat_id: str, body: str) -> None: ...

    def reply_to_message(self, chat_id: str, message_id: str, body: str) -> None: ...

    def get_contacts(self) -> List[ContactInfo]: ...

    def destroy(self) -> None: ...


ClientFactory = Callable[[str], MessagingClient]


def load_client_factory(path: Optional[str]) -> Optional[ClientFactory]:
    """Resolve a ``"module:callable"`` string to a client factory.

    Returns None when no factory is configured.
    """
    if not path:
        return None

    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise ValueError(f"Invalid client factory {path!r}. Use 'package.module:callable'.")

    module = importlib.import_module(module_name)
    factory = getattr(module, attr)
    logger.info("Using messaging client factory %s", path)
    return factory
