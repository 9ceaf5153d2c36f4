"""WhatsApp bridge adapter: owns the single messaging session.

Handles:
- Folding the client's asynchronous lifecycle events (qr, authenticated,
  ready, disconnected) into one ConnectionState and one connectivity answer
- Bounded initialization polling, one-shot reconnect after a dropped
  connection, destroy/recreate after session corruption
- Best-effort chat reads that survive the client's flaky contact-name lookup

The adapter is process-wide: every request handler gets the same instance
through BridgeProvider.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional

from vista_companion.bridge.client import (
    EVENT_AUTH_FAILURE,
    EVENT_AUTHENTICATED,
    EVENT_DISCONNECTED,
    EVENT_MESSAGE,
    EVENT_QR,
    EVENT_READY,
    LOGOUT_REASON,
    ClientFactory,
    MessagingClient,
)
from vista_companion.bridge.errors import (
    BridgeError,
    ClientUnavailableError,
    ContactNotFoundError,
    InvalidRequestError,
    MessageNotFoundError,
    NameResolutionError,
    NotConnectedError,
    SessionCorruptedError,
    is_name_resolution_failure,
    is_session_corruption,
)
from vista_companion.bridge.models import ChatInfo, Message
from vista_companion.bridge.state import BridgeStatus, ConnectionState, InitResult, Phase

logger = logging.getLogger(__name__)

REPLY_SEARCH_WINDOW = 50
PROGRESS_LOG_EVERY = 5


def _start_timer(delay: float, fn: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, fn)
    timer.daemon = True
    timer.start()
    return timer


def _display_name(chat: ChatInfo) -> str:
    return chat.name or chat.id.split("@", 1)[0] or "Unknown"


class MessagingBridge:
    """Stateful wrapper around one MessagingClient."""

    def __init__(
        self,
        client_factory: Optional[ClientFactory],
        session_dir: str = ".vista_session",
        *,
        poll_attempts: int = 20,
        poll_interval: float = 1.0,
        recreate_poll_attempts: int = 10,
        reconnect_delay: float = 3.0,
        sleep: Callable[[float], None] = time.sleep,
        scheduler: Callable[[float, Callable[[], None]], object] = _start_timer,
    ):
        self._factory = client_factory
        self._session_dir = session_dir
        self._poll_attempts = poll_attempts
        self._poll_interval = poll_interval
        self._recreate_poll_attempts = recreate_poll_attempts
        self._reconnect_delay = reconnect_delay
        self._sleep = sleep
        self._scheduler = scheduler

        self._state = ConnectionState()
        self._lock = threading.RLock()
        self._init_lock = threading.Lock()
        self._needs_reset = False
        self._client: Optional[MessagingClient] = None

        if self._factory is not None:
            self._install_client()

    # ── client lifecycle ─────────────────────────────────────────

    def _install_client(self) -> MessagingClient:
        client = self._factory(self._session_dir)
        with self._lock:
            self._client = client
        self._bind(client)
        return client

    def _bind(self, client: MessagingClient) -> None:
        """Register lifecycle handlers that ignore events from replaced clients."""

        def guarded(handler: Callable[..., None]) -> Callable[..., None]:
            def _handle(*args) -> None:
                if client is not self._client:
                    logger.debug("Ignoring %s event from a replaced client", handler.__name__)
                    return
                handler(*args)
            return _handle

        client.on(EVENT_QR, guarded(self._on_qr))
        client.on(EVENT_AUTHENTICATED, guarded(self._on_authenticated))
        client.on(EVENT_READY, guarded(self._on_ready))
        client.on(EVENT_AUTH_FAILURE, guarded(self._on_auth_failure))
        client.on(EVENT_DISCONNECTED, guarded(self._on_disconnected))
        client.on(EVENT_MESSAGE, guarded(self._on_message))

    @staticmethod
    def _destroy_quietly(client: Optional[MessagingClient]) -> None:
        if client is None:
            return
        try:
            client.destroy()
        except Exception as exc:
            logger.info("Destroy error (ignored): %s", exc)

    @staticmethod
    def _probe(check: Callable[[], bool]) -> bool:
        try:
            return bool(check())
        except Exception as exc:
            logger.debug("Client state probe failed: %s", exc)
            return False

    def reset_client(self) -> None:
        """Destroy the client and start over from a fresh one."""
        with self._init_lock:
            self._reset_client()

    def _reset_client(self) -> None:
        logger.info("Resetting WhatsApp client...")
        with self._lock:
            old = self._client
            self._client = None
            self._needs_reset = False
            self._state.move_to(Phase.UNINITIALIZED)
        self._destroy_quietly(old)
        if self._factory is not None:
            self._install_client()

    def shutdown(self) -> None:
        with self._lock:
            old = self._client
            self._client = None
            self._state.move_to(Phase.UNINITIALIZED)
        self._destroy_quietly(old)

    # ── event handlers ───────────────────────────────────────────

    def _on_qr(self, payload: str) -> None:
        logger.info("QR code received, scan with WhatsApp")
        with self._lock:
            self._state.move_to(Phase.QR_PENDING, qr_payload=payload)

    def _on_authenticated(self, *_args) -> None:
        logger.info("WhatsApp authenticated")
        with self._lock:
            if self._state.phase is not Phase.READY:
                self._state.move_to(Phase.AUTHENTICATED)

    def _on_ready(self, *_args) -> None:
        logger.info("WhatsApp client is ready")
        with self._lock:
            self._state.move_to(Phase.READY)

    def _on_auth_failure(self, msg: str = "") -> None:
        logger.error("WhatsApp authentication failed: %s", msg)
        with self._lock:
            self._state.move_to(Phase.DISCONNECTED, reason=f"auth_failure: {msg}")

    def _on_disconnected(self, reason: str = "") -> None:
        logger.info("WhatsApp disconnected: %s", reason)
        with self._lock:
            self._state.move_to(Phase.DISCONNECTED, reason=str(reason))
            if reason == LOGOUT_REASON:
                logger.info("Logged out, next connect starts a fresh session with a new QR code")
                self._needs_reset = True
                return
        logger.info("Will attempt to reconnect in %.0fs", self._reconnect_delay)
        self._scheduler(self._reconnect_delay, self._reconnect)

    def _on_message(self, message) -> None:
        logger.debug("New message received: %s", getattr(message, "body", message))

    def _reconnect(self) -> None:
        with self._lock:
            if self._client is None or self._state.phase is Phase.READY:
                return
        logger.info("Attempting auto-reconnect...")
        try:
            self.initialize()
        except Exception as exc:
            logger.error("Auto-reconnect failed: %s", exc)

    # ── connectivity ─────────────────────────────────────────────

    def is_connected(self) -> bool:
        """True when ready, or authenticated and waiting for ready. Never raises."""
        with self._lock:
            client = self._client
            if client is None:
                return False
            if self._state.connected:
                return True
            if self._state.phase not in (Phase.UNINITIALIZED, Phase.INITIALIZING):
                return False
        # Flags can lag behind a client that already has an identity.
        if self._probe(client.is_initialized) and self._probe(client.has_identity):
            with self._lock:
                if client is self._client and not self._state.connected:
                    logger.debug("Client has an identity before any auth event, syncing state")
                    self._state.move_to(Phase.AUTHENTICATED)
            return True
        return False

    def get_status(self) -> BridgeStatus:
        with self._lock:
            connected = self.is_connected()
            return BridgeStatus(
                connected=connected,
                qr_payload=self._state.qr_payload,
                phase=self._state.phase,
            )

    def get_qr_code(self) -> Optional[str]:
        with self._lock:
            return self._state.qr_payload

    @property
    def phase(self) -> Phase:
        with self._lock:
            return self._state.phase

    # ── initialization ───────────────────────────────────────────

    def initialize(self) -> InitResult:
        """Start (or look in on) the session and wait briefly for QR or ready.

        Returns the last-known state if the poll budget runs out; callers
        treat "no QR yet, not ready" as a valid outcome and poll status.
        """
        with self._init_lock:
            if self._factory is None:
                raise ClientUnavailableError(
                    "No WhatsApp client configured. Set client_factory in the config "
                    "or WHATSAPP_SERVICE_URL to use an external service."
                )
            if self._needs_reset or self._client is None:
                self._reset_client()

            if self.phase is Phase.READY:
                return InitResult(ready=True)

            client = self._client
            try:
                return self._start(client)
            except BridgeError:
                raise
            except Exception as exc:
                logger.error("Error initializing WhatsApp client: %s", exc)
                if is_session_corruption(exc):
                    return self._recover(exc)
                with self._lock:
                    self._state.move_to(Phase.DISCONNECTED, reason=str(exc))
                raise BridgeError(f"WhatsApp initialization failed: {exc}") from exc

    def _start(self, client: MessagingClient) -> InitResult:
        if self._probe(client.is_initialized):
            logger.info("Client already initialized, checking state...")
            with self._lock:
                if self._state.phase is Phase.READY:
                    return InitResult(ready=True)
                if self._state.qr_payload:
                    return InitResult(ready=False, qr_payload=self._state.qr_payload)
        else:
            logger.info("Initializing WhatsApp client...")
            with self._lock:
                self._state.move_to(Phase.INITIALIZING)
            client.initialize()
        return self._poll(self._poll_attempts)

    def _recover(self, exc: Exception) -> InitResult:
        logger.warning("Client in bad state, recreating: %s", exc)
        with self._lock:
            old = self._client
            self._state.move_to(Phase.FAULTED, reason=str(exc))
        self._destroy_quietly(old)
        try:
            client = self._install_client()
            with self._lock:
                self._state.move_to(Phase.INITIALIZING)
            client.initialize()
            return self._poll(self._recreate_poll_attempts)
        except Exception as retry_exc:
            logger.error("Error recreating WhatsApp client: %s", retry_exc)
            with self._lock:
                self._state.move_to(Phase.FAULTED, reason=str(retry_exc))
            raise SessionCorruptedError(
                f"WhatsApp session could not be recovered: {retry_exc}"
            ) from retry_exc

    def _poll(self, attempts: int) -> InitResult:
        for tick in range(1, attempts + 1):
            self._sleep(self._poll_interval)
            with self._lock:
                phase = self._state.phase
                qr_payload = self._state.qr_payload
            if phase is Phase.READY:
                logger.info("Client is ready")
                return InitResult(ready=True)
            if qr_payload:
                logger.info("QR code generated successfully")
                return InitResult(ready=False, qr_payload=qr_payload)
            if tick % PROGRESS_LOG_EVERY == 0 and tick < attempts:
                logger.info(
                    "Still waiting for QR code or ready state... (%ds)",
                    int(tick * self._poll_interval),
                )

        with self._lock:
            phase = self._state.phase
            qr_payload = self._state.qr_payload
        logger.info("Initialize timeout, phase=%s has_qr=%s", phase.value, bool(qr_payload))
        return InitResult(ready=phase is Phase.READY, qr_payload=qr_payload)

    def auto_connect(self, delay: float = 2.0) -> Optional[object]:
        """Schedule a best-effort initialize when a saved session exists."""
        session = Path(self._session_dir)
        if self._factory is None or not session.is_dir() or not any(session.iterdir()):
            logger.debug("No saved WhatsApp session in %s, skipping auto-connect", session)
            return None
        return self._scheduler(delay, self._auto_initialize)

    def _auto_initialize(self) -> None:
        client = self._client
        if client is None or self.is_connected() or self._probe(client.is_initialized):
            return
        logger.info("Auto-initializing with saved session...")
        try:
            self.initialize()
        except Exception as exc:
            logger.info("Auto-initialize failed (normal if no session exists): %s", exc)

    # ── message operations ───────────────────────────────────────

    def _require_connected(self) -> MessagingClient:
        if not self.is_connected():
            raise NotConnectedError()
        with self._lock:
            client = self._client
            if self._state.phase is Phase.AUTHENTICATED:
                logger.debug("Operating before the ready event, contact data may be incomplete")
        if client is None:
            raise NotConnectedError()
        return client

    @contextmanager
    def _client_call(self, action: str, demote: bool = False) -> Iterator[None]:
        """Translate client exceptions into BridgeError subclasses."""
        try:
            yield
        except BridgeError:
            raise
        except Exception as exc:
            logger.error("Error %s: %s", action, exc)
            text = str(exc).lower()
            if demote and ("not connected" in text or "session" in text):
                with self._lock:
                    self._state.move_to(Phase.DISCONNECTED, reason=str(exc))
            if is_name_resolution_failure(exc):
                raise NameResolutionError(str(exc)) from exc
            raise BridgeError(str(exc)) from exc

    def _find_chat(self, client: MessagingClient, contact: str) -> ChatInfo:
        """First chat whose name contains ``contact``, else a contact-list match."""
        lowered = contact.lower()
        chats = client.list_chats()
        for chat in chats:
            if chat.name and lowered in chat.name.lower():
                return chat

        try:
            contacts = client.get_contacts()
        except Exception as exc:
            logger.info("get_contacts() failed, using chat search only: %s", exc)
            contacts = []

        for entry in contacts:
            if (entry.push_name and lowered in entry.push_name.lower()) or (
                entry.number and contact in entry.number
            ):
                for chat in chats:
                    if chat.id == entry.id:
                        return chat
                return ChatInfo(id=entry.id, name=entry.push_name or entry.number)

        raise ContactNotFoundError(contact)

    def list_recent(self, contact: Optional[str] = None, limit: int = 10) -> List[Message]:
        """Latest message of each of the first ``limit`` chats, newest first."""
        client = self._require_connected()
        messages: List[Message] = []
        with self._client_call("getting messages", demote=True):
            for chat in client.list_chats()[:limit]:
                name = _display_name(chat)
                if contact and contact.lower() not in name.lower():
                    continue
                try:
                    latest = client.fetch_messages(chat.id, 1)
                except Exception as exc:
                    if not is_name_resolution_failure(exc):
                        raise
                    logger.warning("Skipping chat %s, contact lookup failed", chat.id)
                    continue
                if latest:
                    messages.append(Message.from_raw(
                        latest[0],
                        sender=name,
                        is_group=chat.is_group,
                        contact_name=name if name != "Unknown" else None,
                    ))

        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages[:limit]

    def list_unread(self, contact: Optional[str] = None) -> List[Message]:
        """Unread messages across chats, newest first.

        A chat that fails to load is logged and skipped. Only when every
        unread chat fails does this raise.
        """
        client = self._require_connected()
        messages: List[Message] = []
        attempted = failed = name_failures = 0

        with self._client_call("getting unread messages", demote=True):
            chats = client.list_chats()

        for chat in chats:
            if chat.unread_count <= 0:
                continue
            if contact and contact.lower() not in (chat.name or "").lower():
                continue
            attempted += 1
            try:
                for raw in client.fetch_messages(chat.id, chat.unread_count)[: chat.unread_count]:
                    sender = (
                        raw.notify_name
                        or raw.from_name
                        or chat.name
                        or raw.sender_id
                        or "Unknown"
                    )
                    contact_name = sender if sender not in ("Unknown", raw.sender_id) else None
                    messages.append(Message.from_raw(raw, sender, chat.is_group, contact_name))
            except Exception as exc:
                failed += 1
                if is_name_resolution_failure(exc):
                    name_failures += 1
                    logger.warning(
                        "Skipping chat %s, contact lookup failed (known client issue)", chat.id
                    )
                else:
                    logger.warning("Error processing chat %s: %s", chat.id, exc)
                continue

        if attempted and failed == attempted:
            if name_failures:
                raise NameResolutionError(f"{failed} chat(s) could not be read")
            raise BridgeError(f"Could not read any of {failed} unread chat(s)")

        if not messages:
            logger.info("No unread messages found")
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages

    def list_from_contact(self, contact: str, limit: int = 10) -> List[Message]:
        client = self._require_connected()
        with self._client_call("getting messages from contact"):
            chat = self._find_chat(client, contact)
            raw_messages = client.fetch_messages(chat.id, limit)
            chat_name = chat.name or contact
            messages = [
                Message.from_raw(
                    raw,
                    sender=chat_name,
                    is_group=chat.is_group,
                    contact_name=chat_name if chat_name != "Unknown" else None,
                )
                for raw in raw_messages
            ]
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages[:limit]

    def send(self, target: str, body: str) -> ChatInfo:
        client = self._require_connected()
        with self._client_call("sending message"):
            chat = self._find_chat(client, target)
            client.send_message(chat.id, body)
        logger.info("Message sent to %s", _display_name(chat))
        return chat

    def reply(self, message_id: str, body: str) -> ChatInfo:
        """Reply to a message found among each chat's most recent messages."""
        client = self._require_connected()
        with self._client_call("replying to message"):
            for chat in client.list_chats():
                try:
                    recent = client.fetch_messages(chat.id, REPLY_SEARCH_WINDOW)
                except Exception as exc:
                    if not is_name_resolution_failure(exc):
                        raise
                    logger.warning("Skipping chat %s while searching for message", chat.id)
                    continue
                if any(raw.id == message_id for raw in recent):
                    client.reply_to_message(chat.id, message_id, body)
                    logger.info("Replied in %s", _display_name(chat))
                    return chat
        raise MessageNotFoundError(message_id)

    def deliver(
        self,
        message: str,
        target: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> str:
        """Send to a contact or reply to a message id; returns a confirmation."""
        if not message:
            raise InvalidRequestError("Message is required")
        if not target and not reply_to:
            raise InvalidRequestError("Either contact or replyTo is required")

        if reply_to:
            chat = self.reply(reply_to, message)
            return f"Reply sent to {_display_name(chat)}"
        self.send(target, message)
        return f"Message sent to {target}"
