"""Carries out parsed WhatsApp commands and phrases the answer for speech."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional

from vista_companion.bridge.adapter import MessagingBridge
from vista_companion.bridge.errors import (
    BridgeError,
    ContactNotFoundError,
    NameResolutionError,
    NotConnectedError,
)
from vista_companion.bridge.models import Message
from vista_companion.commands.parser import Action, ParsedCommand

logger = logging.getLogger(__name__)

CHECK_PREVIEW_LIMIT = 5
READ_LIMIT = 10

CONNECT_FIRST = (
    'WhatsApp is not connected. Please connect WhatsApp first by saying "connect WhatsApp" '
    "or scanning the QR code in settings."
)
DEGRADED_READ = (
    "I'm having trouble reading some messages due to a WhatsApp Web update. Some chats may "
    "not be accessible, but I can still help with sending and replying to messages. Please "
    "try asking about specific contacts or use send/reply commands."
)
NOT_SURE = (
    "I'm not sure what you want me to do with WhatsApp. Try asking to check messages, "
    "send a message, or reply to someone."
)


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if count != 1 else ''}"


def format_time_ago(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Human-readable age of a timestamp, e.g. "5 minutes ago"."""
    now = now or datetime.now(timezone.utc)
    seconds = (now - timestamp).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{_plural(minutes, 'minute')} ago"
    if hours < 24:
        return f"{_plural(hours, 'hour')} ago"
    return f"{_plural(days, 'day')} ago"


class CommandExecutor:
    """Binds a ParsedCommand to the bridge.

    Always returns a sentence; bridge failures are turned into speech, not
    raised.
    """

    def __init__(self, bridge: Callable[[], MessagingBridge],
                 clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)):
        self._bridge = bridge
        self._clock = clock

    def execute(self, command: ParsedCommand) -> str:
        bridge = self._bridge()
        if not bridge.is_connected():
            return CONNECT_FIRST

        handlers = {
            Action.CHECK: self._check,
            Action.SEND: self._send,
            Action.REPLY: self._reply,
            Action.READ: self._read,
        }
        handler = handlers.get(command.action)
        if handler is None:
            return NOT_SURE

        try:
            return handler(bridge, command)
        except NotConnectedError:
            return CONNECT_FIRST
        except ContactNotFoundError as exc:
            return f"I couldn't find a WhatsApp chat for {exc.contact}."
        except BridgeError as exc:
            logger.warning("WhatsApp %s failed: %s", command.action.value, exc)
            if "not connected" in str(exc).lower():
                return CONNECT_FIRST
            return f"Sorry, I couldn't complete that WhatsApp action: {exc}"

    def _ago(self, message: Message) -> str:
        return format_time_ago(message.timestamp, self._clock())

    def _check(self, bridge: MessagingBridge, command: ParsedCommand) -> str:
        filters = command.filters
        try:
            if filters is not None and filters.unread_only:
                messages = bridge.list_unread(contact=filters.contact)
            else:
                messages = bridge.list_recent(
                    contact=filters.contact if filters else None,
                    limit=filters.limit if filters else 10,
                )
        except NameResolutionError:
            return DEGRADED_READ

        if not messages:
            return "You don't have any new messages right now."
        return self._summarize(messages)

    def _summarize(self, messages: List[Message]) -> str:
        lines = [f"You have {_plural(len(messages), 'new message')}:", ""]
        for msg in messages[:CHECK_PREVIEW_LIMIT]:
            lines.append(f'From {msg.sender}: "{msg.body}" ({self._ago(msg)})')

        remaining = len(messages) - CHECK_PREVIEW_LIMIT
        if remaining > 0:
            lines.append("")
            lines.append(f"And {_plural(remaining, 'more message')}.")
        return "\n".join(lines)

    def _send(self, bridge: MessagingBridge, command: ParsedCommand) -> str:
        if not command.target:
            return "Who should I send that to? Tell me the contact's name."
        if not command.message:
            return (
                f"What would you like to send to {command.target}? Please tell me the message "
                f'content. For example: "send hello to {command.target}" or '
                f'"send to {command.target} saying hello there".'
            )
        bridge.send(command.target, command.message)
        return f'Message sent to {command.target}: "{command.message}"'

    def _reply(self, bridge: MessagingBridge, command: ParsedCommand) -> str:
        if not command.target:
            return "Please specify who to reply to."
        if not command.message:
            return f"What would you like to reply to {command.target}?"

        latest = bridge.list_from_contact(command.target, limit=1)
        if not latest:
            return f"No recent messages from {command.target} to reply to."
        bridge.reply(latest[0].id, command.message)
        return f'Replied to {command.target}: "{command.message}"'

    def _read(self, bridge: MessagingBridge, command: ParsedCommand) -> str:
        if not command.target:
            return NOT_SURE
        messages = bridge.list_from_contact(command.target, limit=READ_LIMIT)
        if not messages:
            return f"No messages found from {command.target}."

        lines = [f"Messages from {command.target}:", ""]
        lines.extend(f'"{msg.body}" ({self._ago(msg)})' for msg in messages)
        return "\n".join(lines)
