"""Command parser for WhatsApp and other integrations.

Turns a free-form utterance into a ParsedCommand, or None when it is plain
conversation. Every stage is an ordered list of rules evaluated until the
first match: domain, then action, then the extraction patterns. Later rules
are narrower fallbacks, so reordering them changes what gets classified.

The parser never raises; missing information is a None field.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Pattern, Tuple


class Domain(str, Enum):
    MESSAGING = "messaging"
    EMAIL = "email"
    CALENDAR = "calendar"
    GENERAL = "general"


class Action(str, Enum):
    CHECK = "check"
    SEND = "send"
    REPLY = "reply"
    READ = "read"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class MessageFilters:
    unread_only: bool = False
    contact: Optional[str] = None
    limit: int = 10


@dataclass(frozen=True)
class ParsedCommand:
    domain: Domain
    action: Action = Action.UNKNOWN
    target: Optional[str] = None
    message: Optional[str] = None
    filters: Optional[MessageFilters] = None

    def to_dict(self) -> Dict[str, Any]:
        filters = None
        if self.filters is not None:
            raw = asdict(self.filters)
            filters = {
                "unreadOnly": raw["unread_only"],
                "contact": raw["contact"],
                "limit": raw["limit"],
            }
        return {
            "domain": self.domain.value,
            "action": self.action.value,
            "target": self.target,
            "message": self.message,
            "filters": filters,
        }


Rule = Tuple[Callable[[str], bool], Callable[[str, str], Optional[ParsedCommand]]]


# ---------------------------------------------------------------------------
# Contact names
# ---------------------------------------------------------------------------

_CONTACT_PATTERNS: List[Pattern[str]] = [
    re.compile(r"(?:from|to|with)\s+([a-z]+(?:\s+[a-z]+)?)", re.IGNORECASE),
    re.compile(r"(?:contact|person)\s+([a-z]+(?:\s+[a-z]+)?)", re.IGNORECASE),
    re.compile(r"(?:friend|buddy)\s+([a-z]+(?:\s+[a-z]+)?)", re.IGNORECASE),
]

_NAME_STOPWORDS = frozenset({
    "the", "a", "an", "your", "my", "his", "her", "their", "this", "that",
    "message", "text", "chat",
})

# A second captured word that is really the start of the next clause.
_NAME_CONNECTORS = frozenset({
    "with", "saying", "says", "that", "about", "and", "to", "from", "on",
    "in", "please", "now", "asking", "telling",
})

_NAME_AFTER_PHRASES = (
    "message from",
    "text from",
    "chat with",
    "send to",
    "reply to",
    "message to",
)

_ALPHA_WORD = re.compile(r"[a-z]+", re.IGNORECASE)


def extract_contact_name(message: str) -> Optional[str]:
    """Pull a contact name out of an utterance.

    "message from john" -> "john", "reply to Sarah with ok" -> "Sarah".
    Names with digits or more than two words are not reliably captured.
    """
    for pattern in _CONTACT_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        words = match.group(1).split()
        if words[0].lower() in _NAME_STOPWORDS:
            continue
        if len(words) > 1 and (
            words[1].lower() in _NAME_CONNECTORS or words[1].lower() in _NAME_STOPWORDS
        ):
            words = words[:1]
        return " ".join(words)

    lower = message.lower()
    for phrase in _NAME_AFTER_PHRASES:
        index = lower.find(phrase)
        if index == -1:
            continue
        words = message[index + len(phrase):].split()
        if (
            words
            and len(words[0]) > 2
            and _ALPHA_WORD.fullmatch(words[0])
            and words[0].lower() not in _NAME_STOPWORDS
        ):
            return words[0]

    return None


# ---------------------------------------------------------------------------
# Message bodies
# ---------------------------------------------------------------------------

_FILLER_PATTERNS = [
    re.compile(r"^(?:a|an|the)\s+(?:message|text|chat)$", re.IGNORECASE),
    re.compile(r"^(?:message|text|chat)$", re.IGNORECASE),
]

# "send a message to X" with nothing after X means we have to ask.
_FILLER_OPENERS = [
    re.compile(r"^send\s+(?:a|the|an)\s+message\s+to", re.IGNORECASE),
    re.compile(r"^text\s+(?:a|the|an)\s+message\s+to", re.IGNORECASE),
    re.compile(r"^send\s+(?:a|the|an)\s+text\s+to", re.IGNORECASE),
    re.compile(r"^message\s+(?:a|the|an)\s+message\s+to", re.IGNORECASE),
]

_EXPLICIT_BODY_PATTERNS = [
    re.compile(
        r"(?:saying|with|that says|which says|message is|text is)\s+(.+?)(?:\s+to\s+|\s+from\s+|$)",
        re.IGNORECASE,
    ),
    re.compile(r"(?:send|text)\s+(.+?)\s+(?:saying|with|that says)", re.IGNORECASE),
]

_BODY_BEFORE_CONTACT = re.compile(
    r"(?:send|text)\s+(.+?)\s+to\s+([a-z]+(?:\s+[a-z]+)?)", re.IGNORECASE
)
_BODY_AFTER_CONTACT = re.compile(
    r"(?:send|text)\s+to\s+([a-z]+(?:\s+[a-z]+)?)\s+(.+?)$", re.IGNORECASE
)

_SCAN_SKIP_WORDS = frozenset({
    "send", "text", "message", "to", "with", "saying", "that", "a", "an", "the",
})
_SCAN_END_WORDS = frozenset({"to", "from", "contact", "in", "whatsapp"})

_QUOTES = re.compile(r"^[\"']|[\"']$")
_TRAILING_TO_NAME = re.compile(r"\s+to\s+[a-z]+$", re.IGNORECASE)
_REPLY_TO_NAME = re.compile(r"(?:^|\s+)to\s+[a-z]+$", re.IGNORECASE)

_REPLY_BODY_PATTERNS = [
    re.compile(r"(?:reply|respond)\s+(?:with|saying)\s+(.+?)$", re.IGNORECASE),
    re.compile(r"(?:reply|respond)\s+to\s+.+?\s+(?:with|saying)\s+(.+?)$", re.IGNORECASE),
    re.compile(r"(?:reply|respond)\s+(.+?)$", re.IGNORECASE),
]


def is_filler_phrase(text: str) -> bool:
    """True for text like "a message" that carries no actual content."""
    stripped = text.lower().strip()
    return any(pattern.search(stripped) for pattern in _FILLER_PATTERNS)


def _clean(text: str) -> str:
    return _QUOTES.sub("", text.strip())


def extract_message_to_send(message: str) -> Optional[str]:
    """Pull the body out of a send command.

    "send hello to john" -> "hello"
    "text sarah saying hi there" -> "hi there"
    "send a message to dawar" -> None (ask what to send)
    """
    lower = message.lower()

    for opener in _FILLER_OPENERS:
        if not opener.search(message):
            continue
        contact = extract_contact_name(message)
        if not contact:
            return None
        parts = lower.split(contact.lower())
        after_contact = parts[1].strip() if len(parts) > 1 else ""
        if len(after_contact) < 3:
            return None

    for pattern in _EXPLICIT_BODY_PATTERNS:
        match = pattern.search(message)
        if match:
            text = _TRAILING_TO_NAME.sub("", _clean(match.group(1)))
            if text and not is_filler_phrase(text):
                return text

    match = _BODY_BEFORE_CONTACT.search(message)
    if match:
        text = _clean(match.group(1))
        if text and not is_filler_phrase(text):
            return text

    match = _BODY_AFTER_CONTACT.search(message)
    if match:
        text = _clean(match.group(2))
        if text and not is_filler_phrase(text):
            return text

    starts = [i for i in (lower.find("send"), lower.find("text")) if i != -1]
    if not starts:
        return None

    words = message[min(starts):].split()
    start = next(
        (i for i, word in enumerate(words) if word.lower() not in _SCAN_SKIP_WORDS and len(word) > 1),
        None,
    )
    if start is None:
        return None

    end = next(
        (i for i in range(start, len(words)) if words[i].lower() in _SCAN_END_WORDS),
        len(words),
    )
    chunk = words[start:end]
    if chunk:
        extracted = " ".join(chunk)
        if not is_filler_phrase(extracted):
            return extracted

    return None


def extract_reply_message(message: str) -> Optional[str]:
    """Pull the body out of a reply command.

    "reply with no" -> "no", "reply to Sarah saying yes" -> "yes".
    """
    for pattern in _REPLY_BODY_PATTERNS:
        match = pattern.search(message)
        if not match:
            continue
        text = _REPLY_TO_NAME.sub("", match.group(1).strip())
        text = _clean(text).strip()
        if text:
            return text
    return None


# ---------------------------------------------------------------------------
# Action cascade
# ---------------------------------------------------------------------------

_CHECK_PHRASES = ("new message", "any message", "check message", "unread", "new text", "any text")
_CHECK_VERB = re.compile(r"\bcheck\b.*\b(?:whatsapp|messages?|texts?|chats?|inbox)\b")


def _wants_check(lower: str) -> bool:
    return (
        any(phrase in lower for phrase in _CHECK_PHRASES)
        or bool(_CHECK_VERB.search(lower))
        or ("read" in lower and "whatsapp" in lower)
    )


def _wants_send(lower: str) -> bool:
    return "send" in lower or ("text" in lower and "read" not in lower) or "message to" in lower


def _wants_reply(lower: str) -> bool:
    return "reply" in lower or "respond" in lower


def _wants_read(lower: str) -> bool:
    return (
        ("read" in lower and "new" not in lower)
        or "show message" in lower
        or "get message" in lower
        or "messages from" in lower
    )


def _check(lower: str, original: str) -> ParsedCommand:
    contact = extract_contact_name(original)
    return ParsedCommand(
        domain=Domain.MESSAGING,
        action=Action.CHECK,
        target=contact,
        filters=MessageFilters(unread_only=True, contact=contact),
    )


def _send(lower: str, original: str) -> ParsedCommand:
    return ParsedCommand(
        domain=Domain.MESSAGING,
        action=Action.SEND,
        target=extract_contact_name(original),
        message=extract_message_to_send(original),
    )


def _reply(lower: str, original: str) -> ParsedCommand:
    return ParsedCommand(
        domain=Domain.MESSAGING,
        action=Action.REPLY,
        target=extract_contact_name(original),
        message=extract_reply_message(original),
    )


def _read(lower: str, original: str) -> Optional[ParsedCommand]:
    # Without a contact this is too vague to be a read; leave it unknown.
    contact = extract_contact_name(original)
    if not contact:
        return None
    return ParsedCommand(
        domain=Domain.MESSAGING,
        action=Action.READ,
        target=contact,
        filters=MessageFilters(contact=contact),
    )


_MESSAGING_RULES: List[Rule] = [
    (_wants_check, _check),
    (_wants_send, _send),
    (_wants_reply, _reply),
    (_wants_read, _read),
]


def _parse_messaging(lower: str, original: str) -> ParsedCommand:
    for predicate, handler in _MESSAGING_RULES:
        if predicate(lower):
            command = handler(lower, original)
            if command is not None:
                return command
    return ParsedCommand(domain=Domain.MESSAGING, action=Action.UNKNOWN)


# ---------------------------------------------------------------------------
# Domain cascade
# ---------------------------------------------------------------------------

_MESSAGING_WORDS = ("whatsapp", "message", "text", "chat")
_MESSAGING_VERBS = re.compile(r"\b(?:send|reply|respond)\b")


def _mentions_messaging(lower: str) -> bool:
    return any(word in lower for word in _MESSAGING_WORDS)


def _addresses_contact(lower: str) -> bool:
    # A bare send/reply verb only counts when it is aimed at someone.
    return bool(_MESSAGING_VERBS.search(lower)) and extract_contact_name(lower) is not None


def _mentions_email(lower: str) -> bool:
    return "email" in lower or "mail" in lower


def _mentions_calendar(lower: str) -> bool:
    return "calendar" in lower or "event" in lower or "meeting" in lower


def _placeholder(domain: Domain) -> Callable[[str, str], ParsedCommand]:
    def _handle(lower: str, original: str) -> ParsedCommand:
        return ParsedCommand(domain=domain, action=Action.UNKNOWN)
    return _handle


_DOMAIN_RULES: List[Rule] = [
    (_mentions_messaging, _parse_messaging),
    (_mentions_email, _placeholder(Domain.EMAIL)),
    (_mentions_calendar, _placeholder(Domain.CALENDAR)),
    (_addresses_contact, _parse_messaging),
]


def parse_command(utterance: str) -> Optional[ParsedCommand]:
    """Classify an utterance; None means "just talk to the LLM"."""
    if not utterance:
        return None
    original = utterance.strip()
    lower = original.lower()

    for predicate, handler in _DOMAIN_RULES:
        if predicate(lower):
            return handler(lower, original)
    return None
