"""Records exchanged with the messaging client and returned to callers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


@dataclass
class ChatInfo:
    """A conversation thread as reported by the messaging client."""

    id: str
    name: str = ""
    is_group: bool = False
    unread_count: int = 0


@dataclass
class RawMessage:
    """A message as fetched from the client, before name resolution.

    ``timestamp`` is in epoch seconds. ``notify_name`` and ``from_name`` are
    whatever display names the client could attach; either may be empty.
    """

    id: str
    chat_id: str
    body: str
    timestamp: float
    sender_id: str = ""
    notify_name: str = ""
    from_name: str = ""


@dataclass
class ContactInfo:
    id: str
    push_name: str = ""
    number: str = ""


@dataclass
class Message:
    """Read-only message view handed to the executor and the HTTP API.

    Fetched on demand from the bridge and never cached beyond the request
    that asked for it.
    """

    id: str
    sender: str
    body: str
    timestamp: datetime
    is_group: bool = False
    contact_name: Optional[str] = None

    @classmethod
    def from_raw(
        cls,
        raw: RawMessage,
        sender: str,
        is_group: bool,
        contact_name: Optional[str] = None,
    ) -> "Message":
        return cls(
            id=raw.id,
            sender=sender,
            body=raw.body,
            timestamp=datetime.fromtimestamp(raw.timestamp, tz=timezone.utc),
            is_group=is_group,
            contact_name=contact_name,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        """Inverse of to_dict. Naive timestamps are taken as UTC."""
        stamp = str(data["timestamp"])
        if stamp.endswith("Z"):
            stamp = stamp[:-1] + "+00:00"
        timestamp = datetime.fromisoformat(stamp)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        return cls(
            id=data["id"],
            sender=data.get("from") or "Unknown",
            body=data.get("body") or "",
            timestamp=timestamp,
            is_group=bool(data.get("isGroup")),
            contact_name=data.get("contactName"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Wire form used by the HTTP API and the remote bridge service."""
        return {
            "id": self.id,
            "from": self.sender,
            "body": self.body,
            "timestamp": self.timestamp.isoformat(),
            "isGroup": self.is_group,
            "contactName": self.contact_name,
        }
