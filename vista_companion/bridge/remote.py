"""Client for a WhatsApp bridge running as a separate HTTP service.

The browser-backed session needs a long-lived process. When the API is
deployed somewhere that cannot host one, ``whatsapp_service_url`` points it
at a service exposing /connect, /status, /qr, /messages and /send. The CLI
``whatsapp`` commands use the same client against a running ``vista serve``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import requests

from vista_companion.bridge.errors import BridgeError
from vista_companion.bridge.models import Message

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class RemoteBridgeUnavailable(BridgeError):
    """The remote bridge service could not be reached."""


class RemoteBridge:
    """Thin JSON client. Methods return the service's JSON body unchanged."""

    def __init__(self, base_url: str, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("WhatsApp service unavailable at %s: %s", url, exc)
            raise RemoteBridgeUnavailable("WhatsApp service unavailable") from exc

    def _json(self, resp: requests.Response) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code != 200:
            detail = data.get("error") or data.get("detail") or f"HTTP {resp.status_code}"
            raise BridgeError(str(detail))
        return data

    def connect(self) -> Dict[str, Any]:
        return self._json(self._request("POST", "/connect", json={}))

    def status(self) -> Dict[str, Any]:
        return self._json(self._request("GET", "/status"))

    def qr(self) -> Dict[str, Any]:
        return self._json(self._request("GET", "/qr"))

    def messages(
        self,
        contact: Optional[str] = None,
        unread: bool = False,
        limit: int = 10,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit}
        if contact:
            params["contact"] = contact
        if unread:
            params["unread"] = "true"
        return self._json(self._request("GET", "/messages", params=params))

    def send(
        self,
        message: str,
        contact: Optional[str] = None,
        reply_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        payload = {"contact": contact, "message": message, "replyTo": reply_to}
        return self._json(self._request("POST", "/send", json=payload))


class RemoteCommandBridge:
    """The bridge operations the command executor needs, served by a RemoteBridge.

    Lets spoken commands work in remote mode, where no local session exists.
    """

    def __init__(self, remote: RemoteBridge):
        self.remote = remote

    def is_connected(self) -> bool:
        try:
            return bool(self.remote.status().get("connected"))
        except BridgeError as exc:
            logger.warning("Could not read WhatsApp service status: %s", exc)
            return False

    def _messages(self, **params) -> List[Message]:
        data = self.remote.messages(**params)
        try:
            return [Message.from_dict(item) for item in data.get("messages") or []]
        except (KeyError, TypeError, ValueError) as exc:
            raise BridgeError(f"Malformed message from WhatsApp service: {exc}") from exc

    def list_unread(self, contact: Optional[str] = None) -> List[Message]:
        return self._messages(contact=contact, unread=True)

    def list_recent(self, contact: Optional[str] = None, limit: int = 10) -> List[Message]:
        return self._messages(contact=contact, limit=limit)

    def list_from_contact(self, contact: str, limit: int = 10) -> List[Message]:
        return self._messages(contact=contact, limit=limit)

    def send(self, target: str, body: str) -> None:
        self.remote.send(body, contact=target)

    def reply(self, message_id: str, body: str) -> None:
        self.remote.send(body, reply_to=message_id)
