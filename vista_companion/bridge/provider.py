"""Process-wide handle on the messaging bridge."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional

from vista_companion.bridge.adapter import MessagingBridge
from vista_companion.bridge.client import load_client_factory

logger = logging.getLogger(__name__)


def bridge_from_config(config: Dict[str, Any]) -> MessagingBridge:
    """Build the bridge described by the config and kick off auto-connect."""
    bridge = MessagingBridge(
        load_client_factory(config.get("client_factory")),
        session_dir=config["session_dir"],
        poll_attempts=int(config["poll_attempts"]),
        poll_interval=float(config["poll_interval"]),
        recreate_poll_attempts=int(config["recreate_poll_attempts"]),
        reconnect_delay=float(config["reconnect_delay"]),
    )
    bridge.auto_connect(float(config["auto_connect_delay"]))
    return bridge


class BridgeProvider:
    """Constructs the bridge on first use and hands the same one to everyone.

    Request handlers receive the provider rather than reaching for module
    state, so all of them observe one connection.
    """

    def __init__(self, build: Callable[[], MessagingBridge]):
        self._build = build
        self._bridge: Optional[MessagingBridge] = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "BridgeProvider":
        return cls(lambda: bridge_from_config(config))

    def get(self) -> MessagingBridge:
        with self._lock:
            if self._bridge is None:
                logger.info("Creating WhatsApp bridge")
                self._bridge = self._build()
            return self._bridge

    def close(self) -> None:
        with self._lock:
            bridge, self._bridge = self._bridge, None
        if bridge is not None:
            bridge.shutdown()
