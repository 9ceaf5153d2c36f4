"""Connection lifecycle of the messaging session."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Phase(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    QR_PENDING = "qr_pending"
    AUTHENTICATED = "authenticated"
    READY = "ready"
    DISCONNECTED = "disconnected"
    FAULTED = "faulted"


# ``authenticated`` fires a few seconds before ``ready``; both count as
# connected so status polling does not flap during the gap.
CONNECTED_PHASES = frozenset({Phase.AUTHENTICATED, Phase.READY})


@dataclass
class ConnectionState:
    """Current phase plus the QR payload pending in ``qr_pending``.

    ``qr_payload`` is only ever set while ``phase`` is ``QR_PENDING``.
    """

    phase: Phase = Phase.UNINITIALIZED
    qr_payload: Optional[str] = None
    last_reason: Optional[str] = None

    def move_to(self, phase: Phase, qr_payload: Optional[str] = None,
                reason: Optional[str] = None) -> None:
        self.phase = phase
        self.qr_payload = qr_payload if phase is Phase.QR_PENDING else None
        if reason is not None:
            self.last_reason = reason

    @property
    def connected(self) -> bool:
        return self.phase in CONNECTED_PHASES


@dataclass(frozen=True)
class InitResult:
    """Outcome of one ``initialize()`` call."""

    ready: bool
    qr_payload: Optional[str] = None

    @property
    def outcome(self) -> str:
        if self.ready:
            return "ready"
        if self.qr_payload:
            return "qr"
        return "initializing"


@dataclass(frozen=True)
class BridgeStatus:
    connected: bool
    qr_payload: Optional[str]
    phase: Phase
