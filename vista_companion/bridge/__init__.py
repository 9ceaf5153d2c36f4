from vista_companion.bridge.adapter import MessagingBridge
from vista_companion.bridge.client import MessagingClient, load_client_factory
from vista_companion.bridge.errors import (
    BridgeError,
    ClientUnavailableError,
    ContactNotFoundError,
    InvalidRequestError,
    MessageNotFoundError,
    NameResolutionError,
    NotConnectedError,
    SessionCorruptedError,
)
from vista_companion.bridge.models import ChatInfo, ContactInfo, Message, RawMessage
from vista_companion.bridge.provider import BridgeProvider, bridge_from_config
from vista_companion.bridge.remote import RemoteBridge, RemoteBridgeUnavailable, RemoteCommandBridge
from vista_companion.bridge.state import BridgeStatus, ConnectionState, InitResult, Phase

__all__ = [
    "MessagingBridge",
    "MessagingClient",
    "load_client_factory",
    "BridgeError",
    "ClientUnavailableError",
    "ContactNotFoundError",
    "InvalidRequestError",
    "MessageNotFoundError",
    "NameResolutionError",
    "NotConnectedError",
    "SessionCorruptedError",
    "ChatInfo",
    "ContactInfo",
    "Message",
    "RawMessage",
    "BridgeProvider",
    "bridge_from_config",
    "RemoteBridge",
    "RemoteBridgeUnavailable",
    "RemoteCommandBridge",
    "BridgeStatus",
    "ConnectionState",
    "InitResult",
    "Phase",
]
