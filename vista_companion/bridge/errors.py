"""Failure conditions raised by the messaging bridge.

Every exception coming out of the underlying messaging client is translated
into one of these at the adapter boundary, so callers only ever handle
``BridgeError`` subclasses.
"""

from __future__ import annotations

NOT_CONNECTED_MESSAGE = "WhatsApp not connected. Please scan QR code first."

# Error text produced when the client's contact-name lookup breaks.
NAME_RESOLUTION_MARKERS = ("getIsMyContact", "ContactMethods", "getContact")

# Error text that means the browser session behind the client is gone.
SESSION_CORRUPTION_MARKERS = ("destroyed", "session", "target closed")


class BridgeError(Exception):
    """Base class for all messaging bridge failures."""


class NotConnectedError(BridgeError):
    def __init__(self, message: str = NOT_CONNECTED_MESSAGE):
        super().__init__(message)


class ContactNotFoundError(BridgeError):
    def __init__(self, contact: str):
        super().__init__(f'Contact "{contact}" not found')
        self.contact = contact


class MessageNotFoundError(BridgeError):
    def __init__(self, message_id: str):
        super().__init__(f'Message with ID "{message_id}" not found')
        self.message_id = message_id


class NameResolutionError(BridgeError):
    """The client could not resolve contact names for the affected chats."""


class SessionCorruptedError(BridgeError):
    """The session stayed broken after one destroy/recreate cycle."""


class ClientUnavailableError(BridgeError):
    """No messaging client is configured for this process."""


class InvalidRequestError(BridgeError):
    pass


def is_name_resolution_failure(exc: BaseException) -> bool:
    if isinstance(exc, NameResolutionError):
        return True
    text = str(exc)
    return any(marker in text for marker in NAME_RESOLUTION_MARKERS)


def is_session_corruption(exc: BaseException) -> bool:
    text = str(exc).lower()
    return any(marker in text for marker in SESSION_CORRUPTION_MARKERS)
