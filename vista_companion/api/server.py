"""HTTP API for the Vista frontend.

Endpoints:
    POST /api/chat                 utterance in, {response, emotion, command} out
    POST /api/whatsapp/connect     start the WhatsApp session, maybe return a QR code
    GET  /api/whatsapp/status      {connected, qrCode, phase}
    GET  /api/whatsapp/qr          pending QR code
    POST /api/whatsapp/send        send to a contact or reply to a message id
    GET  /api/whatsapp/messages    recent, unread or per-contact messages

When ``whatsapp_service_url`` is configured the WhatsApp endpoints forward
to that service instead of running a local session, and so do the WhatsApp
commands spoken through /api/chat.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from vista_companion.api.config import load_config
from vista_companion.bridge.errors import (
    BridgeError,
    ClientUnavailableError,
    ContactNotFoundError,
    InvalidRequestError,
)
from vista_companion.bridge.provider import BridgeProvider
from vista_companion.bridge.remote import RemoteBridge, RemoteCommandBridge
from vista_companion.commands.executor import CommandExecutor
from vista_companion.conversation.orchestrator import Conversation
from vista_companion.llm.cascade import ReplyCascade, canned_response

logger = logging.getLogger(__name__)

CONNECT_GRACE_SECONDS = 2
NOT_CONNECTED = "WhatsApp not connected. Please connect first."
SCAN_QR = "Scan the QR code with WhatsApp to connect"
ALREADY_CONNECTED = "WhatsApp is already connected"
STILL_INITIALIZING = "Initializing WhatsApp connection... Please wait, QR code will appear shortly."


class ChatRequest(BaseModel):
    message: Any = None


class SendRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contact: Optional[str] = None
    message: Optional[str] = None
    reply_to: Optional[str] = Field(default=None, alias="replyTo")


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def _connect_payload(ready: bool, qr_code: Optional[str]) -> Dict[str, Any]:
    if ready:
        message = ALREADY_CONNECTED
    elif qr_code:
        message = SCAN_QR
    else:
        message = STILL_INITIALIZING
    return {"success": True, "ready": ready, "qrCode": qr_code, "message": message}


def create_app(
    config: Optional[Dict[str, Any]] = None,
    provider: Optional[BridgeProvider] = None,
    conversation: Optional[Conversation] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> FastAPI:
    """Build the app. Collaborators default to the ones described by config."""
    config = config or load_config()
    provider = provider or BridgeProvider.from_config(config)
    service_url = config.get("whatsapp_service_url") or ""
    remote = RemoteBridge(service_url) if service_url else None
    if conversation is None:
        if remote is None:
            command_bridge = provider.get
        else:
            forwarded = RemoteCommandBridge(remote)
            command_bridge = lambda: forwarded
        conversation = Conversation(
            CommandExecutor(command_bridge),
            ReplyCascade.from_config(config),
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if remote is None:
            provider.get()
        else:
            logger.info("Forwarding WhatsApp endpoints to %s", service_url)
        yield
        provider.close()

    app = FastAPI(title="Vista Companion API", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.config = config
    app.state.provider = provider
    app.state.conversation = conversation

    @app.post("/api/chat")
    def chat(req: ChatRequest):
        if not req.message or not isinstance(req.message, str):
            return _error(400, "Message is required")
        try:
            return conversation.respond(req.message).to_dict()
        except Exception as exc:
            logger.error("Chat request failed: %s", exc)
            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "response": canned_response("error", config.get("assistant_name", "Vista")),
                    "emotion": "sad",
                },
            )

    @app.post("/api/whatsapp/connect")
    def connect():
        if remote is not None:
            try:
                return remote.connect()
            except BridgeError as exc:
                return _error(503, str(exc))

        bridge = provider.get()
        try:
            result = bridge.initialize()
        except BridgeError as exc:
            logger.error("WhatsApp connect failed: %s", exc)
            return _error(
                503,
                f"WhatsApp service initialization failed: {exc}",
                requiresExternalService=isinstance(exc, ClientUnavailableError),
            )

        logger.info("Connect result: ready=%s has_qr=%s", result.ready, bool(result.qr_payload))
        if not result.ready and not result.qr_payload:
            sleep(CONNECT_GRACE_SECONDS)
            status = bridge.get_status()
            if status.connected or status.qr_payload:
                return _connect_payload(status.connected, status.qr_payload)
        return _connect_payload(result.ready, result.qr_payload)

    @app.get("/api/whatsapp/status")
    def status():
        if remote is not None:
            try:
                return remote.status()
            except BridgeError:
                return {"connected": False, "qrCode": None, "serviceUnavailable": True}

        current = provider.get().get_status()
        return {
            "connected": current.connected,
            "qrCode": current.qr_payload,
            "phase": current.phase.value,
        }

    @app.get("/api/whatsapp/qr")
    def qr_code():
        if remote is not None:
            try:
                return remote.qr()
            except BridgeError as exc:
                return _error(503, str(exc))

        bridge = provider.get()
        qr = bridge.get_qr_code()
        if not qr:
            try:
                bridge.initialize()
            except BridgeError as exc:
                return _error(503, str(exc))
            qr = bridge.get_qr_code()
        if not qr:
            return _error(404, "QR code not available. WhatsApp may already be connected.")
        return {"qrCode": qr, "connected": False}

    @app.post("/api/whatsapp/send")
    def send(req: SendRequest):
        if not req.message:
            return _error(400, "Message is required")

        if remote is not None:
            try:
                return remote.send(req.message, contact=req.contact, reply_to=req.reply_to)
            except BridgeError as exc:
                return _error(503, str(exc))

        bridge = provider.get()
        if not bridge.is_connected():
            return _error(400, NOT_CONNECTED)
        try:
            confirmation = bridge.deliver(req.message, target=req.contact, reply_to=req.reply_to)
        except InvalidRequestError as exc:
            return _error(400, str(exc))
        except ContactNotFoundError as exc:
            return _error(404, str(exc))
        except BridgeError as exc:
            return _error(500, str(exc) or "Failed to send message")
        return {"success": True, "message": confirmation}

    @app.get("/api/whatsapp/messages")
    def messages(contact: Optional[str] = None, unread: str = "false", limit: int = 10):
        unread_only = unread == "true"

        if remote is not None:
            try:
                return remote.messages(contact=contact, unread=unread_only, limit=limit)
            except BridgeError as exc:
                return _error(503, str(exc))

        bridge = provider.get()
        if not bridge.is_connected():
            return _error(400, NOT_CONNECTED)
        try:
            if unread_only:
                found = bridge.list_unread(contact=contact)
            elif contact:
                found = bridge.list_from_contact(contact, limit)
            else:
                found = bridge.list_recent(None, limit)
        except ContactNotFoundError as exc:
            return _error(404, str(exc))
        except BridgeError as exc:
            return _error(500, str(exc) or "Failed to get messages")

        return {
            "success": True,
            "messages": [m.to_dict() for m in found],
            "count": len(found),
        }

    return app
