"""Real-time channel: connection greeting and ping/pong over Socket.IO.

Clients exchange JSON objects shaped ``{"type": ..., "data": ...}`` on the
default ``message`` event. Supported types are ``connection`` (sent by the
server on connect), ``ping`` / ``pong`` and ``error``.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from flask import Flask, request
from flask_socketio import SocketIO, emit

from services.metrics_service import MetricsService

logger = logging.getLogger(__name__)

MESSAGE_EVENT = "message"


class WebSocketService:
    def __init__(self, metrics: MetricsService):
        self.metrics = metrics
        self.socketio: SocketIO | None = None

    def init_app(self, app: Flask, **kwargs) -> SocketIO:
        """Bind a Socket.IO server to ``app`` and register the handlers."""

        self.socketio = SocketIO(app, **kwargs)
        self.socketio.on_event("connect", self.handle_connect)
        self.socketio.on_event("disconnect", self.handle_disconnect)
        self.socketio.on_event(MESSAGE_EVENT, self.handle_message)
        self.socketio.on_event("json", self.handle_message)
        app.extensions["websocket"] = self
        return self.socketio

    def handle_connect(self, auth: Any = None) -> None:
        self.metrics.record_websocket_connection(True)
        logger.debug("WebSocket client connected", extra={"client_id": request.sid})
        self._send("connection", {"client_id": request.sid})

    def handle_disconnect(self, *args) -> None:
        self.metrics.record_websocket_connection(False)
        logger.debug("WebSocket client disconnected", extra={"client_id": request.sid})

    def handle_message(self, payload: Any = None) -> None:
        message = _decode(payload)
        message_type = message.get("type") if message else None
        self.metrics.record_websocket_message(
            message_type if isinstance(message_type, str) else "invalid", "in"
        )

        if message is None:
            self._send("error", {"message": "Messages must be JSON objects"})
        elif message_type == "ping":
            self._send("pong", {"timestamp": datetime.now(timezone.utc).isoformat()})
        else:
            self._send("error", {"message": f"Unsupported message type: {message_type}"})

    def _send(self, message_type: str, data: Any) -> None:
        emit(MESSAGE_EVENT, {"type": message_type, "data": data})
        self.metrics.record_websocket_message(message_type, "out")


def _decode(payload: Any) -> dict | None:
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    return payload if isinstance(payload, dict) else None
