"""
WebSocket transport for the session protocol.

Frames are JSON text in both directions: {"event": "<name>", "data": {...}}.
Each connection is served on its own thread by the websockets sync server; the
connection's id is the connection id the protocol handler and store work with.
"""
from __future__ import annotations

import json
import logging
import threading
from typing import Any, Dict, Optional, Sequence

from websockets.exceptions import ConnectionClosed
from websockets.sync.server import Server, ServerConnection, serve

log = logging.getLogger("ws_server")


def encode_frame(event: str, payload: dict) -> str:
    return json.dumps({"event": event, "data": payload})


def decode_frame(message: Any) -> tuple[str, dict]:
    """Return (event, data) from a client frame; ValueError if it is not a valid envelope."""
    if isinstance(message, bytes):
        message = message.decode("utf-8")
    frame = json.loads(message)
    if not isinstance(frame, dict):
        raise ValueError("frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ValueError("frame is missing 'event'")
    data = frame.get("data")
    return event, data if isinstance(data, dict) else {}


class WebSocketTransport:
    """Connection registry that implements the handler's send() and pumps incoming frames."""

    def __init__(self):
        self._connections: Dict[str, ServerConnection] = {}
        self._lock = threading.Lock()
        self.handler = None

    def bind(self, handler) -> None:
        self.handler = handler

    def send(self, connection_id: str, event: str, payload: dict) -> None:
        with self._lock:
            ws = self._connections.get(connection_id)
        if ws is None:
            log.debug("Dropping %s for unknown connection %s", event, connection_id)
            return
        try:
            ws.send(encode_frame(event, payload))
        except ConnectionClosed:
            log.debug("Dropping %s for closed connection %s", event, connection_id)

    def connection_count(self) -> int:
        with self._lock:
            return len(self._connections)

    def serve_connection(self, ws: ServerConnection) -> None:
        connection_id = str(ws.id)
        with self._lock:
            self._connections[connection_id] = ws
        log.info("Client connected: %s", connection_id)
        try:
            for message in ws:
                try:
                    event, data = decode_frame(message)
                except ValueError as e:
                    log.warning("Invalid message from %s: %s", connection_id, e)
                    self.send(connection_id, "error", {"message": "Invalid message", "error": str(e)})
                    continue
                self.handler.handle(connection_id, event, data)
        except ConnectionClosed:
            log.debug("Connection %s closed", connection_id)
        finally:
            self.handler.handle(connection_id, "disconnect")
            with self._lock:
                self._connections.pop(connection_id, None)


class WebSocketServer:
    def __init__(self, transport: WebSocketTransport, host: str, port: int, origins: Optional[Sequence[Optional[str]]] = None):
        self.transport = transport
        self.host = host
        self.port = port
        self.origins = origins
        self._server: Optional[Server] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        self._server = serve(self.transport.serve_connection, self.host, self.port, origins=self.origins)
        self._thread = threading.Thread(target=self._server.serve_forever, name="ws-server", daemon=True)
        self._thread.start()
        log.info("WebSocket server ready on ws://%s:%d", self.host, self.port)

    def stop(self) -> None:
        if self._server is not None:
            self._server.shutdown()
            log.info("WebSocket server stopped")
        if self._thread is not None:
            self._thread.join(timeout=5)
