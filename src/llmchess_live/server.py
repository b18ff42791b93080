"""
Flask API plus the WebSocket protocol server for live chess games.

Endpoints (mounted under /sessions, and under /games for older clients):
- GET  /sessions                 -> list game summaries
- POST /sessions                 -> create a game ({"isAIGame": bool} or {"automatedOpponent": bool})
- GET  /sessions/<id>            -> full state including move history
- POST /sessions/<id>/ai-move    -> play one automated move now and return the new state
- GET  /health                   -> liveness probe

Real-time events (join_game, make_move, restart_game, ...) are served by ws_server
on WS_PORT and handled by protocol.SessionProtocolHandler. Both surfaces share one
SessionStore created at startup.
"""
from __future__ import annotations

import argparse
import logging

from flask import Blueprint, Flask, current_app, jsonify, request

from . import payloads
from .config import Settings, describe, load_settings
from .errors import GameError, ProviderConfigError
from .llm_client import CREDENTIAL_NAMES
from .protocol import SessionProtocolHandler
from .store import SessionStore
from .suggestion import MoveSuggester
from .ws_server import WebSocketServer, WebSocketTransport

log = logging.getLogger("server")

games_api = Blueprint("sessions", __name__)


def _store() -> SessionStore:
    return current_app.extensions["llmchess.store"]


def _handler() -> SessionProtocolHandler:
    return current_app.extensions["llmchess.handler"]


@games_api.route("", methods=["GET"])
def list_games():
    return jsonify({"success": True, "games": [payloads.summary(s) for s in _store().list_all()]})


@games_api.route("", methods=["POST"])
def create_game():
    data = request.get_json(silent=True) or {}
    ai_enabled = data.get("isAIGame", data.get("automatedOpponent")) is True
    try:
        session = _store().create(ai_enabled=ai_enabled)
    except Exception as e:
        log.exception("Failed to create game")
        return jsonify({"success": False, "error": "Failed to create game", "message": str(e)}), 500
    with session.lock:
        game = payloads.detail(session, include_history=False)
    return jsonify({"success": True, "game": game}), 201


@games_api.route("/<game_id>", methods=["GET"])
def get_game(game_id: str):
    session = _store().get(game_id)
    if session is None:
        return jsonify({"success": False, "error": "Game not found"}), 404
    with session.lock:
        game = payloads.detail(session)
    return jsonify({"success": True, "game": game})


@games_api.route("/<game_id>/ai-move", methods=["POST"])
def ai_move(game_id: str):
    try:
        session, record = _handler().play_ai_move(game_id)
    except GameError as e:
        return jsonify({"success": False, "error": str(e)}), e.status
    with session.lock:
        body = payloads.ai_move_result(session, record)
    return jsonify(body)


def create_app(store: SessionStore, handler: SessionProtocolHandler, settings: Settings) -> Flask:
    app = Flask(__name__)
    app.extensions["llmchess.store"] = store
    app.extensions["llmchess.handler"] = handler
    app.register_blueprint(games_api, url_prefix="/sessions")
    app.register_blueprint(games_api, url_prefix="/games", name="games")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "message": "Chess backend server is running"})

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = settings.frontend_url
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
        response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
        response.headers["Cache-Control"] = "no-store, max-age=0"
        return response

    @app.route("/<path:path>", methods=["OPTIONS"])
    def cors_preflight(path: str):
        return app.make_response(("", 204))

    return app


def build_suggester(settings: Settings) -> MoveSuggester | None:
    try:
        suggester = MoveSuggester.from_settings(settings)
    except ProviderConfigError as e:
        log.error("Automated opponent disabled: %s", e)
        return None
    if not suggester.client.spec.api_key:
        log.error("Automated opponent disabled: %s is not set", CREDENTIAL_NAMES[suggester.provider])
        return None
    return suggester


def main(argv: list[str] | None = None) -> None:
    settings = load_settings()
    ap = argparse.ArgumentParser(description="Live chess server (HTTP + WebSocket)")
    ap.add_argument("--host", default=settings.host)
    ap.add_argument("--port", type=int, default=settings.port, help="HTTP port")
    ap.add_argument("--ws-port", type=int, default=settings.ws_port, help="WebSocket port")
    ap.add_argument("--log-level", default=settings.log_level)
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
    log.info("Settings: %s", describe(settings))

    store = SessionStore()
    transport = WebSocketTransport()
    handler = SessionProtocolHandler(
        store,
        transport,
        suggester=build_suggester(settings),
        thinking_delay_s=settings.ai_thinking_delay_s,
    )
    transport.bind(handler)
    ws = WebSocketServer(transport, args.host, args.ws_port, origins=[settings.frontend_url, None])
    ws.start()

    app = create_app(store, handler, settings)
    log.info("Chess backend server running on port %d (frontend %s)", args.port, settings.frontend_url)
    try:
        app.run(host=args.host, port=args.port, threaded=True)
    finally:
        handler.shutdown()
        ws.stop()


if __name__ == "__main__":
    main()
