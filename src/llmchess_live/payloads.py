"""Wire dictionaries for game state, shared by the WebSocket protocol and the HTTP routes."""
from __future__ import annotations

from typing import Optional

from .referee import MoveRecord
from .store import GameSession


def _position(session: GameSession) -> dict:
    ref = session.referee
    status = ref.status()
    return {
        "fen": ref.fen(),
        "pgn": ref.pgn(),
        "turn": ref.turn(),
        "isGameOver": status.is_game_over,
        "status": status.to_dict(),
    }


def history(session: GameSession) -> list[dict]:
    return [rec.to_dict() for rec in session.referee.history()]


def game_state(session: GameSession) -> dict:
    """Full state sent to a connection that joins."""
    return {
        "gameId": session.id,
        **_position(session),
        "isAIGame": session.ai_enabled,
        "history": history(session),
    }


def move_made(session: GameSession, record: MoveRecord, is_ai_move: bool = False) -> dict:
    out = {
        "gameId": session.id,
        "move": record.to_dict(),
        **_position(session),
        "history": history(session),
    }
    if is_ai_move:
        out["isAIMove"] = True
    return out


def game_restarted(session: GameSession) -> dict:
    return {"gameId": session.id, **_position(session), "history": []}


def summary(session: GameSession) -> dict:
    ref = session.referee
    return {
        "id": session.id,
        "fen": ref.fen(),
        "turn": ref.turn(),
        "isGameOver": ref.is_game_over(),
        "createdAt": session.created_at,
    }


def detail(session: GameSession, include_history: bool = True) -> dict:
    out = {
        "id": session.id,
        **_position(session),
        "isAIGame": session.ai_enabled,
        "createdAt": session.created_at,
    }
    if include_history:
        out["history"] = history(session)
    return out


def ai_move_result(session: GameSession, record: Optional[MoveRecord]) -> dict:
    return {
        "success": True,
        "move": record.to_dict() if record else None,
        **_position(session),
        "history": history(session),
    }
