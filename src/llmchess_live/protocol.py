"""
Session protocol handler: the real-time coordination core.

Events in (per connection): join_game, make_move, restart_game, disconnect.
Events out: game_state (unicast), move_made / game_restarted / ai_thinking / ai_error
(broadcast to every participant of the game), error (unicast).

Every read-modify-broadcast of a game runs under that game's lock, so broadcasts
leave in the same order the moves were applied. Automated moves are scheduled on
a threading.Timer per game; the provider call itself runs outside the lock while
the game's ai_pending flag keeps human moves out.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Optional, Protocol

from . import payloads
from .errors import GameError, GameNotFoundError, LLMChessError, ProviderConfigError
from .referee import CandidateMove, MoveRecord, Referee
from .store import GameSession, SessionStore
from .suggestion import MoveSuggester

log = logging.getLogger("protocol")

AI_COLOR = "b"


class Transport(Protocol):
    def send(self, connection_id: str, event: str, payload: dict) -> None:
        ...


class SessionProtocolHandler:
    def __init__(
        self,
        store: SessionStore,
        transport: Transport,
        suggester: Optional[MoveSuggester] = None,
        thinking_delay_s: float = 1.0,
    ):
        self.store = store
        self.transport = transport
        self.suggester = suggester
        self.thinking_delay_s = thinking_delay_s
        self._timers: Dict[str, threading.Timer] = {}
        self._timers_lock = threading.Lock()
        self._handlers: Dict[str, tuple[str, Callable[[str, dict], None]]] = {
            "join_game": ("join game", self.on_join),
            "make_move": ("make move", self.on_move),
            "restart_game": ("restart game", self.on_restart),
        }

    # ---------------- Dispatch -----------------
    def handle(self, connection_id: str, event: str, data: Any = None) -> None:
        if event == "disconnect":
            self.on_disconnect(connection_id)
            return
        entry = self._handlers.get(event)
        if entry is None:
            self._error(connection_id, "Unknown event")
            return
        action, fn = entry
        if not isinstance(data, dict):
            data = {}
        try:
            fn(connection_id, data)
        except Exception as e:
            log.exception("Error handling %s from %s", event, connection_id)
            self._error(connection_id, f"Failed to {action}", error=str(e))

    def _error(self, connection_id: str, message: str, **extra: Any) -> None:
        self.transport.send(connection_id, "error", {"message": message, **extra})

    def broadcast(self, session: GameSession, event: str, payload: dict) -> None:
        for connection_id in self.store.participants(session.id):
            self.transport.send(connection_id, event, payload)

    @staticmethod
    def _game_id(data: dict) -> Optional[str]:
        game_id = data.get("gameId")
        return game_id if isinstance(game_id, str) and game_id else None

    # ---------------- Events -----------------
    def on_join(self, connection_id: str, data: dict) -> None:
        game_id = self._game_id(data)
        if game_id is None:
            self._error(connection_id, "Invalid game ID")
            return
        session = self.store.get(game_id)
        if session is None:
            session = self.store.create()
            log.info("Created new game %s for unknown id %s", session.id, game_id)
        self.store.attach(session.id, connection_id)
        with session.lock:
            state = payloads.game_state(session)
        self.transport.send(connection_id, "game_state", state)
        log.info("Player %s joined game %s", connection_id, session.id)

    def on_move(self, connection_id: str, data: dict) -> None:
        game_id = self._game_id(data)
        if game_id is None:
            self._error(connection_id, "Invalid game ID")
            return
        move = data.get("move")
        if not move:
            self._error(connection_id, "Move is required")
            return
        session = self.store.get(game_id)
        if session is None:
            self._error(connection_id, "Game not found")
            return
        if connection_id not in self.store.participants(session.id):
            self._error(connection_id, "You are not part of this game")
            return

        with session.lock:
            if session.ai_pending:
                self._error(connection_id, "AI is thinking, please wait")
                return
            candidate = CandidateMove.from_mapping(move) if isinstance(move, dict) else None
            if isinstance(move, str):
                record = session.referee.apply_text(move)
            elif candidate is not None:
                record = session.referee.apply_move(candidate)
            else:
                self._error(connection_id, "Invalid move format")
                return
            if record is None:
                self._error(connection_id, "Invalid move")
                return
            self.broadcast(session, "move_made", payloads.move_made(session, record))
            log.info("Move made in game %s: %s", session.id, record.san)
            if self._ai_to_move(session):
                session.ai_pending = True
                try:
                    self._schedule_ai_move(session)
                except RuntimeError as e:
                    session.ai_pending = False
                    log.exception("Could not schedule AI move for game %s", session.id)
                    self.broadcast(session, "ai_error", {"gameId": session.id, "error": str(e)})

    def on_restart(self, connection_id: str, data: dict) -> None:
        game_id = self._game_id(data)
        if game_id is None:
            self._error(connection_id, "Invalid game ID")
            return
        session = self.store.get(game_id)
        if session is None:
            self._error(connection_id, "Game not found")
            return
        with session.lock:
            was_pending = session.ai_pending
            self._cancel_ai_move(session.id)
            session.generation += 1
            session.ai_pending = False
            session.referee.reset()
            self.broadcast(session, "game_restarted", payloads.game_restarted(session))
            if was_pending:
                self.broadcast(session, "ai_thinking", {"gameId": session.id, "thinking": False})
        log.info("Game %s restarted", session.id)

    def on_disconnect(self, connection_id: str) -> None:
        session = self.store.detach(connection_id)
        log.info("Client disconnected: %s (game %s)", connection_id, session.id if session else None)

    # ---------------- Automated opponent -----------------
    def _ai_to_move(self, session: GameSession) -> bool:
        ref = session.referee
        return session.ai_enabled and not ref.is_game_over() and ref.turn() == AI_COLOR

    def _schedule_ai_move(self, session: GameSession) -> None:
        timer = threading.Timer(self.thinking_delay_s, self._run_ai_turn, args=(session.id, session.generation))
        timer.daemon = True
        with self._timers_lock:
            self._timers[session.id] = timer
        try:
            timer.start()
        except RuntimeError:
            with self._timers_lock:
                if self._timers.get(session.id) is timer:
                    del self._timers[session.id]
            raise

    def _cancel_ai_move(self, session_id: str) -> None:
        with self._timers_lock:
            timer = self._timers.pop(session_id, None)
        if timer is not None:
            timer.cancel()

    def pending_task(self, session_id: str) -> Optional[threading.Timer]:
        with self._timers_lock:
            return self._timers.get(session_id)

    def _suggest(self, snapshot: Referee):
        if self.suggester is None:
            raise ProviderConfigError("No AI provider configured")
        return self.suggester.suggest(snapshot)

    def _apply_ai_move(self, session: GameSession, snapshot: Referee, move) -> Optional[MoveRecord]:
        """Apply a suggested move (caller holds the session lock); None when the position moved on."""
        if session.referee.fen() != snapshot.fen():
            log.info("Discarding stale AI move for game %s", session.id)
            return None
        record = session.referee.apply_move(move)
        if record is None:
            raise LLMChessError("AI move is invalid")
        self.broadcast(session, "move_made", payloads.move_made(session, record, is_ai_move=True))
        log.info("AI move made in game %s: %s", session.id, record.san)
        return record

    def _run_ai_turn(self, session_id: str, generation: int) -> None:
        session = self.store.get(session_id)
        if session is None:
            return
        thinking = {"gameId": session.id, "thinking": True}
        with session.lock:
            if session.generation != generation:
                return
            snapshot = session.referee.copy()
            self.broadcast(session, "ai_thinking", thinking)
        try:
            move = self._suggest(snapshot)
            if move is None:
                raise LLMChessError("AI returned null move")
            with session.lock:
                if session.generation != generation:
                    log.info("Discarding AI move for restarted game %s", session.id)
                    return
                session.ai_pending = False
                self._apply_ai_move(session, snapshot, move)
                self.broadcast(session, "ai_thinking", {**thinking, "thinking": False})
        except Exception as e:
            log.exception("Error making AI move in game %s", session.id)
            with session.lock:
                if session.generation != generation:
                    return
                session.ai_pending = False
                self.broadcast(session, "ai_thinking", {**thinking, "thinking": False})
                self.broadcast(session, "ai_error", {
                    "gameId": session.id,
                    "error": str(e) or "AI failed to generate a move. Please try again.",
                })
        finally:
            with self._timers_lock:
                if self._timers.get(session_id) is threading.current_thread():
                    del self._timers[session_id]

    def play_ai_move(self, session_id: str) -> tuple[GameSession, MoveRecord]:
        """Run one automated move synchronously and broadcast it to the game's participants."""
        session = self.store.get(session_id)
        if session is None:
            raise GameNotFoundError(session_id)
        if not session.ai_enabled:
            raise GameError("This is not an AI game")
        with session.lock:
            if session.ai_pending:
                raise GameError("AI is already thinking")
            session.ai_pending = True
            generation = session.generation
            snapshot = session.referee.copy()
        try:
            try:
                move = self._suggest(snapshot)
            except LLMChessError as e:
                raise GameError(str(e)) from e
            if move is None:
                raise GameError("No valid AI move available")
            with session.lock:
                if session.generation != generation:
                    raise GameError("Game was restarted while the AI was thinking")
                try:
                    record = self._apply_ai_move(session, snapshot, move)
                except LLMChessError as e:
                    raise GameError(str(e)) from e
                if record is None:
                    raise GameError("Game changed while the AI was thinking")
                return session, record
        finally:
            with session.lock:
                if session.generation == generation:
                    session.ai_pending = False

    # ---------------- Lifecycle -----------------
    def delete_game(self, session_id: str) -> Optional[GameSession]:
        self._cancel_ai_move(session_id)
        session = self.store.delete(session_id)
        if session is not None:
            with session.lock:
                session.generation += 1
                session.ai_pending = False
        return session

    def shutdown(self) -> None:
        with self._timers_lock:
            timers = list(self._timers.values())
            self._timers.clear()
        for timer in timers:
            timer.cancel()
