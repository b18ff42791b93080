"""
In-memory registry of game sessions and the connections attached to them.

- A connection is attached to at most one session; attaching elsewhere detaches it first.
- The registry maps are guarded by the store lock; each session's game state has its own lock.
- Sessions live until the process exits (or delete() is called).
"""
from __future__ import annotations

import logging
import random
import string
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .referee import Referee

log = logging.getLogger("store")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_session_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"game_{int(time.time() * 1000)}_{suffix}"


@dataclass
class GameSession:
    id: str
    referee: Referee
    ai_enabled: bool = False
    participants: set = field(default_factory=set)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    # set while an automated move is scheduled or running
    ai_pending: bool = False
    # bumped on restart so late automated replies can tell they are stale
    generation: int = 0


class SessionStore:
    def __init__(self):
        self._games: Dict[str, GameSession] = {}
        self._player_games: Dict[str, str] = {}
        self._lock = threading.Lock()

    def create(self, referee: Referee | None = None, ai_enabled: bool = False) -> GameSession:
        with self._lock:
            session_id = generate_session_id()
            while session_id in self._games:
                session_id = generate_session_id()
            session = GameSession(id=session_id, referee=referee or Referee(), ai_enabled=bool(ai_enabled))
            self._games[session_id] = session
        log.info("Created game %s (ai=%s)", session_id, session.ai_enabled)
        return session

    def get(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            return self._games.get(session_id)

    def list_all(self) -> List[GameSession]:
        with self._lock:
            return list(self._games.values())

    def attach(self, session_id: str, connection_id: str) -> Optional[GameSession]:
        with self._lock:
            session = self._games.get(session_id)
            if session is None:
                return None
            previous_id = self._player_games.get(connection_id)
            if previous_id and previous_id != session_id:
                previous = self._games.get(previous_id)
                if previous is not None:
                    previous.participants.discard(connection_id)
            session.participants.add(connection_id)
            self._player_games[connection_id] = session_id
            return session

    def detach(self, connection_id: str) -> Optional[GameSession]:
        with self._lock:
            session_id = self._player_games.pop(connection_id, None)
            if session_id is None:
                return None
            session = self._games.get(session_id)
            if session is not None:
                session.participants.discard(connection_id)
            return session

    def session_for(self, connection_id: str) -> Optional[GameSession]:
        with self._lock:
            session_id = self._player_games.get(connection_id)
            return self._games.get(session_id) if session_id else None

    def participants(self, session_id: str) -> List[str]:
        """Snapshot of the connections attached to a session (empty if unknown)."""
        with self._lock:
            session = self._games.get(session_id)
            return sorted(session.participants) if session else []

    def delete(self, session_id: str) -> Optional[GameSession]:
        with self._lock:
            session = self._games.pop(session_id, None)
            if session is None:
                return None
            for connection_id in session.participants:
                if self._player_games.get(connection_id) == session_id:
                    del self._player_games[connection_id]
            session.participants.clear()
        log.info("Deleted game %s", session_id)
        return session

    def __len__(self) -> int:
        with self._lock:
            return len(self._games)
