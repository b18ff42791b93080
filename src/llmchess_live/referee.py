"""
Referee: the rules-engine adapter around a python-chess Board.

- Owns one Board per game and is the only place that pushes moves onto it.
- apply_move()/apply_text() are the single gate for human and automated moves alike;
  anything python-chess does not list as legal is rejected with None.
- Exposes turn/status/legal move listings for display, and fen()/pgn()/history()
  for transmission.

Used by the session store, the protocol handler and the move-suggestion gateway.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import chess
import chess.pgn

PROMOTION_PIECES = {"q": chess.QUEEN, "r": chess.ROOK, "b": chess.BISHOP, "n": chess.KNIGHT}
DEFAULT_PROMOTION = "q"
UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$", re.I)


@dataclass(frozen=True)
class CandidateMove:
    """An unvalidated proposed move (origin, destination, optional promotion piece)."""

    from_square: str
    to_square: str
    promotion: Optional[str] = None

    @classmethod
    def from_uci(cls, uci: str) -> "CandidateMove":
        uci = uci.strip().lower()
        return cls(uci[0:2], uci[2:4], uci[4:5] or None)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Optional["CandidateMove"]:
        """Build from a {"from", "to", "promotion"} payload; None if from/to are missing."""
        src = data.get("from")
        dst = data.get("to")
        if not isinstance(src, str) or not isinstance(dst, str) or not src or not dst:
            return None
        promo = data.get("promotion")
        return cls(src.strip().lower(), dst.strip().lower(), str(promo).strip().lower() if promo else None)

    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def to_dict(self) -> dict:
        return {"from": self.from_square, "to": self.to_square, "promotion": self.promotion}


@dataclass(frozen=True)
class LegalMove:
    from_square: str
    to_square: str
    san: str
    uci: str
    promotion: Optional[str] = None

    def to_dict(self) -> dict:
        out = {"from": self.from_square, "to": self.to_square, "san": self.san, "uci": self.uci}
        if self.promotion:
            out["promotion"] = self.promotion
        return out


@dataclass(frozen=True)
class MoveRecord:
    """Details of one applied move, shaped like a verbose history entry."""

    color: str
    from_square: str
    to_square: str
    piece: str
    san: str
    lan: str
    before: str
    after: str
    flags: str
    captured: Optional[str] = None
    promotion: Optional[str] = None

    def to_dict(self) -> dict:
        out = {
            "color": self.color,
            "from": self.from_square,
            "to": self.to_square,
            "piece": self.piece,
            "san": self.san,
            "lan": self.lan,
            "before": self.before,
            "after": self.after,
            "flags": self.flags,
        }
        if self.captured:
            out["captured"] = self.captured
        if self.promotion:
            out["promotion"] = self.promotion
        return out


@dataclass(frozen=True)
class GameStatus:
    is_game_over: bool
    is_checkmate: bool
    is_stalemate: bool
    is_draw: bool
    is_check: bool
    result: str = "*"

    def to_dict(self) -> dict:
        return {
            "isGameOver": self.is_game_over,
            "isCheckmate": self.is_checkmate,
            "isStalemate": self.is_stalemate,
            "isDraw": self.is_draw,
            "isCheck": self.is_check,
            "result": self.result,
        }


def _color_code(color: chess.Color) -> str:
    return "w" if color == chess.WHITE else "b"


def _move_flags(board: chess.Board, mv: chess.Move) -> str:
    flags = ""
    if board.is_kingside_castling(mv):
        flags += "k"
    elif board.is_queenside_castling(mv):
        flags += "q"
    if board.is_en_passant(mv):
        flags += "e"
    elif board.is_capture(mv):
        flags += "c"
    piece = board.piece_at(mv.from_square)
    if piece and piece.piece_type == chess.PAWN and abs(chess.square_rank(mv.to_square) - chess.square_rank(mv.from_square)) == 2:
        flags += "b"
    if mv.promotion:
        flags += "p"
    return flags or "n"


def _record(board: chess.Board, mv: chess.Move) -> MoveRecord:
    """Describe mv against board (which must not have mv pushed yet)."""
    piece = board.piece_at(mv.from_square)
    if board.is_en_passant(mv):
        captured = "p"
    else:
        taken = board.piece_at(mv.to_square)
        captured = taken.symbol().lower() if taken and not board.is_castling(mv) else None
    before = board.fen()
    san = board.san(mv)
    after_board = board.copy(stack=False)
    after_board.push(mv)
    return MoveRecord(
        color=_color_code(board.turn),
        from_square=chess.square_name(mv.from_square),
        to_square=chess.square_name(mv.to_square),
        piece=piece.symbol().lower() if piece else "",
        san=san,
        lan=mv.uci(),
        before=before,
        after=after_board.fen(),
        flags=_move_flags(board, mv),
        captured=captured,
        promotion=chess.piece_symbol(mv.promotion) if mv.promotion else None,
    )


class Referee:
    """Plain chess referee around a python-chess Board."""

    def __init__(self, starting_fen: str | None = None, board: chess.Board | None = None):
        if board is not None:
            self.board = board
        else:
            self.board = chess.Board(fen=starting_fen) if starting_fen else chess.Board()

    @classmethod
    def from_fen(cls, fen: str) -> "Referee":
        return cls(starting_fen=fen)

    def copy(self) -> "Referee":
        """Independent snapshot including the move stack."""
        return Referee(board=self.board.copy())

    # ---------------- Position queries -----------------
    def turn(self) -> str:
        return _color_code(self.board.turn)

    def side_name(self) -> str:
        return "white" if self.board.turn == chess.WHITE else "black"

    def status(self) -> GameStatus:
        b = self.board
        checkmate = b.is_checkmate()
        stalemate = b.is_stalemate()
        draw = stalemate or b.is_insufficient_material() or b.is_fifty_moves() or b.is_repetition(3)
        over = checkmate or draw
        if checkmate:
            result = "0-1" if b.turn == chess.WHITE else "1-0"
        elif draw:
            result = "1/2-1/2"
        else:
            result = "*"
        return GameStatus(
            is_game_over=over,
            is_checkmate=checkmate,
            is_stalemate=stalemate,
            is_draw=draw,
            is_check=b.is_check(),
            result=result,
        )

    def is_game_over(self) -> bool:
        return self.status().is_game_over

    def legal_moves(self, square: str | None = None) -> list[LegalMove]:
        origin = None
        if square:
            try:
                origin = chess.parse_square(square.strip().lower())
            except ValueError:
                return []
        out: list[LegalMove] = []
        for mv in self.board.legal_moves:
            if origin is not None and mv.from_square != origin:
                continue
            out.append(LegalMove(
                from_square=chess.square_name(mv.from_square),
                to_square=chess.square_name(mv.to_square),
                san=self.board.san(mv),
                uci=mv.uci(),
                promotion=chess.piece_symbol(mv.promotion) if mv.promotion else None,
            ))
        return out

    # ---------------- Move Application -----------------
    def _resolve(self, candidate: CandidateMove) -> Optional[chess.Move]:
        """Find the legal move matching candidate; promotion defaults to a queen."""
        try:
            src = chess.parse_square(candidate.from_square)
            dst = chess.parse_square(candidate.to_square)
        except ValueError:
            return None
        promo = candidate.promotion
        if promo is not None and promo not in PROMOTION_PIECES:
            return None
        for mv in self.board.legal_moves:
            if mv.from_square != src or mv.to_square != dst:
                continue
            if mv.promotion is None:
                return mv
            if mv.promotion == PROMOTION_PIECES[promo or DEFAULT_PROMOTION]:
                return mv
        return None

    def parse_text(self, text: str) -> Optional[CandidateMove]:
        """Strictly interpret SAN or UCI text against the current position, without moving."""
        token = (text or "").strip()
        if not token:
            return None
        mv: Optional[chess.Move] = None
        try:
            mv = self.board.parse_san(token)
        except ValueError:
            if UCI_RE.fullmatch(token):
                # also covers e7e8 without a promotion letter
                mv = self._resolve(CandidateMove.from_uci(token))
        if mv is None or mv == chess.Move.null():
            return None
        return CandidateMove(
            chess.square_name(mv.from_square),
            chess.square_name(mv.to_square),
            chess.piece_symbol(mv.promotion) if mv.promotion else None,
        )

    def apply_move(self, candidate: CandidateMove) -> Optional[MoveRecord]:
        mv = self._resolve(candidate)
        if mv is None:
            return None
        record = _record(self.board, mv)
        self.board.push(mv)
        return record

    def apply_text(self, text: str) -> Optional[MoveRecord]:
        candidate = self.parse_text(text)
        if candidate is None:
            return None
        return self.apply_move(candidate)

    def reset(self) -> None:
        self.board.reset()

    # ---------------- Serialization -----------------
    def fen(self) -> str:
        return self.board.fen()

    def history(self) -> list[MoveRecord]:
        replay = self.board.root()
        records: list[MoveRecord] = []
        for mv in self.board.move_stack:
            records.append(_record(replay, mv))
            replay.push(mv)
        return records

    def san_history(self) -> list[str]:
        return [r.san for r in self.history()]

    def pgn(self) -> str:
        """Movetext only (no headers), empty for a game without moves."""
        if not self.board.move_stack:
            return ""
        game = chess.pgn.Game.from_board(self.board)
        exporter = chess.pgn.StringExporter(headers=False, variations=False, comments=False)
        text = game.accept(exporter)
        if text.endswith(" *"):
            text = text[:-2]
        return text.strip()
