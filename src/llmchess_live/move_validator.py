"""
Move parsing/validation helpers for LLM replies.

Replies are free text, so parsing is a two-stage pipeline:
- "strict": the reply's leading token (or first line) must parse as SAN or UCI
  in the current position (code fences, move numbers, quotes and 0-0 castling
  are tolerated).
- "fuzzy": any legal move whose SAN is contained in the reply, or which contains
  the reply, is accepted. The first such move in generation order wins.
"""
from __future__ import annotations

import re
from typing import TypedDict

from .referee import DEFAULT_PROMOTION, CandidateMove, Referee

CASTLE_ZERO = {"0-0": "O-O", "0-0-0": "O-O-O", "o-o": "O-O", "o-o-o": "O-O-O"}
MOVE_NUMBER_RE = re.compile(r"^\d+\.+")
EDGE_PUNCT = "\"'`*.,;:!()[]{}"


class ParsedMove(TypedDict, total=False):
    ok: bool
    uci: str
    san: str
    stage: str
    reason: str
    raw: str


def _strip_code_fence(text: str) -> str:
    """Remove simple ``` fences if present."""
    text = text.strip()
    if text.startswith("```") and text.endswith("```"):
        inner = text.split("\n", 1)
        if len(inner) == 2:
            return inner[1].rsplit("\n", 1)[0].strip()
        return text.strip("`").strip()
    return text


def _clean_token(token: str) -> str:
    token = MOVE_NUMBER_RE.sub("", token.strip())
    # keep trailing +/# and =Q, drop quotes and sentence punctuation
    token = token.strip(EDGE_PUNCT)
    return CASTLE_ZERO.get(token.lower(), token)


def _candidate_tokens(text: str) -> list[str]:
    tokens = []
    first_line = text.splitlines()[0].strip() if text else ""
    words = text.replace("\n", " ").split()
    for word in words[:3]:
        cleaned = _clean_token(word)
        if cleaned:
            tokens.append(cleaned)
    cleaned_line = _clean_token(first_line)
    if cleaned_line and cleaned_line not in tokens:
        tokens.append(cleaned_line)
    return tokens


def _with_default_promotion(candidate: CandidateMove, referee: Referee) -> CandidateMove:
    if candidate.promotion:
        return candidate
    for legal in referee.legal_moves(candidate.from_square):
        if legal.to_square == candidate.to_square and legal.promotion:
            return CandidateMove(candidate.from_square, candidate.to_square, DEFAULT_PROMOTION)
    return candidate


def _san_for(candidate: CandidateMove, referee: Referee) -> str:
    for legal in referee.legal_moves(candidate.from_square):
        if legal.uci == candidate.uci():
            return legal.san
    return ""


def parse_strict(raw_text: str, referee: Referee) -> ParsedMove:
    text = _strip_code_fence(raw_text or "")
    if not text:
        return {"ok": False, "reason": "empty_reply", "stage": "strict"}
    for token in _candidate_tokens(text):
        candidate = referee.parse_text(token)
        if candidate is not None:
            candidate = _with_default_promotion(candidate, referee)
            return {"ok": True, "uci": candidate.uci(), "san": _san_for(candidate, referee), "stage": "strict"}
    return {"ok": False, "reason": "bad_notation", "stage": "strict"}


def parse_fuzzy(raw_text: str, referee: Referee) -> ParsedMove:
    text = _strip_code_fence(raw_text or "")
    if not text:
        return {"ok": False, "reason": "empty_reply", "stage": "fuzzy"}
    for legal in referee.legal_moves():
        if legal.san in text or text in legal.san:
            return {"ok": True, "uci": legal.uci, "san": legal.san, "stage": "fuzzy"}
    return {"ok": False, "reason": "no_legal_match", "stage": "fuzzy"}


def parse_reply(raw_text: str, referee: Referee, allow_fuzzy: bool = True) -> ParsedMove:
    """Run the strict stage, then (optionally) the fuzzy stage. Never mutates referee."""
    parsed = parse_strict(raw_text, referee)
    if not parsed.get("ok") and allow_fuzzy and parsed.get("reason") != "empty_reply":
        parsed = parse_fuzzy(raw_text, referee)
    parsed["raw"] = raw_text
    return parsed


def to_candidate(parsed: ParsedMove) -> CandidateMove:
    return CandidateMove.from_uci(parsed["uci"])


__all__ = [
    "ParsedMove",
    "parse_reply",
    "parse_strict",
    "parse_fuzzy",
    "to_candidate",
]
