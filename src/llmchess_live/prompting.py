"""
Prompt builders and config for automated-opponent move requests.

Each provider gets a PromptConfig: system instructions plus a template whose
{PLACEHOLDERS} are substituted per turn from the current position.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import chess

from .referee import PROMOTION_PIECES, Referee

DEFAULT_SYSTEM = "You are an expert chess engine. Always respond with only the move in SAN notation."

DETAILED_TEMPLATE = """You are a grandmaster level chess engine playing to win. Find the strongest move in this position.

=== CURRENT POSITION ===
FEN: {FEN}
Current turn: {SIDE_TO_MOVE} (you are playing as {SIDE_TO_MOVE})
In check: {IN_CHECK}
Checkmate: {CHECKMATE}
Draw: {DRAW}
Stalemate: {STALEMATE}

=== MOVE HISTORY ===
{PLAINTEXT_HISTORY}

=== LEGAL MOVES ===
{LEGAL_MOVES_DETAILED}

Check forcing moves first (mates, checks, captures, forks, pins), then prefer moves that
improve piece activity, control the center and keep your king safe.

Respond with ONLY the move in Standard Algebraic Notation (SAN).
Examples: "e4", "Nf3", "O-O", "Qxd5", "e8=Q"
No explanation, no analysis, just the move."""

COMPACT_TEMPLATE = """You are an expert chess engine. Analyze this position and suggest the BEST move.

Position (FEN): {FEN}
Move history: {SAN_HISTORY}
Current turn: {SIDE_TO_MOVE}
In check: {IN_CHECK_SHORT}
Legal moves: {LEGAL_MOVES_SAN}

Respond with ONLY the move in Standard Algebraic Notation (SAN). Examples: "e4", "Nf3", "O-O", "Qxd5".
Do not include any explanation, just the move notation."""


@dataclass(frozen=True)
class PromptConfig:
    """Configuration for shaping move prompts using a custom template."""

    system_instructions: str = DEFAULT_SYSTEM
    template: str = COMPACT_TEMPLATE
    max_tokens: int = 10
    temperature: float = 0.3


DETAILED = PromptConfig(template=DETAILED_TEMPLATE, max_tokens=15, temperature=0.0)
COMPACT = PromptConfig()

PROVIDER_PROMPTS: Dict[str, PromptConfig] = {
    "groq": DETAILED,
    "openai": COMPACT,
    "google": COMPACT,
}


def prompt_for_provider(provider: str) -> PromptConfig:
    return PROVIDER_PROMPTS.get(provider, COMPACT)


def render_custom_prompt(template: str, values: Dict[str, str]) -> str:
    """Replace known placeholders in the template. Unknown tokens are left intact."""
    rendered = template or ""
    for key, val in values.items():
        rendered = rendered.replace(f"{{{key}}}", val)
    return rendered


def annotated_history(referee: Referee) -> str:
    """One numbered line per ply: '1. White: e4 (e2→e4)'."""
    lines = []
    for idx, rec in enumerate(referee.history(), start=1):
        color = "White" if rec.color == "w" else "Black"
        lines.append(f"{idx}. {color}: {rec.san} ({rec.from_square}→{rec.to_square})")
    return "\n".join(lines)


def detailed_legal_moves(referee: Referee) -> str:
    lines = []
    for mv in referee.legal_moves():
        promo = f" promotes to {chess.piece_name(PROMOTION_PIECES[mv.promotion])}" if mv.promotion else ""
        lines.append(f"{mv.san} ({mv.from_square}→{mv.to_square}{promo})")
    return "\n".join(lines)


def _yes_no(flag: bool) -> str:
    return "YES" if flag else "No"


def prompt_values(referee: Referee) -> Dict[str, str]:
    status = referee.status()
    side = referee.side_name().capitalize()
    return {
        "FEN": referee.fen(),
        "SIDE_TO_MOVE": side,
        "IN_CHECK": "YES - your king is under attack, you must respond to the check" if status.is_check else "No",
        "IN_CHECK_SHORT": "Yes" if status.is_check else "No",
        "CHECKMATE": _yes_no(status.is_checkmate),
        "DRAW": _yes_no(status.is_draw),
        "STALEMATE": _yes_no(status.is_stalemate),
        "PLAINTEXT_HISTORY": annotated_history(referee) or "No moves yet - starting position",
        "SAN_HISTORY": referee.pgn() or "No moves yet",
        "LEGAL_MOVES_DETAILED": detailed_legal_moves(referee),
        "LEGAL_MOVES_SAN": ", ".join(mv.san for mv in referee.legal_moves()),
    }


def build_messages(referee: Referee, prompt_cfg: PromptConfig) -> list[dict]:
    """Construct chat messages for the position using the configured template."""
    user_content = render_custom_prompt(prompt_cfg.template, prompt_values(referee))
    return [
        {"role": "system", "content": prompt_cfg.system_instructions},
        {"role": "user", "content": user_content},
    ]
