from __future__ import annotations
"""Move-suggestion gateway: ask the configured provider for a move and validate it."""
import logging
import time
from typing import Callable, Optional

from .config import Settings
from .errors import MoveParseError, ProviderConfigError, SuggestionError
from .llm_client import LLMClient, ProviderSpec
from .move_validator import parse_reply, to_candidate
from .prompting import build_messages
from .referee import CandidateMove, Referee

log = logging.getLogger("suggestion")


class MoveSuggester:
    """Wraps one LLMClient with the request → parse → validate cycle and its retry budget."""

    def __init__(
        self,
        client: LLMClient,
        max_attempts: int = 3,
        retry_delay_s: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_s = retry_delay_s
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Settings) -> "MoveSuggester":
        return cls(
            LLMClient(ProviderSpec.from_settings(settings)),
            max_attempts=settings.ai_max_retries,
            retry_delay_s=settings.ai_retry_delay_s,
        )

    @property
    def provider(self) -> str:
        return self.client.spec.name

    def attempt(self, referee: Referee) -> CandidateMove:
        """One request-and-parse cycle. Raises ProviderError or MoveParseError."""
        messages = build_messages(referee, self.client.spec.prompt)
        raw = self.client.complete(messages)
        parsed = parse_reply(raw, referee)
        if not parsed.get("ok"):
            raise MoveParseError(raw, parsed.get("reason", "no_legal_match"))
        log.debug("Parsed %r as %s via %s stage", raw, parsed["san"], parsed["stage"])
        return to_candidate(parsed)

    def suggest(self, referee: Referee) -> Optional[CandidateMove]:
        """Return a legal move for the side to move, or None if the position has none.

        The referee is only read. Raises ProviderConfigError straight away and
        SuggestionError once every attempt has failed.
        """
        if not referee.legal_moves():
            return None
        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            log.info("AI thinking (attempt %d/%d) using %s...", attempt, self.max_attempts, self.provider)
            try:
                move = self.attempt(referee)
            except ProviderConfigError:
                raise
            except Exception as e:
                last_error = e
                log.warning("AI attempt %d failed: %s", attempt, e)
                if attempt < self.max_attempts and self.retry_delay_s > 0:
                    self._sleep(self.retry_delay_s)
                continue
            log.info("AI move validated: %s", move.uci())
            return move
        raise SuggestionError(self.max_attempts, last_error)
