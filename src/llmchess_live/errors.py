"""Exception types shared by the suggestion gateway and its callers."""


class LLMChessError(Exception):
    """Base class for automated-opponent failures."""


class ProviderConfigError(LLMChessError):
    """Provider is unknown or its credential is missing. Never retried."""


class ProviderError(LLMChessError):
    """Every model variant of the provider failed the request."""


class MoveParseError(LLMChessError):
    """The provider replied, but no legal move could be read from the reply."""

    def __init__(self, raw: str, reason: str = "no_legal_match"):
        self.raw = raw
        self.reason = reason
        super().__init__(f"Invalid move from provider: {raw!r} ({reason})")


class SuggestionError(LLMChessError):
    """All suggestion attempts were used up."""

    def __init__(self, attempts: int, last_error: Exception | None = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"AI failed to generate a valid move after {attempts} attempts{detail}")


class GameError(Exception):
    """A request against a game that cannot be honoured; status is the HTTP code to report."""

    status = 400


class GameNotFoundError(GameError):
    status = 404

    def __init__(self, game_id: str):
        self.game_id = game_id
        super().__init__("Game not found")
