"""
Configuration and environment loading for the live chess server.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- A .env file next to the working directory is loaded first so it feeds the environment.
- Exposes load_settings(); the entrypoint builds one Settings and passes it down.
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable, Mapping

import yaml
from dotenv import load_dotenv

log = logging.getLogger("config")

load_dotenv()

PROVIDERS = ("groq", "openai", "google")


def _repo_root() -> str:
    # this file: src/llmchess_live/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed to read %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


def _ms_to_s(value: Any) -> float:
    return int(value) / 1000.0


@dataclass(frozen=True)
class Settings:
    # Provider selection / auth
    ai_provider: str
    groq_api_key: str
    openai_api_key: str
    google_api_key: str
    groq_model: str
    openai_model: str
    google_model: str

    # Tuning knobs
    ai_timeout_s: float
    ai_max_retries: int
    ai_retry_delay_s: float
    ai_thinking_delay_s: float

    # Serving
    frontend_url: str
    host: str
    port: int
    ws_port: int
    log_level: str

    def api_key_for(self, provider: str) -> str:
        return {
            "groq": self.groq_api_key,
            "openai": self.openai_api_key,
            "google": self.google_api_key,
        }.get(provider, "")

    def model_for(self, provider: str) -> str:
        return {
            "groq": self.groq_model,
            "openai": self.openai_model,
            "google": self.google_model,
        }.get(provider, "")


def load_settings(cfg: Mapping[str, Any] | None = None, env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings with YAML values taking precedence over the environment."""
    cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml")) if cfg is None else cfg
    env = os.environ if env is None else env

    def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
        if name in cfg:
            val = cfg[name]
            return cast(val) if cast else val
        val = env.get(name)
        if val is not None and val != "":
            return cast(val) if cast else val
        return cast(default) if cast else default

    return Settings(
        ai_provider=str(_get("AI_PROVIDER", "groq")).strip().lower(),
        groq_api_key=_get("GROQ_API_KEY", ""),
        openai_api_key=_get("OPENAI_API_KEY", ""),
        google_api_key=_get("GOOGLE_AI_API_KEY", ""),
        groq_model=_get("GROQ_MODEL", ""),
        openai_model=_get("OPENAI_MODEL", ""),
        google_model=_get("GOOGLE_MODEL", ""),
        ai_timeout_s=_get("AI_TIMEOUT_MS", 30000, cast=_ms_to_s),
        ai_max_retries=max(1, _get("AI_MAX_RETRIES", 3, cast=int)),
        ai_retry_delay_s=_get("AI_RETRY_DELAY_MS", 2000, cast=_ms_to_s),
        ai_thinking_delay_s=_get("AI_THINKING_DELAY_MS", 1000, cast=_ms_to_s),
        frontend_url=_get("FRONTEND_URL", "http://localhost:3000"),
        host=_get("HOST", "0.0.0.0"),
        port=_get("PORT", 3001, cast=int),
        ws_port=_get("WS_PORT", 3002, cast=int),
        log_level=str(_get("LOG_LEVEL", "INFO")).upper(),
    )


def describe(settings: Settings) -> dict:
    """Loggable view of the settings; credentials are reduced to set/not set."""
    return {
        "provider": settings.ai_provider,
        "credentials": {p: bool(settings.api_key_for(p)) for p in PROVIDERS},
        "timeout_s": settings.ai_timeout_s,
        "max_retries": settings.ai_max_retries,
        "retry_delay_s": settings.ai_retry_delay_s,
        "thinking_delay_s": settings.ai_thinking_delay_s,
        "frontend_url": settings.frontend_url,
    }
