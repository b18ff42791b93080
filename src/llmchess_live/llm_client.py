from __future__ import annotations
"""
LLM client facade over OpenAI-compatible chat completion endpoints.

Groq, OpenAI and Google Gemini all expose the OpenAI wire format, so a single
SDK client with a per-provider base_url covers them. The rest of the code only
sees ProviderSpec + messages in, raw reply text out.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging
import threading

from openai import OpenAI

from .config import Settings
from .errors import ProviderConfigError, ProviderError
from .prompting import PromptConfig, prompt_for_provider

log = logging.getLogger("llm_client")

BASE_URLS: Dict[str, Optional[str]] = {
    "groq": "https://api.groq.com/openai/v1",
    "openai": None,
    "google": "https://generativelanguage.googleapis.com/v1beta/openai/",
}

DEFAULT_MODELS: Dict[str, List[str]] = {
    "groq": [
        "llama-3.1-8b-instant",
        "llama-3.3-70b-versatile",
        "meta-llama/llama-4-scout-17b-16e-instruct",
        "meta-llama/llama-4-maverick-17b-128e-instruct",
    ],
    "openai": ["gpt-3.5-turbo"],
    "google": ["gemini-1.5-flash"],
}

CREDENTIAL_NAMES = {"groq": "GROQ_API_KEY", "openai": "OPENAI_API_KEY", "google": "GOOGLE_AI_API_KEY"}


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    api_key: str
    base_url: Optional[str]
    models: List[str]
    timeout_s: float = 30.0
    prompt: PromptConfig = field(default_factory=PromptConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderSpec":
        name = settings.ai_provider
        if name not in BASE_URLS:
            raise ProviderConfigError(f"Unknown AI provider: {name}. Use 'groq', 'openai', or 'google'")
        preferred = settings.model_for(name)
        models = [m for m in [preferred, *DEFAULT_MODELS[name]] if m]
        return cls(
            name=name,
            api_key=settings.api_key_for(name),
            base_url=BASE_URLS[name],
            models=list(dict.fromkeys(models)),
            timeout_s=settings.ai_timeout_s,
            prompt=prompt_for_provider(name),
        )


class LLMClient:
    """Chat completion transport with ordered model fallback."""

    def __init__(self, spec: ProviderSpec, client: Any = None):
        self.spec = spec
        self._client = client
        self._init_lock = threading.Lock()

    def _sdk(self) -> Any:
        with self._init_lock:
            if self._client is None:
                if not self.spec.api_key:
                    raise ProviderConfigError(
                        f"{CREDENTIAL_NAMES.get(self.spec.name, 'API key')} is not set. Please add it to .env file."
                    )
                self._client = OpenAI(
                    api_key=self.spec.api_key,
                    base_url=self.spec.base_url,
                    timeout=self.spec.timeout_s,
                    max_retries=0,
                )
                log.info("%s client initialized", self.spec.name)
            return self._client

    def complete(self, messages: List[Dict[str, str]]) -> str:
        """Send messages to each model variant in order until one answers; return its text."""
        sdk = self._sdk()
        last_error: Exception | None = None
        for model in self.spec.models:
            try:
                log.debug("Trying model %s", model)
                rsp = sdk.chat.completions.create(
                    model=model,
                    messages=messages,
                    temperature=self.spec.prompt.temperature,
                    max_tokens=self.spec.prompt.max_tokens,
                )
            except Exception as e:
                last_error = e
                log.warning("Model %s failed: %s", model, e)
                continue
            text = _extract_text(rsp).strip()
            log.info("%s (%s) suggested move: %r", self.spec.name, model, text)
            return text
        raise ProviderError(f"All {self.spec.name} models failed: {last_error}") from last_error


def _extract_text(rsp) -> str:
    if not getattr(rsp, "choices", None):
        return ""
    msg = rsp.choices[0].message
    content = getattr(msg, "content", None)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for c in content:
            if isinstance(c, dict):
                if c.get("type") == "text" and isinstance(c.get("text"), str):
                    parts.append(c["text"])
                continue
            t = getattr(c, "text", None)
            if isinstance(t, str):
                parts.append(t)
        return "\n".join(parts)
    return ""
