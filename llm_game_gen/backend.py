"""Generative backend capability and its litellm implementation.

The rest of the package only depends on the ``Backend`` protocol: a probe
that raises when a model is unavailable, and a completion that returns text
or raises.
"""
from __future__ import annotations

from typing import Optional, Protocol

import litellm
import structlog

from .config import Settings
from .prompt import PROBE_PROMPT, SYSTEM_PROMPT

log = structlog.get_logger(__name__)


class Backend(Protocol):
    async def probe(self, model: str) -> None:
        """Minimal liveness call. Raises if the model cannot be used."""

    async def complete(self, model: str, prompt: str) -> str:
        """Run the real prompt against ``model`` and return the raw text."""


class LiteLLMBackend:
    """Backend talking to any litellm-supported provider."""

    def __init__(self, api_key: Optional[str] = None, temperature: Optional[float] = None):
        self.api_key = api_key
        self.temperature = temperature
        litellm.drop_params = True

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["LiteLLMBackend"]:
        """Return a backend, or None when no credential is configured."""
        api_key = settings.api_key()
        if not api_key:
            log.warning("backend_not_configured", api_key_env=settings.api_key_env)
            return None
        return cls(api_key=api_key, temperature=settings.temperature)

    async def probe(self, model: str) -> None:
        await litellm.acompletion(
            model=model,
            messages=[{"role": "user", "content": PROBE_PROMPT}],
            max_tokens=1,
            api_key=self.api_key,
        )

    async def complete(self, model: str, prompt: str) -> str:
        resp = await litellm.acompletion(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            api_key=self.api_key,
        )
        usage = getattr(resp, "usage", None)
        if usage is not None:
            log.info(
                "completion_usage",
                model=model,
                tokens_in=getattr(usage, "prompt_tokens", None),
                tokens_out=getattr(usage, "completion_tokens", None),
            )
        content = resp.choices[0].message.content
        if not content:
            raise ValueError("empty completion")
        return content


__all__ = ["Backend", "LiteLLMBackend"]
