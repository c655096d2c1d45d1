"""Error kinds surfaced by the cache and the generation pipeline."""
from __future__ import annotations

from typing import List, Optional


class GameGenError(Exception):
    """Base class for every error this package raises on purpose."""


class NotConfigured(GameGenError):
    """No backend credential is available; generation is disabled."""


class NotFound(GameGenError, KeyError):
    """Unknown id on load/delete."""

    def __init__(self, game_id: str):
        super().__init__(game_id)
        self.game_id = game_id

    def __str__(self) -> str:
        return f"Game not found in cache: {self.game_id}"


class MissingData(GameGenError, ValueError):
    """A required id or document was empty."""


class InvalidContentStructure(GameGenError, ValueError):
    """Backend output did not contain a complete HTML document."""


class NoAvailableModel(GameGenError):
    """Every candidate model failed its probe."""

    def __init__(self, attempted: List[str]):
        self.attempted = list(attempted)
        super().__init__(f"No working model found (tried: {', '.join(self.attempted) or 'none'})")


class BackendFailure(GameGenError):
    """The selected model failed the real generation call."""

    def __init__(self, model: str, message: str):
        self.model = model
        super().__init__(f"{model}: {message}")


class IOFailure(GameGenError):
    """Reading or writing the store/index failed."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


__all__ = [
    "GameGenError",
    "NotConfigured",
    "NotFound",
    "MissingData",
    "InvalidContentStructure",
    "NoAvailableModel",
    "BackendFailure",
    "IOFailure",
]
