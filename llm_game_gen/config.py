"""Settings loading.

Values are resolved in priority order (highest first):
  1. Environment variables (GAMEGEN_STORAGE_DIR, GAMEGEN_MODELS=a,b,c, ...)
  2. YAML settings file (default config/settings.yaml, optional)
  3. Hardcoded defaults

The backend credential itself is never stored in settings; only the name of
the environment variable holding it.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, field_validator

DEFAULT_CONFIG_FILE = Path("config/settings.yaml")
ENV_PREFIX = "GAMEGEN_"

DEFAULT_MODELS = [
    "gemini/gemini-2.5-pro",
    "gemini/gemini-2.5-flash",
    "gemini/gemini-1.5-pro-latest",
    "gemini/gemini-1.5-flash-latest",
    "gemini/gemini-pro",
]


class Settings(BaseModel):
    storage_dir: str = "generated-games"
    index_filename: str = "games-index.json"
    # Priority order: the first model whose probe succeeds is used
    models: List[str] = list(DEFAULT_MODELS)
    api_key_env: str = "GOOGLE_AI_API_KEY"
    temperature: Optional[float] = None
    probe_timeout_s: Optional[float] = 30.0
    generate_timeout_s: Optional[float] = 600.0
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    @field_validator("models", mode="before")
    @classmethod
    def _normalize_models(cls, value: Any) -> Any:
        # Accept the models.yaml shape (`- name: x`) as well as plain strings
        if isinstance(value, str):
            return [m.strip() for m in value.split(",") if m.strip()]
        if isinstance(value, list):
            return [m.get("name") if isinstance(m, dict) else m for m in value]
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value

    def api_key(self) -> Optional[str]:
        return os.getenv(self.api_key_env) or None


_ENV_FIELDS = [
    "storage_dir",
    "index_filename",
    "models",
    "api_key_env",
    "temperature",
    "probe_timeout_s",
    "generate_timeout_s",
    "log_level",
    "log_format",
]


def _env_overrides() -> Dict[str, Any]:
    out = {}
    for name in _ENV_FIELDS:
        value = os.getenv(ENV_PREFIX + name.upper())
        if value is not None and value != "":
            out[name] = value
    return out


def load_settings(config_file: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from YAML (if present) and the environment.

    An explicitly given ``config_file`` must exist; the default one is optional.
    """
    path = Path(config_file) if config_file else DEFAULT_CONFIG_FILE
    data: Dict[str, Any] = {}
    if config_file or path.exists():
        with open(path, encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{path}: expected a mapping at top level")
        data.update(loaded)
    data.update(_env_overrides())
    return Settings.model_validate(data)


__all__ = ["Settings", "load_settings", "DEFAULT_MODELS", "DEFAULT_CONFIG_FILE"]
