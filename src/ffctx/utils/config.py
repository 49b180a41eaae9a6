"""Global configuration: ~/.config/ffctx/config.json plus environment overrides."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from ffctx.utils.paths import default_cache_root

TOKEN_ENV = "FLUTTERFLOW_API_TOKEN"
CACHE_DIR_ENV = "FFCTX_CACHE_DIR"

DEFAULT_BATCH_SIZE = 5


class Settings(BaseModel):
    cache_dir: Path = Field(default_factory=default_cache_root)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    fetch_retries: int = Field(default=0, ge=0)
    api_token: Optional[str] = None


def global_config_dir() -> Path:
    config = Path.home() / ".config" / "ffctx"
    config.mkdir(parents=True, exist_ok=True)
    return config


def load_global_config() -> dict:
    path = global_config_dir() / "config.json"
    if path.exists():
        return json.loads(path.read_text())
    return {}


def save_global_config(config: dict) -> None:
    path = global_config_dir() / "config.json"
    path.write_text(json.dumps(config, indent=2))


def load_settings() -> Settings:
    """Merge the global config file with environment variables (env wins)."""
    data = {k: v for k, v in load_global_config().items() if k in Settings.model_fields}
    if os.environ.get(CACHE_DIR_ENV):
        data["cache_dir"] = os.environ[CACHE_DIR_ENV]
    if os.environ.get(TOKEN_ENV):
        data["api_token"] = os.environ[TOKEN_ENV]
    return Settings.model_validate(data)
