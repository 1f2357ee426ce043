from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_NAME = "cache.json"
SAMPLE_CONFIG_NAME = "cache.sample.json"
ENV_CONFIG_KEY = "EXPIRING_CACHE_CONFIG_PATH"
REPO_ROOT = Path(__file__).resolve().parents[2]
CONFIG_DIR = REPO_ROOT / "configs"


class ReclamationSettings(BaseModel):
    mode: Literal["never", "runtime"] = "never"
    threshold_percent: float = Field(default=90.0, gt=0, le=100, description="Used memory percent that counts as pressure")
    check_interval_seconds: float = Field(default=1.0, gt=0)

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: str) -> str:
        return str(value or "never").strip().lower()


class SchedulerSettings(BaseModel):
    workers: int = Field(default=1, ge=1)
    thread_name_prefix: str = Field(default="Cache-Cleanup-Executor")


class CacheSettings(BaseModel):
    name: str = Field(default="cache")
    expiration_seconds: float = Field(default=60.0, ge=1)
    max_size: int = Field(default=1000, ge=1)
    reclamation: ReclamationSettings = Field(default_factory=ReclamationSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @classmethod
    def load(cls, explicit_path: str | Path | None = None) -> "CacheSettings":
        """
        Load settings from JSON - priority order:
        1. Explicit path provided to load()
        2. EXPIRING_CACHE_CONFIG_PATH environment variable
        3. configs/cache.json (if present)
        4. configs/cache.sample.json
        Falls back to defaults when no file is found.
        """
        config_path = cls._resolve_path(explicit_path)
        if config_path is None:
            return cls()
        with open(config_path, "r", encoding="utf-8") as handle:
            payload = json.load(handle)
        return cls(**payload)

    @staticmethod
    def _resolve_path(explicit_path: str | Path | None = None) -> Path | None:
        if explicit_path:
            path = Path(explicit_path)
            if not path.exists():
                raise FileNotFoundError(f"Configuration file not found at {path}")
            return path
        env_path = os.getenv(ENV_CONFIG_KEY)
        if env_path:
            path = Path(env_path)
            if not path.exists():
                raise FileNotFoundError(f"Configuration file not found at {path}")
            return path
        for candidate in (CONFIG_DIR / DEFAULT_CONFIG_NAME, CONFIG_DIR / SAMPLE_CONFIG_NAME):
            if candidate.exists():
                return candidate
        return None


@lru_cache()
def get_settings() -> CacheSettings:
    return CacheSettings.load()
