from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

ENV_FILE = Path(".env")

DEFAULT_ENDPOINT_URL = "https://s3.amazonaws.com"


def _load_env_file() -> None:
    if not ENV_FILE.exists():
        return
    for raw_line in ENV_FILE.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "y", "on"}


@dataclass
class Settings:
    S3_ENDPOINT_URL: str = DEFAULT_ENDPOINT_URL
    S3_ACCESS_KEY_ID: str | None = None
    S3_SECRET_ACCESS_KEY: str | None = None
    S3_DEFAULT_MAX_KEYS: int = 1000
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    ENABLE_METRICS: bool = True

    def __post_init__(self) -> None:
        scheme = self.S3_ENDPOINT_URL.split(":", 1)[0].lower()
        if scheme not in {"http", "https"}:
            raise ValueError(
                "S3_ENDPOINT_URL must be an http:// or https:// URL."
            )
        self.S3_ENDPOINT_URL = self.S3_ENDPOINT_URL.rstrip("/")
        if self.S3_DEFAULT_MAX_KEYS <= 0:
            raise ValueError("S3_DEFAULT_MAX_KEYS must be a positive integer.")

    @property
    def has_credentials(self) -> bool:
        return bool(self.S3_ACCESS_KEY_ID and self.S3_SECRET_ACCESS_KEY)

    @classmethod
    def from_environment(cls) -> "Settings":
        _load_env_file()
        return cls(
            S3_ENDPOINT_URL=os.environ.get("S3_ENDPOINT_URL", cls.S3_ENDPOINT_URL),
            S3_ACCESS_KEY_ID=os.environ.get("S3_ACCESS_KEY_ID"),
            S3_SECRET_ACCESS_KEY=os.environ.get("S3_SECRET_ACCESS_KEY"),
            S3_DEFAULT_MAX_KEYS=int(
                os.environ.get("S3_DEFAULT_MAX_KEYS", cls.S3_DEFAULT_MAX_KEYS)
            ),
            LOG_LEVEL=os.environ.get("LOG_LEVEL", cls.LOG_LEVEL).upper(),
            LOG_JSON=_as_bool(os.environ.get("LOG_JSON"), cls.LOG_JSON),
            ENABLE_METRICS=_as_bool(
                os.environ.get("ENABLE_METRICS"), cls.ENABLE_METRICS
            ),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_environment()
