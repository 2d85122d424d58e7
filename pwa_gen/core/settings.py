from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    cors_origins: tuple[str, ...] = DEFAULT_CORS_ORIGINS
    github_delay_seconds: float = 2.0
    validate_delay_seconds: float = 1.0
    stale_after_seconds: float = 300.0
    max_workers: int = 4
    detach_generate: bool = False
    log_level: str = "INFO"
    history_page_size: int = 10

    @classmethod
    def from_env(cls) -> "Settings":
        origins_env = os.getenv("API_CORS_ORIGINS", "")
        origins = tuple(origin.strip() for origin in origins_env.split(",") if origin.strip())
        return cls(
            cors_origins=origins or DEFAULT_CORS_ORIGINS,
            github_delay_seconds=_float_env("PWA_GEN_GITHUB_DELAY", 2.0),
            validate_delay_seconds=_float_env("PWA_GEN_VALIDATE_DELAY", 1.0),
            stale_after_seconds=_float_env("PWA_GEN_STALE_AFTER", 300.0),
            max_workers=max(1, _int_env("PWA_GEN_MAX_WORKERS", 4)),
            detach_generate=_bool_env("PWA_GEN_DETACH_GENERATE", False),
            log_level=(os.getenv("PWA_GEN_LOG_LEVEL") or "INFO").upper(),
        )
