from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DEFAULT_CACHE_TTL_SECONDS = 60
DEFAULT_CACHE_NAMESPACE = "supabase"


@dataclass(frozen=True)
class Settings:
    environment: str  # development, production, staging, test
    redis_url: str
    cache_default_ttl: int
    cache_namespace: str
    cache_single_flight: bool
    supabase_url: str
    supabase_key: str
    supabase_timeout: float
    log_level: str
    log_json: bool
    log_file: str

    @property
    def cache_enabled(self) -> bool:
        return bool(self.redis_url)

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _get_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_float(name: str, default: float, *, minimum: Optional[float] = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw.strip())
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _get_str(*names: str, default: str = "") -> str:
    for name in names:
        raw = os.getenv(name)
        if raw is not None and raw.strip():
            return raw.strip()
    return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    environment = os.getenv("ENVIRONMENT", "development").strip().lower()
    if environment not in {"development", "production", "staging", "test"}:
        environment = "development"

    log_level = _get_str("LOG_LEVEL", default="INFO").upper()

    return Settings(
        environment=environment,
        redis_url=_get_str("REDIS_URL", "UPSTASH_REDIS_URL"),
        cache_default_ttl=_get_int("CACHE_DEFAULT_TTL", DEFAULT_CACHE_TTL_SECONDS, minimum=1),
        cache_namespace=_get_str("CACHE_NAMESPACE", default=DEFAULT_CACHE_NAMESPACE),
        cache_single_flight=_get_bool("CACHE_SINGLE_FLIGHT", False),
        supabase_url=_get_str("SUPABASE_URL", "NEXT_PUBLIC_SUPABASE_URL"),
        supabase_key=_get_str("SUPABASE_KEY", "SUPABASE_SERVICE_ROLE_KEY"),
        supabase_timeout=_get_float("SUPABASE_TIMEOUT", 10.0, minimum=0.1),
        log_level=log_level,
        log_json=_get_bool("LOG_JSON", False),
        log_file=_get_str("LOG_FILE"),
    )


__all__ = ["Settings", "get_settings", "DEFAULT_CACHE_TTL_SECONDS", "DEFAULT_CACHE_NAMESPACE"]
