from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

OVERFLOW_REJECT = "reject"
OVERFLOW_EVICT_OLDEST = "evict_oldest"
OVERFLOW_POLICIES = (OVERFLOW_REJECT, OVERFLOW_EVICT_OLDEST)

DEFAULT_API_ENDPOINT = "/jsonapi/"
DEFAULT_BASE_URL = "http://localhost:8080"
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0


def _env_str(name: str, default: str) -> str:
    return (os.getenv(name) or "").strip() or default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "y", "on")


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        v = float(raw)
    except ValueError:
        return default
    return v if v > 0 else default


def _env_positive_int(name: str) -> Optional[int]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        v = int(raw)
    except ValueError:
        return None
    return v if v > 0 else None


@dataclass(frozen=True)
class DispatchConfig:
    # Queue binding
    api_endpoint: str
    base_url: str

    # Transport (flush driver only)
    http_timeout_seconds: float

    # Queue hardening
    max_queue_depth: Optional[int]  # None = unbounded
    overflow_policy: str
    immutable_single_flight: bool


@lru_cache(maxsize=1)
def load_dispatch_config() -> DispatchConfig:
    """
    Load dispatch configuration from environment variables.

    Env:
    - ANYCOMMERCE_API_ENDPOINT (default: /jsonapi/)
    - ANYCOMMERCE_BASE_URL (default: http://localhost:8080)
    - DISPATCH_HTTP_TIMEOUT_SECONDS (default: 30)
    - DISPATCH_MAX_QUEUE_DEPTH (default: unset, unbounded)
    - DISPATCH_OVERFLOW_POLICY (reject | evict_oldest, default: reject)
    - DISPATCH_IMMUTABLE_SINGLE_FLIGHT (default: true)
    """
    overflow = _env_str("DISPATCH_OVERFLOW_POLICY", OVERFLOW_REJECT).lower()
    if overflow not in OVERFLOW_POLICIES:
        overflow = OVERFLOW_REJECT

    return DispatchConfig(
        api_endpoint=_env_str("ANYCOMMERCE_API_ENDPOINT", DEFAULT_API_ENDPOINT),
        base_url=_env_str("ANYCOMMERCE_BASE_URL", DEFAULT_BASE_URL),
        http_timeout_seconds=_env_float("DISPATCH_HTTP_TIMEOUT_SECONDS", DEFAULT_HTTP_TIMEOUT_SECONDS),
        max_queue_depth=_env_positive_int("DISPATCH_MAX_QUEUE_DEPTH"),
        overflow_policy=overflow,
        immutable_single_flight=_env_bool("DISPATCH_IMMUTABLE_SINGLE_FLIGHT", True),
    )
