"""
Pytest config.

Pins the repo root on sys.path so `import anycommerce` works without an editable install, and
isolates every test from the dispatch env vars (config is cached per-process).
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()

_DISPATCH_ENV = (
    "ANYCOMMERCE_API_ENDPOINT",
    "ANYCOMMERCE_BASE_URL",
    "DISPATCH_HTTP_TIMEOUT_SECONDS",
    "DISPATCH_MAX_QUEUE_DEPTH",
    "DISPATCH_OVERFLOW_POLICY",
    "DISPATCH_IMMUTABLE_SINGLE_FLIGHT",
)


@pytest.fixture(autouse=True)
def _isolated_dispatch_config(monkeypatch: pytest.MonkeyPatch):
    from anycommerce.config import load_dispatch_config

    for name in _DISPATCH_ENV:
        monkeypatch.delenv(name, raising=False)
    load_dispatch_config.cache_clear()
    yield
    load_dispatch_config.cache_clear()
