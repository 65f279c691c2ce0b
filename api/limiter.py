"""
api/limiter.py -- Shared slowapi rate limiter and per-route limit providers.

Import this in both api/main.py (to mount as middleware) and
api/routes/v1/vulnerabilities.py (to apply per-route limits with @limiter.limit()).

A single shared instance keeps one in-memory counter store for every route.
The limit strings come from settings at request time through the provider
callables below, so BATCH_RATE_LIMIT / LOOKUP_RATE_LIMIT take effect without
code changes.

This is inbound protection for our own endpoint. Outbound NVD pacing is the
batch pipeline's job (core/pipeline.py), not the limiter's.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def batch_limit() -> str:
    """Limit for POST /vulnerabilities. Each call can hold a worker for minutes."""
    return get_settings().batch_rate_limit


def lookup_limit() -> str:
    """Limit for GET /vulnerabilities."""
    return get_settings().lookup_rate_limit
