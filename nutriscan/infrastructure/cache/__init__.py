"""Cache adapters."""

from nutriscan.infrastructure.cache.result_cache import (
    DEFAULT_TTL_SECONDS,
    CacheEntry,
    ResultCache,
)

__all__ = ["DEFAULT_TTL_SECONDS", "CacheEntry", "ResultCache"]
