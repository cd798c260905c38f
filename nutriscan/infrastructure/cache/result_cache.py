"""
Analysis result cache with TTL support.

Short-lived memoization keyed by (product, user). Entries expire by TTL
only; writes to the store never invalidate them.
"""

import time
from dataclasses import dataclass
from typing import Dict, Optional

import structlog

from nutriscan.domain.analysis.models import AnalysisResult
from nutriscan.domain.analysis.ports import Clock
from nutriscan.domain.shared.value_objects import AnalysisKey

logger = structlog.get_logger(__name__)

DEFAULT_TTL_SECONDS = 60.0


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload and the clock time it was stored at."""

    timestamp: float
    payload: AnalysisResult

    def is_expired(self, now: float, ttl: float) -> bool:
        return now - self.timestamp >= ttl


class ResultCache:
    """In-memory analysis cache with TTL.

    One instance per orchestrator; there is no module-level cache.

    Example:
        >>> cache = ResultCache(ttl_seconds=60, clock=lambda: 0.0)
        >>> key = AnalysisKey.of("p1", "u1")
        >>> assert cache.get(key) is None
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Clock = time.monotonic,
    ) -> None:
        """Initialize cache.

        Args:
            ttl_seconds: Entry lifetime (default 60 s)
            clock: Seconds source, injectable for tests
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[AnalysisKey, CacheEntry] = {}

    def get(self, key: AnalysisKey) -> Optional[AnalysisResult]:
        """Get cached result.

        Args:
            key: (product, user) key

        Returns:
            Cached result, or None if missing or expired
        """
        entry = self._entries.get(key)

        if entry is None:
            logger.debug("Cache miss", key=str(key))
            return None

        if entry.is_expired(self._clock(), self.ttl):
            logger.debug("Cache expired", key=str(key))
            del self._entries[key]
            return None

        logger.debug("Cache hit", key=str(key))
        return entry.payload

    def __contains__(self, key: object) -> bool:
        entry = self._entries.get(key)  # type: ignore[call-overload]
        return entry is not None and not entry.is_expired(self._clock(), self.ttl)

    def set(self, key: AnalysisKey, result: AnalysisResult) -> None:
        """Cache a result under key, replacing any previous entry.

        Expired entries are purged on every write, so the cache never
        holds more than the results stored within one TTL window.
        """
        self.purge_expired()
        self._entries[key] = CacheEntry(timestamp=self._clock(), payload=result)
        logger.debug("Cached result", key=str(key), ttl=self.ttl)

    def purge_expired(self) -> int:
        """Drop expired entries.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now, self.ttl)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Cache purged", removed=len(expired))
        return len(expired)

    def clear(self) -> None:
        """Clear all cache entries."""
        self._entries.clear()
        logger.info("Cache cleared")

    def size(self) -> int:
        """Get number of cached entries (expired ones included until the next write)."""
        return len(self._entries)
