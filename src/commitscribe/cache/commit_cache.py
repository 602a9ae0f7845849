"""
In-memory cache of model responses for commit message generation.

Eviction is least-frequently-used: when the cache is full the entry with
the lowest ``hit_count`` goes first, however recently it was written. The
``timestamp`` is refreshed on every hit and only drives TTL expiry.

The cache is not thread-safe. It is meant to be owned by a single
:class:`~commitscribe.analysis.commit_analyzer.CommitAnalyzer` run at a
time; callers sharing an instance across threads must serialise access.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from commitscribe.llm.types import ModelResponse


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings when the root
# logger is not configured.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_MAX_SIZE = 100
DEFAULT_TTL_HOURS = 24


@dataclass
class CacheEntry:
    """A cached response and its bookkeeping."""

    response: ModelResponse
    timestamp: float
    hit_count: int = 1


class CommitCache:
    """Bounded key to :class:`ModelResponse` store with TTL and LFU eviction.

    Parameters
    ----------
    max_size : int, optional
        Maximum number of entries. Defaults to 100.
    ttl_hours : float, optional
        Age after which an entry is treated as absent. Defaults to 24.
    clock : Callable[[], float], optional
        Returns the current time in seconds. Defaults to :func:`time.time`.
    """

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        ttl_hours: float = DEFAULT_TTL_HOURS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl_seconds = ttl_hours * 60 * 60
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "CommitCache":
        """Build a cache from the ``analysis`` section of the configuration."""
        analysis = config.get("analysis", {})
        return cls(
            max_size=analysis.get("cache_size", DEFAULT_MAX_SIZE),
            ttl_hours=analysis.get("cache_ttl_hours", DEFAULT_TTL_HOURS),
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw entry for ``key`` without counting a hit."""
        return self._entries.get(key)

    def get(self, key: str) -> Optional[ModelResponse]:
        """Return the cached response for ``key``, or ``None``.

        Expired entries are removed. A live hit increments the entry's
        ``hit_count`` and refreshes its ``timestamp``.
        """
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self._clock()
        if now - entry.timestamp > self.ttl_seconds:
            logger.debug("Cache entry expired: %s", key)
            del self._entries[key]
            return None
        entry.hit_count += 1
        entry.timestamp = now
        return entry.response

    def set(self, key: str, response: ModelResponse) -> None:
        """Store ``response`` under ``key``, evicting one entry if full."""
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_least_used()
        self._entries[key] = CacheEntry(response=response, timestamp=self._clock())

    def _evict_least_used(self) -> None:
        # min() keeps the first minimum, so ties go to the oldest insertion.
        least_used = min(self._entries, key=lambda k: self._entries[k].hit_count, default=None)
        if least_used is not None:
            logger.debug("Evicting cache entry with %d hit(s): %s",
                         self._entries[least_used].hit_count, least_used)
            del self._entries[least_used]


commit_cache = CommitCache()
