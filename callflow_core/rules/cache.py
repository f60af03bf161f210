"""Rule set cache."""

import asyncio
import copy
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

import structlog

from .base import RuleSet
from .source import RuleSource, filter_enabled

logger = structlog.get_logger(__name__)


DEFAULT_CACHE_TTL_SECONDS = 60


@dataclass
class RuleSetCacheStats:
    """Rule set cache statistics."""

    hits: int = 0
    misses: int = 0
    loads: int = 0
    invalidations: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0


@dataclass
class _CachedRuleSets:
    rule_sets: List[RuleSet]
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class RuleSetCache:
    """
    Time-bounded cache of the enabled rule sets.

    Every read returns an independent deep copy, so callers can never
    affect each other or the cached entry.
    """

    def __init__(
        self,
        source: RuleSource,
        ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.source = source
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entry: Optional[_CachedRuleSets] = None
        self._lock = asyncio.Lock()
        self._stats = RuleSetCacheStats()

    async def get(self) -> List[RuleSet]:
        """Get the enabled rule sets, loading them from the source on a miss."""
        async with self._lock:
            now = self._clock()

            if self._entry is not None and not self._entry.is_expired(now):
                self._stats.hits += 1
                return copy.deepcopy(self._entry.rule_sets)

            self._stats.misses += 1
            logger.info("loading_uncached_rule_sets")

            rule_sets = await self.source.load_enabled_rule_sets_with_rules()
            self._stats.loads += 1
            self._store(rule_sets, now)
            return copy.deepcopy(self._entry.rule_sets)

    async def set(self, rule_sets: List[RuleSet]) -> None:
        """Replace the cached rule sets."""
        async with self._lock:
            self._store(rule_sets, self._clock())

    async def invalidate(self) -> None:
        """Drop the cached rule sets so the next read reloads them."""
        async with self._lock:
            self._entry = None
            self._stats.invalidations += 1
        logger.info("rule_set_cache_invalidated")

    def _store(self, rule_sets: List[RuleSet], now: float) -> None:
        self._entry = _CachedRuleSets(
            rule_sets=copy.deepcopy(filter_enabled(rule_sets)),
            expires_at=now + self.ttl_seconds,
        )

    @property
    def stats(self) -> RuleSetCacheStats:
        return self._stats
