"""
News snapshot service.

This module provides the NewsService class, which connects the aggregator to
the cache: a scheduled refresh that always rebuilds, and a read path that
serves the cached snapshot and rebuilds lazily on a miss.
"""

import json
import logging
from typing import Optional, Sequence

from captain_news.models import AggregateResult, Category
from captain_news.services.aggregator import NewsAggregator
from captain_news.services.cache import CacheError, CacheStore, SingleFlight

logger = logging.getLogger(__name__)

CACHE_KEY = "news"
CACHE_TTL_SECONDS = 60 * 60 * 24 * 7


class RefreshError(Exception):
    """Raised when a rebuild produced nothing worth caching."""


def serialize(result: AggregateResult) -> str:
    """Serializes a snapshot to the JSON document served to readers."""
    return json.dumps(result.to_dict(), ensure_ascii=False)


class NewsService:
    """Serves and refreshes the cached news snapshot."""

    def __init__(
        self,
        aggregator: NewsAggregator,
        registry: Sequence[Category],
        cache: CacheStore,
        ttl: float = CACHE_TTL_SECONDS,
        key: str = CACHE_KEY,
    ):
        self.aggregator = aggregator
        self.registry = registry
        self.cache = cache
        self.ttl = ttl
        self.key = key
        self._single_flight = SingleFlight()

    def refresh(self) -> AggregateResult:
        """
        Rebuilds the snapshot and stores it, whatever the cache holds.

        A run in which no feed produced articles raises RefreshError and
        leaves the previous snapshot in place.
        """
        result = self.aggregator.run(self.registry)
        if result.successful_sources == 0:
            raise RefreshError(
                f"All {result.total_sources} feeds failed; keeping the cached snapshot."
            )

        self.cache.put(self.key, serialize(result), self.ttl)
        logger.info(
            "Refreshed %s: %d articles from %d/%d feeds.",
            self.key,
            result.total_articles,
            result.successful_sources,
            result.total_sources,
        )
        return result

    def _read_cache(self) -> Optional[str]:
        try:
            return self.cache.get(self.key)
        except CacheError as e:
            logger.error("Cache read failed, rebuilding: %s", e)
            return None

    def _rebuild(self) -> str:
        # A flight that finished between our miss and this call already stored it.
        cached = self._read_cache()
        if cached is not None:
            return cached

        result = self.aggregator.run(self.registry)
        payload = serialize(result)
        if result.successful_sources == 0:
            logger.warning("All feeds failed; serving the result without caching it.")
            return payload

        self.cache.put(self.key, payload, self.ttl)
        return payload

    def get_news(self) -> str:
        """
        Returns the cached snapshot as JSON, rebuilding it on a miss.

        Concurrent misses share one rebuild. A failed cache read is logged and
        treated as a miss; a failed cache write propagates.
        """
        cached = self._read_cache()
        if cached is not None:
            return cached

        logger.info("Cache miss for %s. Building snapshot.", self.key)
        return self._single_flight.do(self.key, self._rebuild)
