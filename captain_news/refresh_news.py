"""
Captain News refresh job.

Run on a schedule (cron or a CI workflow). Fetches every configured feed,
builds the aggregated snapshot and writes it to the cache.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

from captain_news.parsers.rss import RSSParser
from captain_news.ranking import MAX_ARTICLES
from captain_news.registry import ConfigurationError, build_registry, load_config
from captain_news.services.aggregator import NewsAggregator
from captain_news.services.cache import CacheError, build_cache
from captain_news.services.fetcher import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, FeedFetcher
from captain_news.services.news_service import (
    CACHE_KEY,
    CACHE_TTL_SECONDS,
    NewsService,
    RefreshError,
)
from captain_news.sources import find_ambiguous_domains

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Env Vars
GCP_PROJECT_ID: Optional[str] = os.environ.get("GCP_PROJECT_ID")
CACHE_COLLECTION: str = os.environ.get("NEWS_CACHE_COLLECTION", "news_cache")


def build_service(config: Dict[str, Any]) -> NewsService:
    """Wires the pipeline from configuration. Raises ConfigurationError."""
    registry = build_registry(config)

    for first, second in find_ambiguous_domains():
        logger.warning("Ambiguous domain table entries: %s / %s", first, second)

    fetcher = FeedFetcher(
        timeout=config.get("fetch_timeout", DEFAULT_TIMEOUT),
        user_agent=config.get("user_agent", DEFAULT_USER_AGENT),
    )
    aggregator = NewsAggregator(
        fetcher,
        RSSParser(),
        max_articles=config.get("max_articles", MAX_ARTICLES),
        retries=config.get("retries", 0),
    )
    return NewsService(
        aggregator,
        registry,
        build_cache(GCP_PROJECT_ID, CACHE_COLLECTION),
        ttl=config.get("cache_ttl_seconds", CACHE_TTL_SECONDS),
        key=config.get("cache_key", CACHE_KEY),
    )


def main():
    """Main execution entry point."""
    try:
        service = build_service(load_config())
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        sys.exit(1)
    except CacheError as e:
        logger.error("Cache unavailable: %s", e)
        sys.exit(1)

    try:
        service.refresh()
    except (RefreshError, CacheError) as e:
        logger.error("Scheduled news update failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
