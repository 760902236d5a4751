"""
Aggregation pipeline.

This module provides the NewsAggregator class, which fetches every configured
feed, extracts and ranks the articles of each category and assembles them
into one AggregateResult.
"""

import concurrent.futures
import datetime
import logging
import time
import types
from typing import Callable, List, Optional, Sequence, Tuple

from captain_news.models import AggregateResult, Article, Category, CategorySummary
from captain_news.parsers.base import FeedParser
from captain_news.ranking import MAX_ARTICLES, reduce_articles
from captain_news.registry import ConfigurationError
from captain_news.services.fetcher import FeedFetcher
from captain_news.sources import resolve_source_name

logger = logging.getLogger(__name__)


class NewsAggregator:
    """
    Runs the fetch, extract, dedup and rank pipeline over a registry.

    Categories are processed one after another. Within a category all feeds
    are fetched concurrently, one worker per feed, and results are combined
    in registry order so fetch completion order never affects the output.
    """

    def __init__(
        self,
        fetcher: FeedFetcher,
        parser: FeedParser,
        resolver: Callable[[str], str] = resolve_source_name,
        max_articles: int = MAX_ARTICLES,
        retries: int = 0,
    ):
        self.fetcher = fetcher
        self.parser = parser
        self.resolver = resolver
        self.max_articles = max_articles
        self.retries = retries

    def _fetch_markup(self, url: str) -> Optional[str]:
        for attempt in range(self.retries + 1):
            markup = self.fetcher.fetch(url)
            if markup is not None:
                return markup
            if attempt < self.retries:
                logger.info("Retrying %s (%d/%d)", url, attempt + 1, self.retries)
        return None

    def fetch_source(self, url: str) -> List[Article]:
        """Fetches and parses one feed. Never raises."""
        try:
            markup = self._fetch_markup(url)
            if markup is None:
                return []
            articles = list(self.parser.parse(markup, self.resolver(url)))
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error processing %s: %s", url, e)
            return []

        logger.info("%d articles from %s", len(articles), url)
        return articles

    def build_category(self, category: Category) -> Tuple[CategorySummary, int]:
        """Returns the category summary and the number of feeds that yielded articles."""
        urls = category.source_urls
        with concurrent.futures.ThreadPoolExecutor(max_workers=len(urls)) as executor:
            per_source = list(executor.map(self.fetch_source, urls))

        successful = sum(1 for articles in per_source if articles)
        combined = [article for articles in per_source for article in articles]
        ranked = reduce_articles(combined, self.max_articles)

        logger.info(
            "%s: %d articles from %d/%d feeds (%d dropped)",
            category.key,
            len(ranked),
            successful,
            len(urls),
            len(combined) - len(ranked),
        )
        summary = CategorySummary(
            title=category.title, color=category.color, articles=tuple(ranked)
        )
        return summary, successful

    def run(self, registry: Sequence[Category]) -> AggregateResult:
        """Runs the whole pipeline once."""
        if not registry:
            raise ConfigurationError("Registry is empty: no categories configured.")
        seen_keys = set()
        for category in registry:
            if not isinstance(category, Category) or not category.source_urls:
                raise ConfigurationError(f"Malformed registry entry: {category!r}")
            if category.key in seen_keys:
                raise ConfigurationError(f"Duplicate category key: {category.key!r}")
            seen_keys.add(category.key)

        generated_at = datetime.datetime.now(datetime.timezone.utc)
        start = time.monotonic()
        logger.info("--- Starting aggregation for %d categories ---", len(registry))

        categories = {}
        total_articles = 0
        total_sources = 0
        successful_sources = 0

        for category in registry:
            summary, successful = self.build_category(category)
            categories[category.key] = summary
            total_articles += len(summary.articles)
            total_sources += len(category.source_urls)
            successful_sources += successful

        logger.info(
            "Aggregation complete: %d articles, %d/%d feeds, %.2fs",
            total_articles,
            successful_sources,
            total_sources,
            time.monotonic() - start,
        )
        return AggregateResult(
            generated_at=generated_at,
            total_articles=total_articles,
            total_sources=total_sources,
            successful_sources=successful_sources,
            categories=types.MappingProxyType(categories),
        )
