"""
Data models for the Captain News aggregator.

All models are immutable snapshots: a pipeline run builds them once and the
next run replaces them wholesale.
"""

import datetime
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple


def format_timestamp(value: datetime.datetime) -> str:
    """Formats a datetime as ISO-8601 UTC with millisecond precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    utc = value.astimezone(datetime.timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class Category:
    """A topical grouping of feed sources sharing display metadata."""

    key: str
    title: str
    color: str
    source_urls: Tuple[str, ...]


@dataclass(frozen=True)
class Article:
    """One normalized news item extracted from a feed source."""

    title: str
    link: str
    published_at: datetime.datetime
    description: str
    thumbnail: Optional[str]
    source: str

    @property
    def dedup_key(self) -> str:
        """Normalized title used for duplicate detection."""
        return self.title.strip().lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "link": self.link,
            "pubDate": format_timestamp(self.published_at),
            "description": self.description,
            "thumbnail": self.thumbnail,
            "source": self.source,
        }


@dataclass(frozen=True)
class CategorySummary:
    """Ranked, deduplicated articles of one category."""

    title: str
    color: str
    articles: Tuple[Article, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "color": self.color,
            "articles": [article.to_dict() for article in self.articles],
        }


@dataclass(frozen=True)
class AggregateResult:
    """Consolidated output of one pipeline run."""

    generated_at: datetime.datetime
    total_articles: int
    total_sources: int
    successful_sources: int
    categories: Mapping[str, CategorySummary]

    def to_dict(self) -> Dict[str, Any]:
        """Returns the JSON shape served by the read endpoint."""
        return {
            "lastUpdated": format_timestamp(self.generated_at),
            "totalArticles": self.total_articles,
            "totalFeeds": self.total_sources,
            "successfulFeeds": self.successful_sources,
            "categories": {
                key: summary.to_dict() for key, summary in self.categories.items()
            },
        }
