"""
Base classes and interfaces for feed parsers.

This module defines the contract that all feed parsers must follow.
"""

from typing import Iterator, Protocol
from captain_news.models import Article


class FeedParser(Protocol):
    """
    Protocol for feed parsers.

    Classes implementing this protocol turn the raw markup of one feed into
    Article objects attributed to the given source name. Malformed input must
    not raise; unparseable entries are skipped.
    """

    def parse(self, markup: str, source: str) -> Iterator[Article]:
        """Extracts articles from raw feed markup."""
