"""
Deduplication and ranking of category articles.
"""

from typing import Iterable, List

from captain_news.models import Article

MAX_ARTICLES = 30


def remove_duplicates(articles: Iterable[Article]) -> List[Article]:
    """Keeps the first article seen for each normalized title."""
    seen = set()
    unique = []
    for article in articles:
        key = article.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(article)
    return unique


def reduce_articles(articles: Iterable[Article], limit: int = MAX_ARTICLES) -> List[Article]:
    """
    Deduplicates, ranks newest first and truncates.

    The sort is stable, so articles sharing a timestamp keep their input
    order. Applying this to its own output returns the same list.
    """
    unique = remove_duplicates(articles)
    unique.sort(key=lambda article: article.published_at, reverse=True)
    return unique[:limit]
