"""
RSS/RDF/Atom item extractor.

This module provides the RSSParser class, which pulls articles out of raw feed
markup with lightweight, case-insensitive pattern matching instead of a
structural XML parser. Publishers routinely serve markup that strict parsers
reject, so the extractor takes the first match for each field and skips what
it cannot read.
"""

import datetime
import functools
import html
import logging
import re
from typing import Iterator, Optional, Pattern

from dateutil import parser as date_parser

from captain_news.models import Article
from captain_news.parsers.base import FeedParser

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 500

# Timezone abbreviations for date parsing
TZINFOS = {
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
    "GMT": 0,
    "UTC": 0,
    "BST": 1 * 3600,
    "EET": 2 * 3600,
    "EEST": 3 * 3600,
}

_FLAGS = re.IGNORECASE | re.DOTALL

ENTRY_RE = re.compile(r"<(item|entry)(?:\s[^>]*)?>(.*?)</\1\s*>", _FLAGS)
CDATA_RE = re.compile(r"<!\[CDATA\[(.*?)\]\]>", re.DOTALL)
TAG_RE = re.compile(r"<[^>]+>")
ESCAPED_TAG_RE = re.compile(r"</?[A-Za-z][^<>]*>")
LINK_TAG_RE = re.compile(r"<link\b([^>]*)>", re.IGNORECASE)
REL_RE = re.compile(r"""\srel\s*=\s*["']([^"']*)["']""", re.IGNORECASE)
HREF_RE = re.compile(r"""\shref\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
MEDIA_CONTENT_RE = re.compile(
    r"""<media:content\b[^>]*?\surl\s*=\s*["']([^"']+)["']""", re.IGNORECASE
)
MEDIA_THUMBNAIL_RE = re.compile(
    r"""<media:thumbnail\b[^>]*?\surl\s*=\s*["']([^"']+)["']""", re.IGNORECASE
)
ENCLOSURE_RE = re.compile(
    r"""<enclosure\b[^>]*?\surl\s*=\s*["']([^"']+)["']""", re.IGNORECASE
)
IMG_RE = re.compile(r"""<img\b[^>]*?\ssrc\s*=\s*["']([^"']+)["']""", re.IGNORECASE)

DATE_TAGS = ("pubDate", "dc:date", "published", "updated")
DESCRIPTION_TAGS = ("description", "content:encoded", "summary", "content")


@functools.lru_cache(maxsize=None)
def _tag_pattern(tag: str) -> Pattern[str]:
    # Attributes allowed, self-closing tags skipped
    name = re.escape(tag)
    return re.compile(rf"<{name}(?:\s[^>]*)?(?<!/)>(.*?)</{name}\s*>", _FLAGS)


def _extract_tag(block: str, tag: str) -> str:
    match = _tag_pattern(tag).search(block)
    return match.group(1).strip() if match else ""


def _first_tag(block: str, tags) -> str:
    for tag in tags:
        value = _extract_tag(block, tag)
        if value:
            return value
    return ""


def _unwrap(raw: str) -> str:
    """Removes CDATA wrappers and decodes markup entities."""
    return html.unescape(CDATA_RE.sub(r"\1", raw))


def _clean_text(raw: str) -> str:
    """
    Returns plain text: CDATA unwrapped, tags stripped, entities decoded.

    Tags are stripped before decoding so that an escaped comparison such as
    "5 &lt; 6" survives as text. Markup that was itself entity-escaped
    (&lt;p&gt;) only becomes a tag after decoding, so element-shaped
    remnants are stripped once more.
    """
    if not raw:
        return ""
    text = TAG_RE.sub(" ", CDATA_RE.sub(r"\1", raw))
    text = ESCAPED_TAG_RE.sub(" ", html.unescape(text))
    return " ".join(text.split())


def _parse_date(raw: str, default: datetime.datetime) -> datetime.datetime:
    value = _clean_text(raw)
    if not value:
        return default
    try:
        parsed = date_parser.parse(value, tzinfos=TZINFOS)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=datetime.timezone.utc)
        # Dates near datetime.min/max can overflow on conversion.
        return parsed.astimezone(datetime.timezone.utc)
    except (ValueError, OverflowError):
        return default


class RSSParser(FeedParser):
    """Extracts articles from RSS 2.0, RDF and Atom feeds."""

    def _extract_link(self, block: str) -> str:
        link = _clean_text(_extract_tag(block, "link"))
        if link:
            return link

        # Atom: <link rel="alternate" href="..."/>
        for match in LINK_TAG_RE.finditer(block):
            attrs = match.group(1)
            rel = REL_RE.search(attrs)
            if rel and rel.group(1).lower() != "alternate":
                continue
            href = HREF_RE.search(attrs)
            if href:
                return html.unescape(href.group(1)).strip()
        return ""

    def _extract_image(self, block: str) -> Optional[str]:
        """Returns the first thumbnail URL found, or None."""
        for pattern in (MEDIA_CONTENT_RE, MEDIA_THUMBNAIL_RE, ENCLOSURE_RE):
            match = pattern.search(block)
            if match:
                return html.unescape(match.group(1))

        for tag in DESCRIPTION_TAGS:
            text = _extract_tag(block, tag)
            if not text:
                continue
            match = IMG_RE.search(text) or IMG_RE.search(_unwrap(text))
            if match:
                return html.unescape(match.group(1))
        return None

    def _parse_entry(
        self, block: str, source: str, now: datetime.datetime
    ) -> Optional[Article]:
        title = _clean_text(_extract_tag(block, "title"))
        link = self._extract_link(block)
        if not title or not link:
            return None

        description = _clean_text(_first_tag(block, DESCRIPTION_TAGS))
        return Article(
            title=title,
            link=link,
            published_at=_parse_date(_first_tag(block, DATE_TAGS), now),
            description=description[:MAX_DESCRIPTION_LENGTH],
            thumbnail=self._extract_image(block),
            source=source,
        )

    def parse(self, markup: str, source: str) -> Iterator[Article]:
        """Lazily yields articles from raw feed markup."""
        if not isinstance(markup, str) or not markup:
            return

        now = datetime.datetime.now(datetime.timezone.utc)
        for match in ENTRY_RE.finditer(markup):
            try:
                article = self._parse_entry(match.group(2), source, now)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.debug("Skipping malformed entry from %s: %s", source, e)
                continue
            if article is not None:
                yield article
