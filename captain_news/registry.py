"""
Source registry loading and validation.

The registry is built once at start-up from ``config.json`` and handed to the
aggregator explicitly; nothing reads it as module-level state.
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Tuple
from urllib.parse import urlparse

from captain_news.models import Category

logger = logging.getLogger(__name__)

Registry = Tuple[Category, ...]


class ConfigurationError(Exception):
    """Raised when the source registry is empty or malformed."""


def load_config(config_filename: str = "config.json") -> Dict[str, Any]:
    """Loads configuration from a JSON file."""
    # Build absolute path relative to this module
    base_dir = os.path.dirname(os.path.abspath(__file__))
    config_path = os.path.join(base_dir, config_filename)

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        logger.warning("Config file not found at %s. Using empty config.", config_path)
        return {"categories": {}}


def _is_feed_url(url: Any) -> bool:
    if not isinstance(url, str):
        return False
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def build_registry(config: Mapping[str, Any]) -> Registry:
    """Builds the immutable, ordered category registry from raw config."""
    categories = config.get("categories")
    if not isinstance(categories, Mapping) or not categories:
        raise ConfigurationError("Registry is empty: no categories configured.")

    registry = []
    for key, raw in categories.items():
        if not isinstance(raw, Mapping):
            raise ConfigurationError(f"Category {key!r} must be a mapping.")

        title = raw.get("title")
        if not isinstance(title, str) or not title.strip():
            raise ConfigurationError(f"Category {key!r} has no title.")

        feeds = raw.get("feeds")
        if isinstance(feeds, str) or not isinstance(feeds, (list, tuple)) or not feeds:
            raise ConfigurationError(f"Category {key!r} has no feed URLs.")

        for url in feeds:
            if not _is_feed_url(url):
                raise ConfigurationError(
                    f"Category {key!r} has an invalid feed URL: {url!r}"
                )

        registry.append(
            Category(
                key=str(key),
                title=title,
                color=str(raw.get("color", "")),
                source_urls=tuple(feeds),
            )
        )

    logger.info(
        "Loaded %d categories with %d feeds.",
        len(registry),
        sum(len(c.source_urls) for c in registry),
    )
    return tuple(registry)
