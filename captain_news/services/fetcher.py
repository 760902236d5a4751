"""
Feed fetching over HTTP.

This module provides the FeedFetcher class, which downloads the raw markup of
one feed. Every failure is confined to the source that caused it.
"""

import logging
import re
import time
from typing import Mapping, Optional

import requests
from urllib3.exceptions import HTTPError as Urllib3HTTPError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 8
DEFAULT_USER_AGENT = "CaptainNews.gr/1.0 (RSS Aggregator)"
CHUNK_SIZE = 16 * 1024

XML_ENCODING_RE = re.compile(rb"""<\?xml[^>]*encoding=["']([A-Za-z0-9._-]+)["']""")


class FeedFetcher:
    """Downloads feed markup within a bounded time and with a declared user agent."""

    def __init__(
        self, timeout: float = DEFAULT_TIMEOUT, user_agent: str = DEFAULT_USER_AGENT
    ):
        self.timeout = timeout
        self.user_agent = user_agent

    def _decode(self, content: bytes, headers: Mapping[str, str]) -> str:
        """Decodes the body using the HTTP charset, then the XML prolog, then UTF-8."""
        encoding = None
        if "charset=" in headers.get("Content-Type", "").lower():
            encoding = requests.utils.get_encoding_from_headers(headers)
        if not encoding:
            match = XML_ENCODING_RE.search(content[:200])
            encoding = match.group(1).decode("ascii") if match else "utf-8"
        try:
            return content.decode(encoding, errors="replace")
        except LookupError:
            return content.decode("utf-8", errors="replace")

    def _read_body(self, resp: requests.Response, deadline: float) -> bytes:
        """Reads whatever bytes arrive until EOF, failing once the deadline passes."""
        chunks = []
        while True:
            if time.monotonic() >= deadline:
                raise requests.Timeout(f"Download exceeded {self.timeout}s")
            chunk = resp.raw.read1(CHUNK_SIZE, decode_content=True)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def fetch(self, url: str) -> Optional[str]:
        """
        Fetches one feed.

        Makes exactly one attempt. The timeout bounds the whole download, not
        each socket read, so a server trickling bytes cannot hold the caller.
        Returns the markup, or None when the request fails, times out or
        answers with a non-success status.
        """
        deadline = time.monotonic() + self.timeout
        try:
            with requests.get(
                url,
                timeout=self.timeout,
                headers={"User-Agent": self.user_agent},
                stream=True,
            ) as resp:
                resp.raise_for_status()
                content = self._read_body(resp, deadline)
        except (requests.RequestException, Urllib3HTTPError) as req_err:
            logger.error("Network error fetching %s: %s", url, req_err)
            return None

        return self._decode(content, resp.headers)
