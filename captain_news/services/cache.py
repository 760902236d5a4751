"""
Cache store for the aggregated news snapshot.

This module provides the CacheStore protocol with an in-process MemoryCache
and a Google Firestore backed FirestoreCache, plus a SingleFlight helper that
collapses concurrent rebuilds of the same key into one call.
"""

import concurrent.futures
import datetime
import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple, TypeVar

from google.api_core import exceptions as google_exceptions  # type: ignore
from google.cloud import firestore  # type: ignore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheError(Exception):
    """Raised when the underlying store cannot be read or written."""


class CacheStore(Protocol):
    """Key/value store with per-entry expiration."""

    def get(self, key: str) -> Optional[str]:
        """Returns the stored value, or None on a miss or after expiry."""

    def put(self, key: str, value: str, ttl: float) -> None:
        """Stores a value for ttl seconds, replacing any previous value."""


class MemoryCache:
    """Thread-safe in-process cache."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: Dict[str, Tuple[str, float]] = {}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: str, ttl: float) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)


class FirestoreCache:
    """
    Stores cache entries as Firestore documents.

    Each key maps to one document holding the value and an ``expires_at``
    timestamp. Expired documents read as a miss; a Firestore TTL policy on
    ``expires_at`` can be configured to delete them eventually.
    """

    def __init__(self, project_id: str, collection: str = "news_cache"):
        self.db = firestore.Client(project=project_id)
        self.collection = self.db.collection(collection)
        logger.info("Connected to Firestore cache collection %s.", collection)

    def get(self, key: str) -> Optional[str]:
        try:
            snap = self.collection.document(key).get()
        except google_exceptions.GoogleAPIError as e:
            raise CacheError(f"Failed to read {key!r} from Firestore: {e}") from e

        if not snap.exists:
            return None
        data = snap.to_dict() or {}
        expires_at = data.get("expires_at")
        now = datetime.datetime.now(datetime.timezone.utc)
        if expires_at is None or expires_at <= now:
            return None
        return data.get("value")

    def put(self, key: str, value: str, ttl: float) -> None:
        expires_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
            seconds=ttl
        )
        try:
            self.collection.document(key).set(
                {
                    "value": value,
                    "expires_at": expires_at,
                    "updated_at": firestore.SERVER_TIMESTAMP,
                }
            )
        except google_exceptions.GoogleAPIError as e:
            raise CacheError(f"Failed to write {key!r} to Firestore: {e}") from e
        logger.info("Saved %s to Firestore (ttl %ds).", key, ttl)


def build_cache(project_id: Optional[str], collection: str = "news_cache") -> CacheStore:
    """
    Returns a Firestore cache when a project is configured, otherwise an
    in-process one.

    A configured project whose client cannot be created raises CacheError;
    a process-local cache would not be visible to readers.
    """
    if not project_id:
        logger.warning("GCP_PROJECT_ID not set. Using in-memory cache.")
        return MemoryCache()

    try:
        return FirestoreCache(project_id, collection)
    except Exception as e:
        raise CacheError(f"Firestore connection failed for {project_id!r}: {e}") from e


class SingleFlight:
    """
    Deduplicates concurrent calls per key.

    The first caller for a key runs the function; callers arriving while it is
    in flight wait for and share its result or exception.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._calls: Dict[str, concurrent.futures.Future] = {}

    def do(self, key: str, fn: Callable[[], T]) -> T:
        with self._lock:
            future = self._calls.get(key)
            leader = future is None
            if leader:
                future = concurrent.futures.Future()
                self._calls[key] = future

        if not leader:
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                del self._calls[key]
