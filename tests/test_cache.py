"""Unit tests for cache stores and single-flight coordination."""

import datetime
import threading
import time
import unittest
from unittest.mock import MagicMock, patch

from google.api_core import exceptions as google_exceptions

from captain_news.services.cache import (
    CacheError,
    FirestoreCache,
    MemoryCache,
    SingleFlight,
    build_cache,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class TestMemoryCache(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.cache = MemoryCache(clock=self.clock)

    def test_miss_on_empty(self):
        self.assertIsNone(self.cache.get("news"))

    def test_put_then_get(self):
        self.cache.put("news", "{}", ttl=60)
        self.assertEqual(self.cache.get("news"), "{}")

    def test_put_overwrites(self):
        self.cache.put("news", "old", ttl=60)
        self.cache.put("news", "new", ttl=60)
        self.assertEqual(self.cache.get("news"), "new")

    def test_expiry(self):
        self.cache.put("news", "{}", ttl=60)
        self.clock.now += 59
        self.assertEqual(self.cache.get("news"), "{}")
        self.clock.now += 1
        self.assertIsNone(self.cache.get("news"))


class TestFirestoreCache(unittest.TestCase):
    def setUp(self):
        patcher = patch("captain_news.services.cache.firestore.Client")
        self.mock_client = patcher.start()
        self.addCleanup(patcher.stop)
        self.collection = self.mock_client.return_value.collection.return_value
        self.document = self.collection.document.return_value
        self.cache = FirestoreCache("test-project")

    def _snapshot(self, exists=True, data=None):
        snap = MagicMock()
        snap.exists = exists
        snap.to_dict.return_value = data
        return snap

    def test_uses_project_and_collection(self):
        self.mock_client.assert_called_once_with(project="test-project")
        self.mock_client.return_value.collection.assert_called_once_with("news_cache")

    def test_get_missing_document(self):
        self.document.get.return_value = self._snapshot(exists=False)
        self.assertIsNone(self.cache.get("news"))
        self.collection.document.assert_called_with("news")

    def test_get_live_document(self):
        expires_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(hours=1)
        self.document.get.return_value = self._snapshot(
            data={"value": '{"totalArticles": 1}', "expires_at": expires_at}
        )
        self.assertEqual(self.cache.get("news"), '{"totalArticles": 1}')

    def test_get_expired_document_is_miss(self):
        expires_at = datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(seconds=1)
        self.document.get.return_value = self._snapshot(
            data={"value": "{}", "expires_at": expires_at}
        )
        self.assertIsNone(self.cache.get("news"))

    def test_put_writes_value_and_expiry(self):
        before = datetime.datetime.now(datetime.timezone.utc)
        self.cache.put("news", "{}", ttl=3600)

        data = self.document.set.call_args[0][0]
        self.assertEqual(data["value"], "{}")
        self.assertGreaterEqual(data["expires_at"], before + datetime.timedelta(seconds=3600))

    def test_errors_are_wrapped(self):
        self.document.get.side_effect = google_exceptions.ServiceUnavailable("down")
        with self.assertRaises(CacheError):
            self.cache.get("news")

        self.document.set.side_effect = google_exceptions.PermissionDenied("no")
        with self.assertRaises(CacheError):
            self.cache.put("news", "{}", ttl=60)


class TestBuildCache(unittest.TestCase):
    def test_without_project_uses_memory(self):
        self.assertIsInstance(build_cache(None), MemoryCache)

    def test_with_project_uses_firestore(self):
        with patch("captain_news.services.cache.firestore.Client"):
            self.assertIsInstance(build_cache("test-project"), FirestoreCache)

    def test_firestore_failure_with_project_raises(self):
        with patch(
            "captain_news.services.cache.firestore.Client",
            side_effect=Exception("no credentials"),
        ):
            with self.assertRaises(CacheError):
                build_cache("test-project")


class TestSingleFlight(unittest.TestCase):
    def test_concurrent_callers_share_one_call(self):
        flight = SingleFlight()
        started = threading.Event()
        release = threading.Event()
        calls = []

        def rebuild():
            calls.append(1)
            started.set()
            release.wait(2)
            return "snapshot"

        results = []

        def caller():
            results.append(flight.do("news", rebuild))

        leader = threading.Thread(target=caller)
        leader.start()
        started.wait(2)
        followers = [threading.Thread(target=caller) for _ in range(4)]
        for t in followers:
            t.start()
        time.sleep(0.1)
        release.set()
        for t in [leader] + followers:
            t.join(2)

        self.assertEqual(len(calls), 1)
        self.assertEqual(results, ["snapshot"] * 5)

    def test_exception_reaches_caller_and_key_is_released(self):
        flight = SingleFlight()

        def fail():
            raise RuntimeError("rebuild failed")

        with self.assertRaises(RuntimeError):
            flight.do("news", fail)
        self.assertEqual(flight.do("news", lambda: "ok"), "ok")

    def test_sequential_calls_run_again(self):
        flight = SingleFlight()
        counter = iter(range(10))
        self.assertEqual(flight.do("news", lambda: next(counter)), 0)
        self.assertEqual(flight.do("news", lambda: next(counter)), 1)


if __name__ == "__main__":
    unittest.main()
