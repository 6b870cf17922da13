"""
Unit Tests for the Element Stores (single satellite and bulk group)

Run with:
    python -m pytest tests/test_element_store.py -v
"""

import unittest

from fakes import (
    BULK_TLE_TEXT,
    ISS_LINE1,
    ISS_TLE_TEXT,
    FixedClock,
    StubHttp,
    make_cache,
    make_config,
)
from pass_service.cache import BULK_NAMESPACE, ELEMENTS_NAMESPACE
from pass_service.element_store import BulkElementStore, ElementStore, format_cache_age
from pass_service.http_client import FetchError
from pass_service.models import OutcomeStatus
from pass_service.service import SatellitePassService


class TestElementStore(unittest.TestCase):
    """Single-satellite fetch, cache and fallback behaviour."""

    def setUp(self):
        self.clock = FixedClock()
        self.cache = make_cache(self.clock)
        self.config = make_config()

    def _store(self, *responses):
        self.http = StubHttp(*responses)
        return ElementStore("25544", self.http, self.cache, self.config, clock=self.clock)

    def test_fetch_fresh(self):
        store = self._store(ISS_TLE_TEXT)
        outcome = store.fetch()

        self.assertIs(outcome.status, OutcomeStatus.OK)
        self.assertFalse(outcome.cached)
        self.assertIsNone(outcome.error)
        self.assertEqual(outcome.data.line1, ISS_LINE1)
        self.assertEqual(outcome.data.fetched_at, self.clock.now)

        url, params = self.http.calls[0]
        self.assertEqual(url, "https://celestrak.org/NORAD/elements/gp.php")
        self.assertEqual(params, {"CATNR": "25544", "FORMAT": "TLE"})

    def test_fresh_cache_hit_makes_no_request(self):
        store = self._store(ISS_TLE_TEXT)
        store.fetch()
        self.clock.advance(hours=23)

        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.OK)
        self.assertTrue(outcome.cached)
        self.assertEqual(len(self.http.calls), 1)

    def test_force_refresh_bypasses_cache(self):
        store = self._store(ISS_TLE_TEXT, ISS_TLE_TEXT)
        store.fetch()
        outcome = store.fetch(force_refresh=True)
        self.assertFalse(outcome.cached)
        self.assertEqual(len(self.http.calls), 2)

    def test_stale_fallback_after_network_error(self):
        store = self._store(ISS_TLE_TEXT, FetchError("connection refused"))
        store.fetch()
        self.clock.advance(days=3)

        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.STALE)
        self.assertTrue(outcome.cached)
        self.assertEqual(outcome.data.line1, ISS_LINE1)
        self.assertEqual(
            outcome.error,
            "Failed to fetch fresh TLE: connection refused. Using cached data.",
        )

    def test_stale_fallback_after_invalid_response(self):
        store = self._store(ISS_TLE_TEXT, "No GP data found")
        store.fetch()
        outcome = store.fetch(force_refresh=True)
        self.assertIs(outcome.status, OutcomeStatus.STALE)
        self.assertTrue(outcome.error.startswith("Failed to fetch fresh TLE: Invalid TLE format"))

    def test_failed_without_cache(self):
        store = self._store(FetchError("timed out"))
        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.FAILED)
        self.assertIsNone(outcome.data)
        self.assertFalse(outcome.cached)
        self.assertEqual(outcome.error, "Failed to fetch TLE: timed out")

    def test_invalid_response_not_cached(self):
        store = self._store("garbage\nmore garbage\nstill garbage")
        store.fetch()
        self.assertIsNone(self.cache.get(ELEMENTS_NAMESPACE, "25544"))

    def test_cache_age_and_clear(self):
        store = self._store(ISS_TLE_TEXT)
        self.assertIsNone(store.cache_age())
        store.fetch()
        self.clock.advance(minutes=90)
        self.assertEqual(store.cache_age(), 5400)
        store.clear()
        self.assertIsNone(store.cache_age())


class TestBulkElementStore(unittest.TestCase):
    """Group fetch, idempotence and eviction on cache pressure."""

    def setUp(self):
        self.clock = FixedClock()
        self.config = make_config()

    def _store(self, *responses, max_bytes=5_000_000):
        self.http = StubHttp(*responses)
        self.cache = make_cache(self.clock, max_bytes=max_bytes)
        return BulkElementStore(self.http, self.cache, self.config, clock=self.clock)

    def test_fetch_group(self):
        store = self._store(BULK_TLE_TEXT)
        outcome = store.fetch()

        self.assertIs(outcome.status, OutcomeStatus.OK)
        self.assertEqual(len(outcome.data.satellites), 4)
        self.assertEqual(self.http.calls[0][1], {"GROUP": "amateur", "FORMAT": "tle"})

    def test_repeated_fetch_within_ttl_is_one_request(self):
        store = self._store(BULK_TLE_TEXT)
        first = store.fetch()
        self.clock.advance(hours=12)
        second = store.fetch()

        self.assertEqual(len(self.http.calls), 1)
        self.assertTrue(second.cached)
        self.assertEqual(first.data.satellites, second.data.satellites)

    def test_empty_response_fails(self):
        store = self._store("\n\n")
        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.FAILED)
        self.assertEqual(outcome.error, "Failed to fetch TLE: No satellites parsed from response")

    def test_stale_group_after_error(self):
        store = self._store(BULK_TLE_TEXT, FetchError("HTTP 503"))
        store.fetch()
        self.clock.advance(hours=13)
        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.STALE)
        self.assertEqual(len(outcome.data.satellites), 4)

    def test_get_elements_ignores_ttl(self):
        store = self._store(BULK_TLE_TEXT)
        self.assertIsNone(store.get_elements("25544"))
        store.fetch()
        fetched_at = self.clock.now
        self.clock.advance(days=10)

        elements = store.get_elements("25544")
        self.assertEqual(elements.name, "ISS (ZARYA)")
        self.assertEqual(elements.fetched_at, fetched_at)
        self.assertIsNone(store.get_elements("99999"))

    def test_get_elements_without_zero_padding(self):
        store = self._store(BULK_TLE_TEXT)
        store.fetch()

        for norad_id in ("7530", "07530", 7530):
            with self.subTest(norad_id=norad_id):
                elements = store.get_elements(norad_id)
                self.assertEqual(elements.name, "OSCAR 7 (AO-7)")
                self.assertEqual(elements.norad_id, "07530")

    def test_service_lookup_uses_bulk_cache_for_unpadded_id(self):
        self.http = StubHttp(BULK_TLE_TEXT)
        service = SatellitePassService(
            config=self.config,
            cache=make_cache(self.clock),
            http=self.http,
            clock=self.clock,
        )
        service.bulk_store.fetch()

        outcome = service.get_elements("7530")

        self.assertTrue(outcome.cached)
        self.assertEqual(outcome.data.name, "OSCAR 7 (AO-7)")
        self.assertEqual(len(self.http.calls), 1)

    def test_evicts_single_entries_when_cache_full(self):
        store = self._store(BULK_TLE_TEXT, max_bytes=2500)
        self.cache.put(ELEMENTS_NAMESPACE, "1", "x" * 1000)
        self.cache.put(ELEMENTS_NAMESPACE, "2", "x" * 1000)

        outcome = store.fetch()

        self.assertIs(outcome.status, OutcomeStatus.OK)
        self.assertEqual(self.cache.keys(ELEMENTS_NAMESPACE), [])
        self.assertIsNotNone(self.cache.get(BULK_NAMESPACE, "amateur"))

    def test_write_failure_still_returns_data(self):
        store = self._store(BULK_TLE_TEXT, max_bytes=100)
        outcome = store.fetch()
        self.assertIs(outcome.status, OutcomeStatus.OK)
        self.assertEqual(len(outcome.data.satellites), 4)
        self.assertIsNone(store.cache_age())

    def test_all_satellites(self):
        store = self._store(BULK_TLE_TEXT)
        self.assertIsNone(store.all_satellites())
        store.fetch()
        self.assertIn("07530", store.all_satellites())


class TestFormatCacheAge(unittest.TestCase):

    def test_formats(self):
        self.assertEqual(format_cache_age(None), "No cached data")
        self.assertEqual(format_cache_age(59), "0m ago")
        self.assertEqual(format_cache_age(45 * 60), "45m ago")
        self.assertEqual(format_cache_age(3 * 3600 + 12 * 60 + 5), "3h 12m ago")


if __name__ == "__main__":
    unittest.main()
