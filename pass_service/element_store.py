"""
Orbital Element Stores

ElementStore fetches the TLE of one satellite from CelesTrak; BulkElementStore
fetches a whole CelesTrak group in a single request. Both cache what they
fetch and, when a refresh fails, fall back to the last cached copy regardless
of its age. The result of a fetch is always a FetchOutcome, never an
exception.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, Optional

from pass_service.cache import (
    BULK_NAMESPACE,
    ELEMENTS_NAMESPACE,
    CacheService,
    CacheWriteError,
    utc_now,
)
from pass_service.http_client import FetchError
from pass_service.models import (
    BulkElements,
    FetchOutcome,
    OrbitalElements,
    OutcomeStatus,
    TLEEntry,
)
from pass_service.tle_parser import (
    TLEValidationError,
    parse_bulk_response,
    parse_single_response,
)

logger = logging.getLogger(__name__)


def format_cache_age(age_seconds: Optional[float]) -> str:
    """Human-readable cache age, e.g. ``"3h 12m ago"``."""
    if age_seconds is None:
        return "No cached data"

    hours = int(age_seconds // 3600)
    minutes = int((age_seconds % 3600) // 60)

    if hours > 0:
        return f"{hours}h {minutes}m ago"
    return f"{minutes}m ago"


def _stale_outcome(data, reason: str) -> FetchOutcome:
    return FetchOutcome(
        status=OutcomeStatus.STALE,
        data=data,
        cached=True,
        error=f"Failed to fetch fresh TLE: {reason}. Using cached data.",
    )


def _failed_outcome(reason: str) -> FetchOutcome:
    return FetchOutcome(
        status=OutcomeStatus.FAILED,
        data=None,
        cached=False,
        error=f"Failed to fetch TLE: {reason}",
    )


class ElementStore:
    """
    Single-satellite orbital element store.

    Args:
        norad_id: Catalog number of the satellite
        http: HttpClient used for CelesTrak requests
        cache: CacheService holding the elements namespace
        config: PassServiceConfig
        clock: Callable returning the current UTC datetime
    """

    def __init__(
        self,
        norad_id: str,
        http,
        cache: CacheService,
        config,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.norad_id = str(norad_id)
        self.http = http
        self.cache = cache
        self.config = config
        self._clock = clock or utc_now

    def _from_entry(self, entry) -> OrbitalElements:
        payload = entry.payload
        return OrbitalElements(
            line1=payload["line1"],
            line2=payload["line2"],
            name=payload.get("name"),
            fetched_at=entry.fetched_at,
        )

    def _cached(self, ignore_ttl: bool = False) -> Optional[OrbitalElements]:
        ttl = None if ignore_ttl else self.config.SINGLE_ELEMENTS_TTL
        entry = self.cache.get(ELEMENTS_NAMESPACE, self.norad_id, ttl=ttl)
        if entry is None:
            return None
        try:
            return self._from_entry(entry)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed cached elements for {self.norad_id}: {e}")
            return None

    def _store(self, elements: OrbitalElements) -> None:
        payload = {"line1": elements.line1, "line2": elements.line2, "name": elements.name}
        try:
            self.cache.put(ELEMENTS_NAMESPACE, self.norad_id, payload, fetched_at=elements.fetched_at)
        except CacheWriteError as e:
            logger.error(f"Could not cache TLE for {self.norad_id}: {e}")

    def fetch(self, force_refresh: bool = False) -> FetchOutcome:
        """
        Return current elements for the satellite.

        Args:
            force_refresh: Skip the fresh-cache shortcut

        Returns:
            FetchOutcome whose data is an OrbitalElements (or None on failure)
        """
        with self.cache.lock(ELEMENTS_NAMESPACE, self.norad_id):
            if not force_refresh:
                cached = self._cached()
                if cached is not None:
                    logger.debug(f"Using cached TLE for {self.norad_id}")
                    return FetchOutcome(status=OutcomeStatus.OK, data=cached, cached=True)

            params = {"CATNR": self.norad_id, "FORMAT": "TLE"}
            try:
                text = self.http.get_text(self.config.elements_url, params=params)
                elements = parse_single_response(text, fetched_at=self._clock())
            except FetchError as e:
                logger.error(f"Network error fetching TLE for {self.norad_id}: {e}")
                reason = str(e)
            except TLEValidationError as e:
                logger.error(f"Invalid TLE received for {self.norad_id}: {e}")
                reason = str(e)
            else:
                self._store(elements)
                logger.info(f"Fetched fresh TLE for {self.norad_id}")
                return FetchOutcome(status=OutcomeStatus.OK, data=elements, cached=False)

            stale = self._cached(ignore_ttl=True)
            if stale is not None:
                logger.warning(f"Using stale cached TLE for {self.norad_id}")
                return _stale_outcome(stale, reason)
            return _failed_outcome(reason)

    def cache_age(self) -> Optional[float]:
        """Age in seconds of the cached elements, ignoring TTL."""
        entry = self.cache.get(ELEMENTS_NAMESPACE, self.norad_id)
        if entry is None:
            return None
        return entry.age_seconds(self._clock())

    def clear(self) -> None:
        self.cache.delete(ELEMENTS_NAMESPACE, self.norad_id)


class BulkElementStore:
    """
    Bulk element store for one CelesTrak group (``amateur`` by default).

    A successful fetch replaces the whole group in the cache. When that write
    fails the per-satellite element entries are evicted to free space and the
    write is retried once.
    """

    def __init__(
        self,
        http,
        cache: CacheService,
        config,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.http = http
        self.cache = cache
        self.config = config
        self._clock = clock or utc_now

    @property
    def group(self) -> str:
        return self.config.CELESTRAK_GROUP

    def _cached(self, ignore_ttl: bool = False) -> Optional[BulkElements]:
        ttl = None if ignore_ttl else self.config.BULK_ELEMENTS_TTL
        entry = self.cache.get(BULK_NAMESPACE, self.group, ttl=ttl)
        if entry is None:
            return None
        try:
            return BulkElements(fetched_at=entry.fetched_at, satellites=entry.payload["satellites"])
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed bulk cache for group {self.group}: {e}")
            return None

    def _store(self, bulk: BulkElements) -> None:
        payload = {
            "satellites": {norad_id: entry.model_dump() for norad_id, entry in bulk.satellites.items()}
        }
        try:
            self.cache.put(BULK_NAMESPACE, self.group, payload, fetched_at=bulk.fetched_at)
            return
        except CacheWriteError as e:
            logger.warning(f"Could not cache bulk TLE ({e}); evicting single-satellite entries")

        self.cache.evict_namespace(ELEMENTS_NAMESPACE)
        try:
            self.cache.put(BULK_NAMESPACE, self.group, payload, fetched_at=bulk.fetched_at)
        except CacheWriteError as e:
            logger.error(f"Bulk TLE not cached after eviction: {e}")

    def fetch(self, force_refresh: bool = False) -> FetchOutcome:
        """
        Return the element sets of the whole group.

        Returns:
            FetchOutcome whose data is a BulkElements (or None on failure)
        """
        with self.cache.lock(BULK_NAMESPACE, self.group):
            if not force_refresh:
                cached = self._cached()
                if cached is not None:
                    logger.debug(f"Using cached bulk TLE ({len(cached.satellites)} satellites)")
                    return FetchOutcome(status=OutcomeStatus.OK, data=cached, cached=True)

            params = {"GROUP": self.group, "FORMAT": "tle"}
            try:
                text = self.http.get_text(self.config.elements_url, params=params)
                satellites = parse_bulk_response(text)
                if not satellites:
                    raise TLEValidationError("No satellites parsed from response")
            except FetchError as e:
                logger.error(f"Network error fetching bulk TLE: {e}")
                reason = str(e)
            except TLEValidationError as e:
                logger.error(f"Invalid bulk TLE response: {e}")
                reason = str(e)
            else:
                bulk = BulkElements(fetched_at=self._clock(), satellites=satellites)
                self._store(bulk)
                logger.info(f"Fetched bulk TLE for group {self.group}: {len(satellites)} satellites")
                return FetchOutcome(status=OutcomeStatus.OK, data=bulk, cached=False)

            stale = self._cached(ignore_ttl=True)
            if stale is not None:
                logger.warning(f"Using stale bulk TLE ({len(stale.satellites)} satellites)")
                return _stale_outcome(stale, reason)
            return _failed_outcome(reason)

    def get_elements(self, norad_id: str) -> Optional[OrbitalElements]:
        """Elements for one satellite from the bulk cache, ignoring TTL."""
        cached = self._cached(ignore_ttl=True)
        if cached is None:
            return None
        return cached.get(norad_id)

    def all_satellites(self) -> Optional[Dict[str, TLEEntry]]:
        cached = self._cached(ignore_ttl=True)
        return cached.satellites if cached is not None else None

    def cache_age(self) -> Optional[float]:
        entry = self.cache.get(BULK_NAMESPACE, self.group)
        if entry is None:
            return None
        return entry.age_seconds(self._clock())

    def clear(self) -> None:
        self.cache.delete(BULK_NAMESPACE, self.group)
