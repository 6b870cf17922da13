"""
Transmitter Registry

Client for the SatNOGS DB transmitters endpoint. Only transmitters flagged
alive are kept. Helpers pick a satellite's primary transmitter, derive a
category from its mode and format its frequencies for display.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError

from pass_service.cache import TRANSMITTERS_NAMESPACE, CacheService, CacheWriteError, utc_now
from pass_service.http_client import FetchError
from pass_service.metadata import MODE_TO_CATEGORY
from pass_service.models import FetchOutcome, OutcomeStatus, SatelliteCategory, Transmitter

logger = logging.getLogger(__name__)

CACHE_KEY = "alive"


def _parse_transmitters(records) -> List[Transmitter]:
    if not isinstance(records, list):
        raise ValueError("Expected a JSON array of transmitters")

    transmitters = []
    for record in records:
        if not isinstance(record, dict) or not record.get("alive"):
            continue
        try:
            transmitters.append(Transmitter.model_validate(record))
        except ValidationError as e:
            logger.debug(f"Skipping malformed transmitter {record.get('uuid')}: {e}")
    return transmitters


class TransmitterRegistry:
    """
    SatNOGS transmitter list with a one hour cache and stale fallback.

    Args:
        http: HttpClient
        cache: CacheService holding the transmitters namespace
        config: PassServiceConfig
        clock: Callable returning the current UTC datetime
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

    def _cached(self, ignore_ttl: bool = False) -> Optional[List[Transmitter]]:
        ttl = None if ignore_ttl else self.config.TRANSMITTERS_TTL
        entry = self.cache.get(TRANSMITTERS_NAMESPACE, CACHE_KEY, ttl=ttl)
        if entry is None:
            return None
        try:
            return [Transmitter.model_validate(t) for t in entry.payload]
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring malformed transmitter cache: {e}")
            return None

    def fetch(self, force_refresh: bool = False) -> FetchOutcome:
        """
        Alive transmitters from SatNOGS.

        Returns:
            FetchOutcome whose data is a list of Transmitter (or None)
        """
        with self.cache.lock(TRANSMITTERS_NAMESPACE, CACHE_KEY):
            if not force_refresh:
                cached = self._cached()
                if cached is not None:
                    return FetchOutcome(status=OutcomeStatus.OK, data=cached, cached=True)

            try:
                records = self.http.get_json(self.config.SATNOGS_API_URL)
                transmitters = _parse_transmitters(records)
            except (FetchError, ValueError) as e:
                logger.error(f"Error fetching SatNOGS transmitters: {e}")
                stale = self._cached(ignore_ttl=True)
                if stale is not None:
                    return FetchOutcome(
                        status=OutcomeStatus.STALE,
                        data=stale,
                        cached=True,
                        error=f"Failed to fetch fresh data: {e}",
                    )
                return FetchOutcome(
                    status=OutcomeStatus.FAILED,
                    error=f"Failed to fetch transmitters: {e}",
                )

            try:
                self.cache.put(
                    TRANSMITTERS_NAMESPACE,
                    CACHE_KEY,
                    [t.model_dump(mode="json") for t in transmitters],
                )
            except CacheWriteError as e:
                logger.warning(f"Could not cache SatNOGS transmitters: {e}")

            logger.info(f"Fetched {len(transmitters)} alive transmitters from SatNOGS")
            return FetchOutcome(status=OutcomeStatus.OK, data=transmitters, cached=False)

    def clear(self) -> None:
        self.cache.delete(TRANSMITTERS_NAMESPACE, CACHE_KEY)


def group_by_norad_id(transmitters: List[Transmitter]) -> Dict[str, List[Transmitter]]:
    """Transmitters keyed by catalog number (as an unpadded string)."""
    grouped: Dict[str, List[Transmitter]] = defaultdict(list)
    for transmitter in transmitters:
        if transmitter.norad_cat_id is not None:
            grouped[str(transmitter.norad_cat_id)].append(transmitter)
    return dict(grouped)


def transmitters_for(transmitters: List[Transmitter], norad_id: str) -> List[Transmitter]:
    norad_num = int(norad_id)
    return [t for t in transmitters if t.norad_cat_id == norad_num and t.alive]


def primary_transmitter(transmitters: List[Transmitter]) -> Optional[Transmitter]:
    """First transmitter with a downlink, else the first one."""
    if not transmitters:
        return None
    for transmitter in transmitters:
        if transmitter.downlink_low is not None:
            return transmitter
    return transmitters[0]


def category_from_transmitter(transmitter: Optional[Transmitter]) -> SatelliteCategory:
    if transmitter is None or not transmitter.mode:
        return SatelliteCategory.OTHER

    mode = transmitter.mode.upper()
    if mode in MODE_TO_CATEGORY:
        return MODE_TO_CATEGORY[mode]

    for key, category in MODE_TO_CATEGORY.items():
        if key in mode:
            return category

    return SatelliteCategory.OTHER


def format_frequency(freq_hz: Optional[float]) -> Optional[str]:
    if freq_hz is None:
        return None
    return f"{freq_hz / 1e6:.3f} MHz"


def _format_range(low: Optional[float], high: Optional[float]) -> Optional[str]:
    if low is None:
        return None
    if high is not None and high != low:
        return f"{format_frequency(low)} - {format_frequency(high)}"
    return format_frequency(low)


def formatted_frequencies(transmitter: Transmitter) -> Tuple[Optional[str], Optional[str]]:
    """(uplink, downlink) display strings."""
    return (
        _format_range(transmitter.uplink_low, transmitter.uplink_high),
        _format_range(transmitter.downlink_low, transmitter.downlink_high),
    )
