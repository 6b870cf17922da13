"""
Satellite Pass Service

Facade over the element stores, pass predictor, visibility evaluator,
weather enricher and catalog builder. One instance owns one cache service
and one HTTP client; every component receives them explicitly.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from config import PassServiceConfig
from pass_service.cache import CacheService, create_cache_service, utc_now
from pass_service.catalog import (
    CatalogBuilder,
    CatalogResult,
    get_satellite_by_id,
    get_satellite_by_norad_id,
    search_satellites,
)
from pass_service.element_store import BulkElementStore, ElementStore
from pass_service.geometry import SGP4GeometryProvider
from pass_service.http_client import HttpClient
from pass_service.models import (
    FetchOutcome,
    LookAngles,
    ObserverLocation,
    OutcomeStatus,
    PassFilters,
    SatellitePass,
    SatelliteWithTLE,
    WeatherConditions,
)
from pass_service.pass_predictor import CancellationToken, PassPredictor
from pass_service.transmitters import TransmitterRegistry
from pass_service.visibility import VisibilityEvaluator, filter_visible_passes
from pass_service.weather import WeatherService

logger = logging.getLogger(__name__)


class PassPredictionResult(BaseModel):
    norad_id: str
    passes: List[SatellitePass] = Field(default_factory=list)
    cached: bool = False
    error: Optional[str] = None


class SatellitePassService:
    """
    Caller-facing API.

    Args:
        config: PassServiceConfig (read from the environment when omitted)
        cache: CacheService (Redis or memory per config when omitted)
        http: HttpClient
        geometry: Geometry provider (SGP4 by default)
        clock: Callable returning the current UTC datetime
    """

    def __init__(
        self,
        config: Optional[PassServiceConfig] = None,
        cache: Optional[CacheService] = None,
        http: Optional[HttpClient] = None,
        geometry=None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or PassServiceConfig()
        self._clock = clock or utc_now
        self.cache = cache or create_cache_service(self.config, clock=self._clock)
        self.http = http or HttpClient(timeout=self.config.HTTP_TIMEOUT)
        self.geometry = geometry or SGP4GeometryProvider()

        self.predictor = PassPredictor(
            self.geometry,
            step_seconds=self.config.PASS_STEP_SECONDS,
            trajectory_step_seconds=self.config.TRAJECTORY_STEP_SECONDS,
        )
        self.visibility = VisibilityEvaluator(self.geometry)
        self.bulk_store = BulkElementStore(self.http, self.cache, self.config, clock=self._clock)
        self.transmitters = TransmitterRegistry(self.http, self.cache, self.config, clock=self._clock)
        self.weather = WeatherService(self.http, self.cache, self.config, clock=self._clock)
        self.catalog_builder = CatalogBuilder(self.bulk_store, self.transmitters)

        self._element_stores: Dict[str, ElementStore] = {}
        self._stores_lock = threading.Lock()

    def element_store(self, norad_id: str) -> ElementStore:
        norad_id = str(norad_id)
        with self._stores_lock:
            if norad_id not in self._element_stores:
                self._element_stores[norad_id] = ElementStore(
                    norad_id, self.http, self.cache, self.config, clock=self._clock
                )
            return self._element_stores[norad_id]

    def get_elements(self, norad_id: str, force_refresh: bool = False) -> FetchOutcome:
        """Elements from the bulk cache when present, else the single-satellite store."""
        if not force_refresh:
            elements = self.bulk_store.get_elements(str(norad_id))
            if elements is not None:
                return FetchOutcome(status=OutcomeStatus.OK, data=elements, cached=True)
        return self.element_store(norad_id).fetch(force_refresh=force_refresh)

    def predict_passes(
        self,
        norad_id: str,
        observer: ObserverLocation,
        start: Optional[datetime] = None,
        days: float = 7,
        filters: Optional[PassFilters] = None,
        refine: bool = True,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PassPredictionResult:
        """
        Predict, refine and enrich passes for one satellite.

        ``visible_only`` is applied after visibility enrichment, so it acts
        on the passes left by ``min_elevation`` and ``max_results``.
        """
        outcome = self.get_elements(norad_id)
        if outcome.data is None:
            return PassPredictionResult(norad_id=str(norad_id), error=outcome.error)

        elements = outcome.data
        start = start or self._clock()
        filters = filters or PassFilters()

        if self.config.PREDICTION_WORKERS > 1:
            passes = self.predictor.predict_parallel(
                elements, observer, start, days, filters,
                workers=self.config.PREDICTION_WORKERS,
                cancel_token=cancel_token,
            )
        else:
            passes = self.predictor.predict(elements, observer, start, days, filters, cancel_token=cancel_token)

        if refine:
            passes = [self.predictor.refine(elements, observer, p) for p in passes]

        passes = self.visibility.enrich_passes(elements, observer, passes)

        if filters.visible_only:
            passes = filter_visible_passes(passes)

        logger.info(f"Predicted {len(passes)} passes for {norad_id} over {days} days")
        return PassPredictionResult(
            norad_id=str(norad_id),
            passes=passes,
            cached=outcome.cached,
            error=outcome.error,
        )

    def get_next_pass(
        self,
        norad_id: str,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Optional[SatellitePass]:
        elements = self.get_elements(norad_id).data
        if elements is None:
            return None
        return self.predictor.get_next_pass(elements, observer, now or self._clock())

    def is_currently_overhead(
        self,
        norad_id: str,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, Optional[LookAngles]]:
        elements = self.get_elements(norad_id).data
        if elements is None:
            return False, None
        return self.predictor.is_currently_overhead(elements, observer, now or self._clock())

    def get_time_until_next_pass(
        self,
        norad_id: str,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Optional[timedelta]:
        elements = self.get_elements(norad_id).data
        if elements is None:
            return None
        return self.predictor.get_time_until_next_pass(elements, observer, now or self._clock())

    def build_satellite_catalog(self, force_refresh: bool = False) -> CatalogResult:
        return self.catalog_builder.build(force_refresh=force_refresh)

    def search_satellites(self, query: str) -> List[SatelliteWithTLE]:
        return search_satellites(self.build_satellite_catalog().satellites, query)

    def get_satellite_by_norad_id(self, norad_id: str) -> Optional[SatelliteWithTLE]:
        return get_satellite_by_norad_id(self.build_satellite_catalog().satellites, norad_id)

    def get_satellite_by_id(self, sat_id: str) -> Optional[SatelliteWithTLE]:
        return get_satellite_by_id(self.build_satellite_catalog().satellites, sat_id)

    def get_weather_for_passes(
        self,
        observer: ObserverLocation,
        passes: List[SatellitePass],
    ) -> List[Optional[WeatherConditions]]:
        return self.weather.weather_for_passes(observer, passes)
