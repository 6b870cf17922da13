"""
Weather Enricher

Hourly cloud cover, precipitation and visibility from the Open-Meteo
forecast API (free, no API key), and a go/no-go verdict for a pass.
Forecasts are cached per location rounded to 0.01 degrees.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from config import (
    GOOD_WEATHER_CLOUD_COVER_MAX,
    GOOD_WEATHER_PRECIPITATION_MAX,
    WEATHER_MAX_OFFSET_S,
)
from pass_service.cache import WEATHER_NAMESPACE, CacheService, CacheWriteError, utc_now
from pass_service.http_client import FetchError
from pass_service.models import (
    HourlyForecast,
    ObserverLocation,
    SatellitePass,
    WeatherConditions,
)

logger = logging.getLogger(__name__)

HOURLY_VARIABLES = "cloud_cover,precipitation,visibility"
FORECAST_DAYS = 7


def location_key(location: ObserverLocation) -> str:
    return f"{location.latitude:.2f},{location.longitude:.2f}"


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_forecast(document: Dict[str, Any], fetched_at: datetime) -> HourlyForecast:
    """
    Build an HourlyForecast from an Open-Meteo response body.

    Raises:
        KeyError, TypeError, ValueError: If the body lacks the hourly block
    """
    hourly = document["hourly"]
    times = [_parse_time(t) for t in hourly["time"]]
    count = len(times)

    def series(name: str) -> List[Optional[float]]:
        values = list(hourly.get(name) or [])
        return (values + [None] * count)[:count]

    return HourlyForecast(
        fetched_at=fetched_at,
        time=times,
        cloud_cover=series("cloud_cover"),
        precipitation=series("precipitation"),
        visibility=series("visibility"),
    )


def is_good_weather(cloud_cover: float, precipitation: float) -> bool:
    """Both low cloud and essentially no precipitation are required."""
    return cloud_cover <= GOOD_WEATHER_CLOUD_COVER_MAX and precipitation <= GOOD_WEATHER_PRECIPITATION_MAX


def get_weather_at_time(forecast: HourlyForecast, target: datetime) -> Optional[WeatherConditions]:
    """
    Conditions at the forecast hour nearest to ``target``.

    Returns:
        WeatherConditions, or None if no forecast hour lies within one hour
    """
    if not forecast.time:
        return None

    diffs = [abs((t - target).total_seconds()) for t in forecast.time]
    index = min(range(len(diffs)), key=diffs.__getitem__)

    if diffs[index] > WEATHER_MAX_OFFSET_S:
        return None

    cloud_cover = forecast.cloud_cover[index]
    precipitation = forecast.precipitation[index]
    visibility = forecast.visibility[index]

    cloud_cover = 100.0 if cloud_cover is None else cloud_cover
    precipitation = 0.0 if precipitation is None else precipitation
    visibility = 0.0 if visibility is None else visibility

    return WeatherConditions(
        cloud_cover=cloud_cover,
        precipitation=precipitation,
        visibility=visibility,
        is_good_weather=is_good_weather(cloud_cover, precipitation),
    )


def weather_for_pass(forecast: HourlyForecast, pass_: SatellitePass) -> Optional[WeatherConditions]:
    """Conditions at the best viewing time, or at maximum elevation."""
    return get_weather_at_time(forecast, pass_.best_viewing_time or pass_.max_elevation_time)


class WeatherService:
    """
    Open-Meteo forecast client with a 30 minute per-location cache.

    Args:
        http: HttpClient
        cache: CacheService holding the weather namespace
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

    def fetch_forecast(self, location: ObserverLocation) -> Optional[HourlyForecast]:
        """
        Hourly forecast for the next seven days.

        Returns:
            HourlyForecast, or None when the provider is unreachable
        """
        key = location_key(location)

        entry = self.cache.get(WEATHER_NAMESPACE, key, ttl=self.config.WEATHER_TTL)
        if entry is not None:
            try:
                return HourlyForecast.model_validate(entry.payload)
            except ValueError as e:
                logger.warning(f"Ignoring unreadable cached forecast for {key}: {e}")

        params = {
            "latitude": f"{location.latitude:.4f}",
            "longitude": f"{location.longitude:.4f}",
            "hourly": HOURLY_VARIABLES,
            "timezone": "UTC",
            "forecast_days": FORECAST_DAYS,
        }

        try:
            document = self.http.get_json(self.config.OPEN_METEO_URL, params=params)
            forecast = parse_forecast(document, fetched_at=self._clock())
        except FetchError as e:
            logger.error(f"Failed to fetch weather forecast for {key}: {e}")
            return None
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Unexpected weather response for {key}: {e}")
            return None

        try:
            self.cache.put(
                WEATHER_NAMESPACE,
                key,
                forecast.model_dump(mode="json"),
                fetched_at=forecast.fetched_at,
            )
        except CacheWriteError as e:
            logger.warning(f"Could not cache weather forecast for {key}: {e}")

        return forecast

    def weather_for_passes(
        self,
        location: ObserverLocation,
        passes: List[SatellitePass],
    ) -> List[Optional[WeatherConditions]]:
        """Conditions for each pass, in order; all None if no forecast."""
        forecast = self.fetch_forecast(location)
        if forecast is None:
            return [None] * len(passes)
        return [weather_for_pass(forecast, p) for p in passes]
