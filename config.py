"""
Satellite Pass Service Configuration and Constants

This module contains physical constants, service endpoints, cache lifetimes
and fallback TLE data used throughout the project.

Constants:
    Earth and Sun geometry used by the simplified sun/eclipse model.
    The shadow test is a cylindrical approximation and only needs
    amateur-grade accuracy, so mean values are used.

Fallback TLE Data:
    Hardcoded ISS TLE data for demonstrations and offline testing when live
    data is unavailable.

    IMPORTANT: Update this TLE data periodically for accuracy.
    - Low Earth Orbit (LEO) satellites: Update weekly

    Sources for updated TLEs:
    - CelesTrak.org (public access)

Environment:
    PassServiceConfig reads deployment settings from environment variables,
    falling back to the defaults below.
"""

import os
from typing import Dict, Any, Optional

# Earth / Sun geometry
EARTH_RADIUS_KM: float = 6371.0  # Mean Earth radius (km), shadow test
EARTH_EQUATORIAL_RADIUS_KM: float = 6378.137  # WGS-84 equatorial radius (km)
EARTH_FLATTENING: float = 1.0 / 298.257223563  # WGS-84 flattening
EARTH_ROTATION_RAD_S: float = 7.2921159e-5  # Earth rotation rate (rad/s)
ASTRONOMICAL_UNIT_KM: float = 149598000.0  # Mean Earth-Sun distance (km)
SHADOW_ALTITUDE_LIMIT_KM: float = 2000.0  # Above R + this, never in shadow

# Visibility thresholds (degrees)
CIVIL_TWILIGHT_DEG: float = -6.0
NAUTICAL_TWILIGHT_DEG: float = -12.0
ASTRONOMICAL_TWILIGHT_DEG: float = -18.0

# Cache lifetimes (seconds)
SINGLE_ELEMENTS_TTL_S: int = 24 * 60 * 60
BULK_ELEMENTS_TTL_S: int = 12 * 60 * 60
TRANSMITTERS_TTL_S: int = 60 * 60
WEATHER_TTL_S: int = 30 * 60

# Weather go/no-go thresholds
GOOD_WEATHER_CLOUD_COVER_MAX: float = 30.0  # percent
GOOD_WEATHER_PRECIPITATION_MAX: float = 0.1  # mm, essentially none
WEATHER_MAX_OFFSET_S: int = 60 * 60

ISS_NORAD_ID: str = "25544"

# Fallback ISS TLE for demonstrations and offline use
FALLBACK_ISS_TLE: Dict[str, Any] = {
    'name': 'ISS (ZARYA)',
    'norad_id': 25544,
    'line1': '1 25544U 98067A   23259.57580000  .00012022  00000-0  21844-3 0  9995',
    'line2': '2 25544  51.6416 220.9944 0004263 122.0101 312.2755 15.49541986415598',
    'epoch': '2023-09-16T13:49:09Z',
}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


class PassServiceConfig:
    """Deployment settings, resolved from the environment at construction."""

    def __init__(self, **overrides: Any):
        self.REDIS_URL: Optional[str] = os.getenv('REDIS_URL') or None
        self.CELESTRAK_BASE: str = os.getenv('CELESTRAK_API_BASE', 'https://celestrak.org')
        self.CELESTRAK_GROUP: str = os.getenv('CELESTRAK_GROUP', 'amateur')
        self.SATNOGS_API_URL: str = os.getenv(
            'SATNOGS_API_URL', 'https://db.satnogs.org/api/transmitters/'
        )
        self.OPEN_METEO_URL: str = os.getenv(
            'OPEN_METEO_URL', 'https://api.open-meteo.com/v1/forecast'
        )
        self.HTTP_TIMEOUT: float = _env_float('HTTP_TIMEOUT_SECONDS', 15.0)
        self.PASS_STEP_SECONDS: int = _env_int('PASS_STEP_SECONDS', 60)
        self.TRAJECTORY_STEP_SECONDS: int = _env_int('TRAJECTORY_STEP_SECONDS', 10)
        self.PREDICTION_WORKERS: int = _env_int('PREDICTION_WORKERS', 1)
        self.MEMORY_CACHE_MAX_BYTES: int = _env_int('MEMORY_CACHE_MAX_BYTES', 5_000_000)

        self.SINGLE_ELEMENTS_TTL: int = SINGLE_ELEMENTS_TTL_S
        self.BULK_ELEMENTS_TTL: int = BULK_ELEMENTS_TTL_S
        self.TRANSMITTERS_TTL: int = TRANSMITTERS_TTL_S
        self.WEATHER_TTL: int = WEATHER_TTL_S

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise AttributeError(f"Unknown configuration key: {key}")
            setattr(self, key, value)

    @property
    def elements_url(self) -> str:
        """CelesTrak GP endpoint; CATNR selects one object, GROUP a bulk feed."""
        return f"{self.CELESTRAK_BASE}/NORAD/elements/gp.php"
