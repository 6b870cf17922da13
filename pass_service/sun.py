"""
Sun / Eclipse Model

Low-precision solar ephemeris (Meeus, Astronomical Algorithms ch. 25) used to
decide whether the observer is in darkness and whether a satellite is lit.
Accuracy is a fraction of a degree, enough for naked-eye visibility.

The shadow test is a simple cylinder approximation: a satellite is in shadow
when it sits on the night side of the Earth and no higher than 2000 km above
a spherical Earth.
"""

import math
from datetime import datetime, timezone
from typing import Optional

import numpy as np

from config import (
    ASTRONOMICAL_TWILIGHT_DEG,
    ASTRONOMICAL_UNIT_KM,
    CIVIL_TWILIGHT_DEG,
    EARTH_RADIUS_KM,
    NAUTICAL_TWILIGHT_DEG,
    SHADOW_ALTITUDE_LIMIT_KM,
)
from pass_service.geometry import gmst
from pass_service.models import ObserverLocation, OrbitalElements, SunPosition

UNIX_EPOCH_JD = 2440587.5
J2000_JD = 2451545.0


def julian_date(when: datetime) -> float:
    """Julian date from Unix time."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return when.timestamp() / 86400.0 + UNIX_EPOCH_JD


def _julian_century(when: datetime) -> float:
    return (julian_date(when) - J2000_JD) / 36525.0


def _mean_longitude(jc: float) -> float:
    return (280.46646 + jc * (36000.76983 + jc * 0.0003032)) % 360.0


def _mean_anomaly(jc: float) -> float:
    return (357.52911 + jc * (35999.05029 - 0.0001537 * jc)) % 360.0


def sun_position(observer: ObserverLocation, when: datetime) -> SunPosition:
    """
    Azimuth and elevation of the Sun seen by an observer.

    Args:
        observer: Ground location
        when: UTC datetime

    Returns:
        SunPosition in degrees (azimuth from north, clockwise)
    """
    jc = _julian_century(when)

    L0 = _mean_longitude(jc)
    M = math.radians(_mean_anomaly(jc))

    # Equation of centre
    C = (
        (1.914602 - jc * (0.004817 + 0.000014 * jc)) * math.sin(M)
        + (0.019993 - 0.000101 * jc) * math.sin(2 * M)
        + 0.000289 * math.sin(3 * M)
    )
    sun_lon = math.radians(L0 + C)

    epsilon = math.radians(23.439291 - 0.0130042 * jc)

    ra = math.atan2(math.cos(epsilon) * math.sin(sun_lon), math.cos(sun_lon))
    dec = math.asin(math.sin(epsilon) * math.sin(sun_lon))

    lst = gmst(when) + math.radians(observer.longitude)
    ha = lst - ra

    lat = math.radians(observer.latitude)
    sin_alt = math.sin(lat) * math.sin(dec) + math.cos(lat) * math.cos(dec) * math.cos(ha)
    altitude = math.asin(sin_alt)

    cos_az = (math.sin(dec) - math.sin(lat) * sin_alt) / (math.cos(lat) * math.cos(altitude))
    azimuth = math.acos(max(-1.0, min(1.0, cos_az)))

    # Afternoon sun lies west of the meridian
    if math.sin(ha) > 0:
        azimuth = 2 * math.pi - azimuth

    return SunPosition(azimuth=math.degrees(azimuth), elevation=math.degrees(altitude))


def sun_elevation(observer: ObserverLocation, when: datetime) -> float:
    return sun_position(observer, when).elevation


def sun_position_eci(when: datetime) -> np.ndarray:
    """Sun position (km) in the ecliptic plane, first-order equation of centre."""
    jc = _julian_century(when)
    M = math.radians(_mean_anomaly(jc))
    L0 = _mean_longitude(jc)
    C = (1.914602 - jc * (0.004817 + 0.000014 * jc)) * math.sin(M)
    sun_lon = math.radians(L0 + C)

    return np.array([
        ASTRONOMICAL_UNIT_KM * math.cos(sun_lon),
        ASTRONOMICAL_UNIT_KM * math.sin(sun_lon),
        0.0,
    ])


def is_satellite_sunlit(position_eci: np.ndarray, when: datetime) -> bool:
    """
    Shadow test for an inertial satellite position.

    Args:
        position_eci: Satellite position (km)
        when: UTC datetime

    Returns:
        False when the satellite is in Earth's shadow
    """
    r = np.asarray(position_eci, dtype=float)
    sat_to_sun = sun_position_eci(when) - r
    distance = float(np.linalg.norm(r))

    in_shadow = float(np.dot(r, sat_to_sun)) < 0 and distance < EARTH_RADIUS_KM + SHADOW_ALTITUDE_LIMIT_KM
    return not in_shadow


def is_elements_sunlit(geometry, elements: OrbitalElements, when: datetime) -> bool:
    """Propagate and run the shadow test; a failed propagation counts as not lit."""
    state: Optional[tuple] = geometry.propagate(elements, when)
    if state is None:
        return False
    return is_satellite_sunlit(state[0], when)


def twilight_type(sun_elevation_deg: float) -> str:
    """Classify the sky by Sun elevation."""
    if sun_elevation_deg > 0:
        return "day"
    if sun_elevation_deg > CIVIL_TWILIGHT_DEG:
        return "civil"
    if sun_elevation_deg > NAUTICAL_TWILIGHT_DEG:
        return "nautical"
    if sun_elevation_deg > ASTRONOMICAL_TWILIGHT_DEG:
        return "astronomical"
    return "night"
