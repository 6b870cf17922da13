"""
Maidenhead Locator

Conversions between geographic coordinates and Maidenhead grid locators
("QTH locators") used by radio amateurs, e.g. "IM58" or "IM58kr".
Decoded locators resolve to the centre of their square.
"""

import math
import re
from typing import Optional, Tuple

from config import EARTH_RADIUS_KM
from pass_service.models import ObserverLocation

_LOCATOR_PATTERN = re.compile(r"^[A-R]{2}[0-9]{2}([A-X]{2})?$")


def is_valid_qth(locator: str) -> bool:
    return bool(_LOCATOR_PATTERN.match(locator.strip().upper()))


def qth_to_latlon(locator: str) -> Optional[Tuple[float, float]]:
    """
    Centre of a 4 or 6 character locator.

    Returns:
        (latitude, longitude) in degrees, or None for an invalid locator
    """
    qth = locator.strip().upper()
    if not _LOCATOR_PATTERN.match(qth):
        return None

    # Field: 20 x 10 degrees; square: 2 x 1 degrees
    lon = (ord(qth[0]) - ord("A")) * 20 - 180 + int(qth[2]) * 2
    lat = (ord(qth[1]) - ord("A")) * 10 - 90 + int(qth[3])

    if len(qth) == 6:
        # Subsquare: 5' x 2.5'
        lon += (ord(qth[4]) - ord("A")) * 2 / 24
        lat += (ord(qth[5]) - ord("A")) / 24
        lon += 1 / 24
        lat += 0.5 / 24
    else:
        lon += 1
        lat += 0.5

    return lat, lon


def latlon_to_qth(lat: float, lon: float, precision: int = 6) -> str:
    """
    Locator of the square containing a point.

    Args:
        lat: Latitude in degrees (-90 to 90)
        lon: Longitude in degrees (-180 to 180)
        precision: 4 or 6 characters

    Raises:
        ValueError: On out-of-range coordinates or precision
    """
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError("Invalid coordinates: lat must be -90 to 90, lon must be -180 to 180")
    if precision not in (4, 6):
        raise ValueError("Precision must be 4 or 6")

    # The north pole and antimeridian belong to the last square
    adjusted_lon = min(lon + 180, 360 - 1e-9)
    adjusted_lat = min(lat + 90, 180 - 1e-9)

    locator = (
        chr(ord("A") + int(adjusted_lon // 20))
        + chr(ord("A") + int(adjusted_lat // 10))
        + str(int((adjusted_lon % 20) // 2))
        + str(int(adjusted_lat % 10))
    )

    if precision == 6:
        locator += chr(ord("a") + int(((adjusted_lon % 20) % 2) // (2 / 24)))
        locator += chr(ord("a") + int(((adjusted_lat % 10) % 1) // (1 / 24)))

    return locator


def observer_from_qth(locator: str, altitude: float = 0.0) -> Optional[ObserverLocation]:
    coords = qth_to_latlon(locator)
    if coords is None:
        return None
    return ObserverLocation(
        latitude=coords[0],
        longitude=coords[1],
        altitude=altitude,
        name=locator.strip(),
    )


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance (haversine) on a spherical Earth."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing, 0 = north, clockwise."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_lon = math.radians(lon2 - lon1)

    y = math.sin(d_lon) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(d_lon)

    return (math.degrees(math.atan2(y, x)) + 360) % 360


def distance_between_qth(qth1: str, qth2: str) -> Optional[float]:
    a = qth_to_latlon(qth1)
    b = qth_to_latlon(qth2)
    if a is None or b is None:
        return None
    return distance_km(a[0], a[1], b[0], b[1])
