"""
Geometry Provider

SGP4 propagation and the coordinate transforms needed to turn a TLE into
what an observer on the ground sees:

    TEME (sgp4 output) -> ECEF (Earth rotation by GMST) -> geodetic (WGS-84)
    ECEF range vector  -> ENU at the observer -> azimuth / elevation / range

Propagation failures (sgp4 error codes, NaN state, malformed elements) are
reported as None so callers can skip the sample.
"""

import math
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Tuple

import numpy as np
from sgp4.api import Satrec, jday

from config import (
    EARTH_EQUATORIAL_RADIUS_KM,
    EARTH_FLATTENING,
    EARTH_ROTATION_RAD_S,
)
from pass_service.models import (
    LookAngles,
    ObserverLocation,
    OrbitalElements,
    PassMoment,
    SatellitePosition,
)

logger = logging.getLogger(__name__)


# SGP4 error code meanings
SGP4_ERROR_CODES = {
    0: "No error",
    1: "Mean eccentricity < 0.0 or > 1.0",
    2: "Mean motion < 0.0",
    3: "Perturbed eccentricity < 0.0 or > 1.0",
    4: "Semi-latus rectum < 0.0",
    5: "Satellite has decayed",
    6: "Satellite has decayed (low altitude)",
}

CARDINAL_POINTS = (
    "N", "NNE", "NE", "ENE", "E", "ESE", "SE", "SSE",
    "S", "SSW", "SW", "WSW", "W", "WNW", "NW", "NNW",
)

MAX_CACHED_SATRECS = 512

StateVector = Tuple[np.ndarray, np.ndarray]


def datetime_to_jd_fr(when: datetime) -> Tuple[float, float]:
    """Julian date split into day and fraction, as sgp4 expects."""
    if when.tzinfo is not None:
        when = when.astimezone(timezone.utc)
    seconds = when.second + when.microsecond / 1e6
    return jday(when.year, when.month, when.day, when.hour, when.minute, seconds)


def gmst(when: datetime) -> float:
    """
    Greenwich Mean Sidereal Time.

    Args:
        when: UTC datetime

    Returns:
        GMST in radians, in [0, 2*pi)
    """
    jd, fr = datetime_to_jd_fr(when)
    T = (jd - 2451545.0 + fr) / 36525.0

    gmst_sec = (
        67310.54841 +
        (876600.0 * 3600.0 + 8640184.812866) * T +
        0.093104 * T * T -
        6.2e-6 * T * T * T
    )

    return (gmst_sec % 86400.0) * (2.0 * math.pi / 86400.0)


def teme_to_ecef(r_teme: np.ndarray, v_teme: np.ndarray, when: datetime) -> StateVector:
    """
    Rotate a TEME state vector into ECEF.

    Args:
        r_teme: Position [x, y, z] (km)
        v_teme: Velocity [vx, vy, vz] (km/s)
        when: Time of the state vector

    Returns:
        Tuple of (r_ecef, v_ecef); velocity is relative to the rotating Earth
    """
    theta = gmst(when)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)

    r_ecef = np.array([
        cos_t * r_teme[0] + sin_t * r_teme[1],
        -sin_t * r_teme[0] + cos_t * r_teme[1],
        r_teme[2],
    ])

    v_ecef = np.array([
        cos_t * v_teme[0] + sin_t * v_teme[1] + EARTH_ROTATION_RAD_S * r_ecef[1],
        -sin_t * v_teme[0] + cos_t * v_teme[1] - EARTH_ROTATION_RAD_S * r_ecef[0],
        v_teme[2],
    ])

    return r_ecef, v_ecef


def ecef_to_geodetic(r_ecef: np.ndarray) -> Tuple[float, float, float]:
    """
    ECEF to WGS-84 geodetic coordinates using Bowring's method.

    Returns:
        Tuple of (latitude_deg, longitude_deg, altitude_km)
    """
    a = EARTH_EQUATORIAL_RADIUS_KM
    f = EARTH_FLATTENING
    b = a * (1.0 - f)
    e2 = 2.0 * f - f * f
    ep2 = e2 / (1.0 - e2)

    x, y, z = r_ecef
    lon = math.atan2(y, x)
    p = math.sqrt(x * x + y * y)

    if p < 1e-10:
        lat = math.pi / 2.0 if z > 0 else -math.pi / 2.0
        return math.degrees(lat), math.degrees(lon), abs(z) - b

    theta = math.atan2(z * a, p * b)
    for _ in range(5):
        sin_theta = math.sin(theta)
        cos_theta = math.cos(theta)
        lat = math.atan2(
            z + ep2 * b * sin_theta ** 3,
            p - e2 * a * cos_theta ** 3,
        )
        # Parametric latitude of the current geodetic estimate
        new_theta = math.atan2(b * math.sin(lat), a * math.cos(lat))
        if abs(new_theta - theta) < 1e-12:
            break
        theta = new_theta

    cos_lat = math.cos(lat)
    sin_lat = math.sin(lat)
    N = a / math.sqrt(1.0 - e2 * sin_lat * sin_lat)

    if cos_lat > 1e-10:
        alt = p / cos_lat - N
    else:
        alt = z / sin_lat - N * (1.0 - e2)

    return math.degrees(lat), math.degrees(lon), alt


def geodetic_to_ecef(lat_deg: float, lon_deg: float, alt_km: float) -> np.ndarray:
    """WGS-84 geodetic coordinates to ECEF position (km)."""
    a = EARTH_EQUATORIAL_RADIUS_KM
    f = EARTH_FLATTENING
    e2 = 2.0 * f - f * f

    lat = math.radians(lat_deg)
    lon = math.radians(lon_deg)
    sin_lat = math.sin(lat)
    cos_lat = math.cos(lat)
    N = a / math.sqrt(1.0 - e2 * sin_lat * sin_lat)

    return np.array([
        (N + alt_km) * cos_lat * math.cos(lon),
        (N + alt_km) * cos_lat * math.sin(lon),
        (N * (1.0 - e2) + alt_km) * sin_lat,
    ])


def ecef_to_look_angles(
    r_ecef: np.ndarray,
    v_ecef: np.ndarray,
    observer: ObserverLocation,
) -> LookAngles:
    """
    Topocentric look angles of an ECEF state from a ground observer.

    Range rate is the projection of the Earth-relative velocity on the line
    of sight; positive means the satellite is receding.
    """
    obs_ecef = geodetic_to_ecef(observer.latitude, observer.longitude, observer.altitude / 1000.0)
    rho = r_ecef - obs_ecef

    lat = math.radians(observer.latitude)
    lon = math.radians(observer.longitude)
    sin_lat, cos_lat = math.sin(lat), math.cos(lat)
    sin_lon, cos_lon = math.sin(lon), math.cos(lon)

    east = -sin_lon * rho[0] + cos_lon * rho[1]
    north = -sin_lat * cos_lon * rho[0] - sin_lat * sin_lon * rho[1] + cos_lat * rho[2]
    up = cos_lat * cos_lon * rho[0] + cos_lat * sin_lon * rho[1] + sin_lat * rho[2]

    range_km = float(np.linalg.norm(rho))
    azimuth = math.degrees(math.atan2(east, north)) % 360.0
    elevation = math.degrees(math.asin(max(-1.0, min(1.0, up / range_km))))
    range_rate = float(np.dot(rho, v_ecef)) / range_km

    return LookAngles(azimuth=azimuth, elevation=elevation, range=range_km, range_rate=range_rate)


def azimuth_to_cardinal(azimuth: float) -> str:
    """16-point compass direction for an azimuth in degrees."""
    index = int(round((azimuth % 360.0) / 22.5)) % 16
    return CARDINAL_POINTS[index]


class SGP4GeometryProvider:
    """
    Geometry provider backed by the ``sgp4`` library.

    Satrec records are memoised per (line1, line2), so repeated sampling of
    one satellite parses its TLE once.
    """

    def __init__(self):
        self._satrecs: Dict[Tuple[str, str], Satrec] = {}
        self._lock = threading.Lock()

    def _satrec(self, elements: OrbitalElements) -> Optional[Satrec]:
        key = (elements.line1, elements.line2)
        with self._lock:
            satellite = self._satrecs.get(key)
        if satellite is not None:
            return satellite

        try:
            satellite = Satrec.twoline2rv(elements.line1, elements.line2)
        except (ValueError, IndexError) as e:
            logger.debug(f"Cannot parse elements for {elements.norad_id}: {e}")
            return None

        with self._lock:
            if len(self._satrecs) >= MAX_CACHED_SATRECS:
                self._satrecs.clear()
            self._satrecs[key] = satellite
        return satellite

    def propagate(self, elements: OrbitalElements, when: datetime) -> Optional[StateVector]:
        """
        Propagate to a time.

        Returns:
            (r_teme, v_teme) as numpy arrays in km and km/s, or None
        """
        satellite = self._satrec(elements)
        if satellite is None:
            return None

        jd, fr = datetime_to_jd_fr(when)
        error, position, velocity = satellite.sgp4(jd, fr)

        if error != 0:
            logger.debug(
                f"SGP4 error {error} for {elements.norad_id} at {when.isoformat()}: "
                f"{SGP4_ERROR_CODES.get(error, f'Unknown error code {error}')}"
            )
            return None

        r = np.array(position)
        v = np.array(velocity)
        if not (np.all(np.isfinite(r)) and np.all(np.isfinite(v))):
            logger.debug(f"SGP4 returned non-finite state for {elements.norad_id}")
            return None

        return r, v

    def _position_from_state(self, r_teme, v_teme, when: datetime) -> Tuple[SatellitePosition, StateVector]:
        r_ecef, v_ecef = teme_to_ecef(r_teme, v_teme, when)
        lat, lon, alt = ecef_to_geodetic(r_ecef)
        position = SatellitePosition(
            latitude=lat,
            longitude=lon,
            altitude=alt,
            velocity=float(np.linalg.norm(v_teme)),
        )
        return position, (r_ecef, v_ecef)

    def position(self, elements: OrbitalElements, when: datetime) -> Optional[SatellitePosition]:
        state = self.propagate(elements, when)
        if state is None:
            return None
        position, _ = self._position_from_state(state[0], state[1], when)
        return position

    def look_angles(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        when: datetime,
    ) -> Optional[LookAngles]:
        state = self.propagate(elements, when)
        if state is None:
            return None
        r_ecef, v_ecef = teme_to_ecef(state[0], state[1], when)
        return ecef_to_look_angles(r_ecef, v_ecef, observer)

    def sample(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        when: datetime,
    ) -> Optional[PassMoment]:
        """Position and look angles from a single propagation."""
        state = self.propagate(elements, when)
        if state is None:
            return None
        position, (r_ecef, v_ecef) = self._position_from_state(state[0], state[1], when)
        return PassMoment(
            timestamp=when,
            position=position,
            look_angles=ecef_to_look_angles(r_ecef, v_ecef, observer),
        )
