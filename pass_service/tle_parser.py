"""
TLE Parser Module

Provides utilities for validating and parsing Two-Line Element (TLE) sets as
served by CelesTrak, in both the single-object form (name line plus two data
lines) and the bulk group form (N three-line groups).

Validation follows the fixed-width TLE format: each data line is exactly 69
characters, line 1 starts with "1 ", line 2 with "2 ", and the last column is
a modulo-10 checksum of the first 68 columns where every digit counts its
value and every minus sign counts 1.
"""

import math
import logging
from datetime import datetime, timezone, timedelta
from typing import Dict, Any, List

from sgp4.api import Satrec

from pass_service.models import OrbitalElements, TLEEntry

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69


class TLEValidationError(ValueError):
    """Raised when TLE text is malformed (length, prefix or checksum)."""


def compute_checksum(line: str) -> int:
    """Calculate TLE checksum over the first 68 columns."""
    checksum = 0
    for char in line[:68]:
        if char.isdigit():
            checksum += int(char)
        elif char == "-":
            checksum += 1
    return checksum % 10


def validate_checksum(line: str) -> bool:
    """Return True when the trailing checksum digit matches the line."""
    if len(line) < TLE_LINE_LENGTH or not line[68].isdigit():
        return False
    return compute_checksum(line) == int(line[68])


def validate_tle_lines(line1: str, line2: str) -> None:
    """
    Validate a pair of TLE data lines.

    Args:
        line1: First data line
        line2: Second data line

    Raises:
        TLEValidationError: On wrong length, wrong line number prefix
            or checksum mismatch
    """
    if len(line1) != TLE_LINE_LENGTH or len(line2) != TLE_LINE_LENGTH:
        raise TLEValidationError(
            f"Invalid TLE format: expected {TLE_LINE_LENGTH}-character lines, "
            f"got {len(line1)} and {len(line2)}"
        )

    if not line1.startswith("1 ") or not line2.startswith("2 "):
        raise TLEValidationError("Invalid TLE format: bad line number prefix")

    if not validate_checksum(line1):
        raise TLEValidationError("Invalid TLE format: checksum error on line 1")
    if not validate_checksum(line2):
        raise TLEValidationError("Invalid TLE format: checksum error on line 2")


def parse_single_response(text: str, fetched_at: datetime) -> OrbitalElements:
    """
    Parse a single-satellite provider response (name + 2 data lines).

    Args:
        text: Raw response body
        fetched_at: Time the response was received

    Returns:
        Validated OrbitalElements

    Raises:
        TLEValidationError: If the response is not a valid 3-line TLE
    """
    lines = [line.rstrip() for line in text.strip().splitlines()]

    if len(lines) < 3:
        raise TLEValidationError("Invalid TLE format: expected at least 3 lines")

    name = lines[0].strip()
    line1 = lines[1].strip()
    line2 = lines[2].strip()

    validate_tle_lines(line1, line2)

    return OrbitalElements(line1=line1, line2=line2, fetched_at=fetched_at, name=name)


def parse_bulk_response(text: str) -> Dict[str, TLEEntry]:
    """
    Parse a bulk group response into entries keyed by catalog number.

    Malformed groups are skipped instead of failing the whole batch.
    Checksums are not verified here.
    """
    satellites: Dict[str, TLEEntry] = {}
    lines = text.strip().splitlines()
    skipped = 0

    for i in range(0, len(lines), 3):
        group: List[str] = [line.strip() for line in lines[i:i + 3]]
        if len(group) < 3 or not all(group):
            skipped += 1
            continue

        name, line1, line2 = group
        if not line1.startswith("1 ") or not line2.startswith("2 "):
            skipped += 1
            continue
        if len(line1) != TLE_LINE_LENGTH or len(line2) != TLE_LINE_LENGTH:
            skipped += 1
            continue

        norad_id = line1[2:7].strip()
        satellites[norad_id] = TLEEntry(name=name, line1=line1, line2=line2)

    if skipped:
        logger.debug(f"Skipped {skipped} malformed TLE groups in bulk response")

    return satellites


def epoch_to_datetime(epoch_year: int, epoch_days: float) -> datetime:
    """
    Convert TLE epoch to datetime.

    Args:
        epoch_year: Two-digit year
        epoch_days: Day of year with fractional part

    Returns:
        Datetime object in UTC
    """
    year = 1900 + epoch_year if epoch_year >= 57 else 2000 + epoch_year
    # -1 because day 1 is Jan 1
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=epoch_days - 1.0)


def describe_elements(elements: OrbitalElements) -> Dict[str, Any]:
    """
    Summarize the orbit encoded by a TLE.

    Args:
        elements: Orbital elements

    Returns:
        Dictionary with epoch, inclination, eccentricity, mean motion,
        orbital period and apogee/perigee altitudes
    """
    satellite = Satrec.twoline2rv(elements.line1, elements.line2)

    # rad/min -> rev/day
    mean_motion_rev_day = satellite.no_kozai * 1440.0 / (2.0 * math.pi)
    period_minutes = 1440.0 / mean_motion_rev_day if mean_motion_rev_day > 0 else None

    # Semi-major axis from the Kozai mean motion, earth radii -> km
    semi_major_km = satellite.a * satellite.radiusearthkm
    perigee_km = semi_major_km * (1.0 - satellite.ecco) - satellite.radiusearthkm
    apogee_km = semi_major_km * (1.0 + satellite.ecco) - satellite.radiusearthkm

    epoch = epoch_to_datetime(satellite.epochyr, satellite.epochdays)

    return {
        "name": elements.name,
        "norad_id": satellite.satnum,
        "epoch": epoch.isoformat(),
        "epoch_age_days": elements.age_days(),
        "inclination_deg": math.degrees(satellite.inclo),
        "raan_deg": math.degrees(satellite.nodeo),
        "eccentricity": satellite.ecco,
        "arg_perigee_deg": math.degrees(satellite.argpo),
        "mean_anomaly_deg": math.degrees(satellite.mo),
        "mean_motion_rev_per_day": mean_motion_rev_day,
        "period_minutes": period_minutes,
        "perigee_km": perigee_km,
        "apogee_km": apogee_km,
        "bstar_drag": satellite.bstar,
    }
