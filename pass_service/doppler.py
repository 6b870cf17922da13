"""
Doppler Correction

Frequency shifts seen on satellite links because of the satellite's radial
velocity. For LEO satellites the shift reaches roughly +/-3.5 kHz on 2 m and
+/-10 kHz on 70 cm.

Sign convention for the range rate: positive when the satellite recedes,
negative when it approaches.
"""

import re
from typing import List, Optional

from pydantic import BaseModel

from pass_service.models import PassMoment

SPEED_OF_LIGHT_M_S = 299792458.0
MAX_LEO_RANGE_RATE_M_S = 8000.0

_FREQUENCY_PATTERN = re.compile(r"^([\d.]+)\s*(mhz|khz|hz)?$", re.IGNORECASE)


class DopplerResult(BaseModel):
    uplink_shift: float  # Hz
    downlink_shift: float  # Hz
    uplink_corrected: Optional[float] = None  # MHz
    downlink_corrected: Optional[float] = None  # MHz
    radial_velocity: float  # km/s
    is_approaching: bool


class DopplerSample(BaseModel):
    timestamp: str
    range_rate: float
    downlink_shift: float
    downlink_corrected: Optional[float] = None


def calculate_doppler(
    uplink_mhz: Optional[float],
    downlink_mhz: Optional[float],
    range_rate_km_s: float,
) -> DopplerResult:
    """
    Doppler-corrected uplink and downlink frequencies.

    The downlink shift is what the receiver observes; the uplink shift is the
    pre-correction to apply to the transmitter so the satellite hears the
    nominal frequency.

    Args:
        uplink_mhz: Nominal uplink frequency (MHz), or None
        downlink_mhz: Nominal downlink frequency (MHz), or None
        range_rate_km_s: Range rate (km/s)

    Returns:
        DopplerResult with shifts in Hz and corrected frequencies in MHz
    """
    v = range_rate_km_s * 1000.0
    c = SPEED_OF_LIGHT_M_S

    downlink_shift = 0.0
    downlink_corrected = None
    if downlink_mhz is not None and downlink_mhz > 0:
        downlink_hz = downlink_mhz * 1e6
        downlink_shift = -downlink_hz * (v / (c + v))
        downlink_corrected = (downlink_hz + downlink_shift) / 1e6

    uplink_shift = 0.0
    uplink_corrected = None
    if uplink_mhz is not None and uplink_mhz > 0:
        uplink_hz = uplink_mhz * 1e6
        uplink_shift = -uplink_hz * (v / c)
        uplink_corrected = (uplink_hz + uplink_shift) / 1e6

    return DopplerResult(
        uplink_shift=uplink_shift,
        downlink_shift=downlink_shift,
        uplink_corrected=uplink_corrected,
        downlink_corrected=downlink_corrected,
        radial_velocity=range_rate_km_s,
        is_approaching=range_rate_km_s < 0,
    )


def parse_frequency_mhz(text: Optional[str]) -> Optional[float]:
    """
    Parse "145.800", "145.800 MHz", "145800 kHz" or "145800000 Hz" into MHz.

    Strings that do not match are read as a leading number whose unit is
    guessed from its magnitude, so "145.850 MHz (67 Hz)" parses as 145.85.
    """
    if not text:
        return None

    value = text.strip().lower()
    match = _FREQUENCY_PATTERN.match(value)

    if match is None:
        number = re.match(r"^[+-]?(\d+\.?\d*|\.\d+)", value)
        if number is None:
            return None
        num = float(number.group(0))
        if 100 < num < 1000:
            return num
        if 1000 < num < 1_000_000:
            return num / 1000
        if num > 1_000_000:
            return num / 1_000_000
        return num

    try:
        magnitude = float(match.group(1))
    except ValueError:
        return None

    unit = (match.group(2) or "mhz").lower()
    if unit == "hz":
        return magnitude / 1e6
    if unit == "khz":
        return magnitude / 1e3
    return magnitude


def format_shift(shift_hz: float) -> str:
    """``"+3.2 kHz"`` or ``"-150 Hz"``."""
    sign = "+" if shift_hz >= 0 else "-"
    magnitude = abs(shift_hz)
    if magnitude >= 1000:
        return f"{sign}{magnitude / 1000:.1f} kHz"
    return f"{sign}{magnitude:.0f} Hz"


def max_doppler_shift(freq_mhz: float) -> float:
    """Worst-case LEO shift (Hz) for a frequency."""
    return freq_mhz * 1e6 * (MAX_LEO_RANGE_RATE_M_S / SPEED_OF_LIGHT_M_S)


def doppler_for_pass(trajectory: List[PassMoment], downlink_mhz: float) -> List[DopplerSample]:
    """Downlink shift at each trajectory sample that carries a range rate."""
    samples = []
    for moment in trajectory:
        range_rate = moment.look_angles.range_rate
        if range_rate is None:
            continue
        result = calculate_doppler(None, downlink_mhz, range_rate)
        samples.append(DopplerSample(
            timestamp=moment.timestamp.isoformat(),
            range_rate=range_rate,
            downlink_shift=result.downlink_shift,
            downlink_corrected=result.downlink_corrected,
        ))
    return samples
