"""
Data Model

Pydantic models shared by the element stores, the pass predictor, the
visibility evaluator, the weather enricher and the catalog builder.
All timestamps are timezone-aware UTC datetimes.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def catalog_key(norad_id: str) -> str:
    """Catalog number without zero padding, ``"07530"`` -> ``"7530"``."""
    try:
        return str(int(norad_id))
    except ValueError:
        return str(norad_id)


class OrbitalElements(BaseModel):
    """Two-line element set plus the time it was fetched.

    Immutable: a fresh fetch supersedes it, never mutates it.
    """

    model_config = ConfigDict(frozen=True)

    line1: str
    line2: str
    fetched_at: datetime
    name: Optional[str] = None

    @field_validator("fetched_at")
    @classmethod
    def normalize_fetched_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def norad_id(self) -> str:
        return self.line1[2:7].strip()

    @property
    def epoch(self) -> datetime:
        year_2d = int(self.line1[18:20])
        day_of_year = float(self.line1[20:32])
        year = 1900 + year_2d if year_2d >= 57 else 2000 + year_2d
        return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_of_year - 1.0)

    def age_days(self, now: Optional[datetime] = None) -> float:
        """Days elapsed between the TLE epoch and ``now``."""
        now = now or datetime.now(timezone.utc)
        return (_as_utc(now) - self.epoch).total_seconds() / 86400.0


class TLEEntry(BaseModel):
    """One satellite of a bulk element feed."""

    name: str
    line1: str
    line2: str


class BulkElements(BaseModel):
    """Bulk element feed keyed by catalog number."""

    fetched_at: datetime
    satellites: Dict[str, TLEEntry] = Field(default_factory=dict)

    @field_validator("fetched_at")
    @classmethod
    def normalize_fetched_at(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def get(self, norad_id: str) -> Optional[OrbitalElements]:
        entry = self.satellites.get(str(norad_id))
        if entry is None:
            key = catalog_key(norad_id)
            entry = next((e for k, e in self.satellites.items() if catalog_key(k) == key), None)
        if entry is None:
            return None
        return OrbitalElements(
            line1=entry.line1,
            line2=entry.line2,
            fetched_at=self.fetched_at,
            name=entry.name,
        )


class ObserverLocation(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    altitude: float = 0.0  # metres above sea level
    name: Optional[str] = None


class LookAngles(BaseModel):
    azimuth: float  # degrees, 0 = north, clockwise
    elevation: float  # degrees, 0 = horizon
    range: float  # km
    range_rate: Optional[float] = None  # km/s, positive = receding


class SatellitePosition(BaseModel):
    latitude: float
    longitude: float
    altitude: float  # km
    velocity: float  # km/s


class PassMoment(BaseModel):
    timestamp: datetime
    position: SatellitePosition
    look_angles: LookAngles


class SatellitePass(BaseModel):
    """A single horizon-to-horizon pass (AOS to LOS)."""

    start_time: datetime
    end_time: datetime
    max_elevation: float
    max_elevation_time: datetime
    start_azimuth: float
    max_azimuth: float
    end_azimuth: float
    duration: float  # seconds
    is_visible: bool = False
    visible_duration: Optional[float] = None
    best_viewing_time: Optional[datetime] = None
    trajectory: List[PassMoment]

    @model_validator(mode="after")
    def check_trajectory(self) -> "SatellitePass":
        if not self.trajectory:
            raise ValueError("Pass trajectory must not be empty")
        stamps = [moment.timestamp for moment in self.trajectory]
        if any(later < earlier for earlier, later in zip(stamps, stamps[1:])):
            raise ValueError("Pass trajectory must be chronologically ordered")
        return self


class PassFilters(BaseModel):
    min_elevation: float = 0.0
    visible_only: bool = False
    max_results: Optional[int] = Field(default=None, ge=1)


class SunPosition(BaseModel):
    azimuth: float
    elevation: float


class VisibilityConditions(BaseModel):
    observer_in_darkness: bool
    satellite_sunlit: bool
    satellite_above_horizon: bool
    is_visible: bool


class VisibilityWindow(BaseModel):
    start: datetime
    end: datetime
    duration: float  # seconds


class WeatherConditions(BaseModel):
    cloud_cover: float  # percent
    precipitation: float  # mm
    visibility: float  # metres
    is_good_weather: bool


class HourlyForecast(BaseModel):
    fetched_at: datetime
    time: List[datetime]
    cloud_cover: List[Optional[float]]
    precipitation: List[Optional[float]]
    visibility: List[Optional[float]]


class SatelliteCategory(str, Enum):
    FM_VOICE = "fm-voice"
    LINEAR = "linear"
    DIGITAL = "digital"
    WEATHER = "weather"
    OTHER = "other"


class SatelliteStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"


class Transmitter(BaseModel):
    """SatNOGS transmitter record; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")

    uuid: str
    description: Optional[str] = None
    alive: bool = False
    type: Optional[str] = None
    uplink_low: Optional[float] = None
    uplink_high: Optional[float] = None
    downlink_low: Optional[float] = None
    downlink_high: Optional[float] = None
    mode: Optional[str] = None
    uplink_mode: Optional[str] = None
    invert: bool = False
    baud: Optional[float] = None
    norad_cat_id: Optional[int] = None
    status: Optional[str] = None


class SatelliteInfo(BaseModel):
    id: str
    name: str
    norad_id: str
    category: SatelliteCategory = SatelliteCategory.OTHER
    uplink: Optional[str] = None
    downlink: Optional[str] = None
    mode: Optional[str] = None
    description: Optional[str] = None
    status: SatelliteStatus = SatelliteStatus.UNKNOWN


class SatelliteWithTLE(SatelliteInfo):
    tle: Optional[TLEEntry] = None
    transmitters: List[Transmitter] = Field(default_factory=list)


class OutcomeStatus(str, Enum):
    OK = "ok"
    STALE = "stale"
    FAILED = "failed"


class FetchOutcome(BaseModel):
    """Result of a store fetch.

    ``cached`` is True when ``data`` came from the cache (fresh hit or stale
    fallback). ``error`` is set on STALE and FAILED outcomes.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    status: OutcomeStatus
    data: Any = None
    cached: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK
