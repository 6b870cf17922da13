"""
Pass Predictor

Finds satellite passes over an observer by stepping through time on a fixed
grid and watching the elevation cross the horizon:

    rising edge  (elevation <= 0 -> > 0): start collecting samples
    falling edge (elevation > 0 -> <= 0): close the pass

Samples where propagation fails are skipped without changing the horizon
state. A pass still in progress at the end of the window is closed with the
samples collected so far. A pass that rises and sets between two grid points
is not detected; the grid step bounds the resolution.

Long windows can be scanned in parallel: the grid is split into contiguous
chunks, each chunk is scanned independently, and passes that straddle a chunk
boundary are stitched back together before filtering.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from pass_service.models import (
    LookAngles,
    ObserverLocation,
    OrbitalElements,
    PassFilters,
    PassMoment,
    SatellitePass,
)

logger = logging.getLogger(__name__)

DEFAULT_STEP_SECONDS = 60
DEFAULT_TRAJECTORY_STEP_SECONDS = 10


class PredictionCancelled(RuntimeError):
    """Raised when a scan observes a cancelled token."""


class CancellationToken:
    """Cooperative cancellation flag shared between a caller and a scan."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PredictionCancelled("Pass prediction cancelled")


class ChunkScan:
    """
    Horizon runs found in one chunk of the time grid.

    Attributes:
        runs: Consecutive above-horizon sample runs, in time order
        starts_open: First valid sample was above the horizon, so runs[0]
            may continue a pass from the previous chunk
        ends_open: Last valid sample was above the horizon, so runs[-1]
            may continue into the next chunk
        has_samples: At least one step propagated successfully
    """

    def __init__(self):
        self.runs: List[List[PassMoment]] = []
        self.starts_open = False
        self.ends_open = False
        self.has_samples = False


def build_pass(trajectory: List[PassMoment]) -> SatellitePass:
    """
    Summarize a trajectory into a pass.

    Args:
        trajectory: Above-horizon samples in time order

    Returns:
        SatellitePass with start/end at the first/last sample

    Raises:
        ValueError: If the trajectory is empty
    """
    if not trajectory:
        raise ValueError("Cannot build pass with empty trajectory")

    max_index = 0
    max_elevation = trajectory[0].look_angles.elevation
    for index, moment in enumerate(trajectory):
        if moment.look_angles.elevation > max_elevation:
            max_elevation = moment.look_angles.elevation
            max_index = index

    start = trajectory[0]
    end = trajectory[-1]
    peak = trajectory[max_index]

    return SatellitePass(
        start_time=start.timestamp,
        end_time=end.timestamp,
        max_elevation=max_elevation,
        max_elevation_time=peak.timestamp,
        start_azimuth=start.look_angles.azimuth,
        max_azimuth=peak.look_angles.azimuth,
        end_azimuth=end.look_angles.azimuth,
        duration=(end.timestamp - start.timestamp).total_seconds(),
        trajectory=list(trajectory),
    )


def stitch_chunks(chunks: List[ChunkScan]) -> List[List[PassMoment]]:
    """
    Join per-chunk runs into complete pass trajectories.

    Chunks without samples are transparent: horizon state carries across
    them exactly as it does across failed steps in a single scan.
    """
    trajectories: List[List[PassMoment]] = []
    open_run: Optional[List[PassMoment]] = None

    for chunk in chunks:
        if not chunk.has_samples:
            continue

        runs = list(chunk.runs)

        if open_run is not None:
            if chunk.starts_open:
                open_run = open_run + runs.pop(0)
                if chunk.ends_open and not runs:
                    continue
            trajectories.append(open_run)
            open_run = None

        if chunk.ends_open and runs:
            open_run = runs.pop()
        trajectories.extend(runs)

    # Still above the horizon at the end of the window
    if open_run is not None:
        trajectories.append(open_run)

    return trajectories


def apply_filters(passes: List[SatellitePass], filters: Optional[PassFilters]) -> List[SatellitePass]:
    """Minimum elevation filter, then head truncation to max_results."""
    if filters is None:
        return passes

    accepted = [p for p in passes if p.max_elevation >= filters.min_elevation]

    if filters.max_results is not None:
        accepted = accepted[:filters.max_results]

    return accepted


def format_pass_duration(duration_seconds: float) -> str:
    """Format seconds as ``"5m 12s"``."""
    minutes = int(duration_seconds // 60)
    seconds = int(duration_seconds % 60)
    return f"{minutes}m {seconds}s"


def pass_quality_score(max_elevation: float) -> int:
    """0-100 score, 90 degrees maximum elevation scores 100."""
    return round(max_elevation / 90.0 * 100)


def pass_quality(max_elevation: float) -> str:
    if max_elevation >= 60:
        return "excellent"
    if max_elevation >= 40:
        return "good"
    if max_elevation >= 20:
        return "fair"
    return "poor"


class PassPredictor:
    """
    Horizon-crossing pass detector and trajectory refiner.

    Args:
        geometry: Provider with ``sample`` and ``look_angles`` methods
        step_seconds: Coarse scan step
        trajectory_step_seconds: Resolution of refined trajectories
    """

    def __init__(
        self,
        geometry,
        step_seconds: int = DEFAULT_STEP_SECONDS,
        trajectory_step_seconds: int = DEFAULT_TRAJECTORY_STEP_SECONDS,
    ):
        if step_seconds <= 0 or trajectory_step_seconds <= 0:
            raise ValueError("Step sizes must be positive")
        self.geometry = geometry
        self.step_seconds = step_seconds
        self.trajectory_step_seconds = trajectory_step_seconds

    def _step_count(self, duration_days: float) -> int:
        """Index of the last grid point inside the window."""
        return int(duration_days * 86400 // self.step_seconds)

    def _grid_time(self, start_time: datetime, index: int) -> datetime:
        return start_time + timedelta(seconds=index * self.step_seconds)

    def scan_chunk(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start_time: datetime,
        first_index: int,
        last_index: int,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ChunkScan:
        """Scan grid points first_index..last_index (inclusive)."""
        chunk = ChunkScan()
        current_run: Optional[List[PassMoment]] = None
        was_above = False

        for index in range(first_index, last_index + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            moment = self.geometry.sample(elements, observer, self._grid_time(start_time, index))
            if moment is None:
                continue

            is_above = moment.look_angles.elevation > 0

            if not chunk.has_samples:
                chunk.has_samples = True
                chunk.starts_open = is_above

            if is_above:
                if current_run is None:
                    current_run = []
                    chunk.runs.append(current_run)
                current_run.append(moment)
            elif was_above:
                current_run = None

            was_above = is_above

        chunk.ends_open = chunk.has_samples and was_above
        return chunk

    def predict(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start_time: datetime,
        duration_days: float = 7,
        filters: Optional[PassFilters] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SatellitePass]:
        """
        Predict passes in a time window.

        Args:
            elements: Orbital elements of the satellite
            observer: Ground location
            start_time: Window start (UTC)
            duration_days: Window length in days
            filters: Minimum elevation and result limit
            cancel_token: Checked once per grid step

        Returns:
            Passes in chronological order

        Raises:
            PredictionCancelled: If the token is cancelled mid-scan
        """
        last_index = self._step_count(duration_days)
        chunk = self.scan_chunk(elements, observer, start_time, 0, last_index, cancel_token)
        passes = [build_pass(trajectory) for trajectory in stitch_chunks([chunk])]

        logger.debug(f"Found {len(passes)} passes for {elements.norad_id} before filtering")
        return apply_filters(passes, filters)

    def predict_parallel(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        start_time: datetime,
        duration_days: float = 7,
        filters: Optional[PassFilters] = None,
        workers: int = 4,
        executor: Optional[ThreadPoolExecutor] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> List[SatellitePass]:
        """
        Same result as ``predict``, with the grid scanned in chunks on a pool.

        Chunk boundaries fall on grid points, so every chunk samples exactly
        the instants a sequential scan would.
        """
        last_index = self._step_count(duration_days)
        bounds = self._chunk_bounds(last_index, max(1, workers))

        owns_executor = executor is None
        pool = executor or ThreadPoolExecutor(max_workers=len(bounds))
        try:
            futures = [
                pool.submit(self.scan_chunk, elements, observer, start_time, first, last, cancel_token)
                for first, last in bounds
            ]
            chunks = [future.result() for future in futures]
        finally:
            if owns_executor:
                pool.shutdown(wait=True)

        passes = [build_pass(trajectory) for trajectory in stitch_chunks(chunks)]
        return apply_filters(passes, filters)

    @staticmethod
    def _chunk_bounds(last_index: int, workers: int) -> List[Tuple[int, int]]:
        total = last_index + 1
        size = max(1, -(-total // workers))
        return [
            (first, min(first + size - 1, last_index))
            for first in range(0, total, size)
        ]

    def refine(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        pass_: SatellitePass,
    ) -> SatellitePass:
        """
        Resample a pass trajectory at trajectory resolution.

        Only ``trajectory`` changes; when no refined sample propagates the
        pass is returned unchanged.
        """
        refined: List[PassMoment] = []
        step = timedelta(seconds=self.trajectory_step_seconds)
        current = pass_.start_time

        while current <= pass_.end_time:
            moment = self.geometry.sample(elements, observer, current)
            if moment is not None:
                refined.append(moment)
            current += step

        if not refined or refined[-1].timestamp < pass_.end_time:
            moment = self.geometry.sample(elements, observer, pass_.end_time)
            if moment is not None:
                refined.append(moment)

        if not refined:
            logger.warning(f"Could not refine pass starting {pass_.start_time.isoformat()}")
            return pass_

        return pass_.model_copy(update={"trajectory": refined})

    def get_next_pass(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Optional[SatellitePass]:
        """First pass within the next 24 hours."""
        now = now or datetime.now(timezone.utc)
        passes = self.predict(elements, observer, now, duration_days=1)
        return passes[0] if passes else None

    def is_currently_overhead(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Tuple[bool, Optional[LookAngles]]:
        now = now or datetime.now(timezone.utc)
        angles = self.geometry.look_angles(elements, observer, now)
        return (angles is not None and angles.elevation > 0), angles

    def get_time_until_next_pass(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        now: Optional[datetime] = None,
    ) -> Optional[timedelta]:
        """Time until the next pass rises; None if none or already in progress."""
        now = now or datetime.now(timezone.utc)
        next_pass = self.get_next_pass(elements, observer, now)
        if next_pass is None:
            return None
        remaining = next_pass.start_time - now
        return remaining if remaining > timedelta(0) else None
