"""
Visibility Evaluator

A satellite is visible to the naked eye when three conditions hold at once:
the observer is in darkness (Sun below civil twilight), the satellite is lit
by the Sun, and the satellite is above the horizon.
"""

import logging
from datetime import datetime
from typing import List, Optional

from config import CIVIL_TWILIGHT_DEG
from pass_service.models import (
    ObserverLocation,
    OrbitalElements,
    SatellitePass,
    VisibilityConditions,
    VisibilityWindow,
)
from pass_service.sun import is_elements_sunlit, sun_elevation

logger = logging.getLogger(__name__)


class VisibilityEvaluator:
    """
    Optical visibility of passes.

    Args:
        geometry: Provider with a ``propagate`` method, used for the shadow test
    """

    def __init__(self, geometry):
        self.geometry = geometry

    def calculate_visibility(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        when: datetime,
        satellite_elevation: float,
    ) -> VisibilityConditions:
        observer_in_darkness = sun_elevation(observer, when) < CIVIL_TWILIGHT_DEG
        satellite_sunlit = is_elements_sunlit(self.geometry, elements, when)
        satellite_above_horizon = satellite_elevation > 0

        return VisibilityConditions(
            observer_in_darkness=observer_in_darkness,
            satellite_sunlit=satellite_sunlit,
            satellite_above_horizon=satellite_above_horizon,
            is_visible=observer_in_darkness and satellite_sunlit and satellite_above_horizon,
        )

    def _is_visible_at(self, elements, observer, when, elevation) -> bool:
        return self.calculate_visibility(elements, observer, when, elevation).is_visible

    def is_pass_visible(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        pass_: SatellitePass,
    ) -> bool:
        """
        True if any checkpoint of the pass is visible.

        Checkpoints are start, maximum elevation and end, plus the middle
        trajectory sample for trajectories longer than six samples.
        """
        trajectory = pass_.trajectory
        checkpoints = [
            (pass_.start_time, trajectory[0].look_angles.elevation),
            (pass_.max_elevation_time, pass_.max_elevation),
            (pass_.end_time, trajectory[-1].look_angles.elevation),
        ]

        if len(trajectory) > 6:
            middle = trajectory[len(trajectory) // 2]
            checkpoints.append((middle.timestamp, middle.look_angles.elevation))

        return any(
            self._is_visible_at(elements, observer, when, elevation)
            for when, elevation in checkpoints
        )

    def get_visibility_windows(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        pass_: SatellitePass,
    ) -> List[VisibilityWindow]:
        """Contiguous visible spans over the trajectory samples."""
        windows: List[VisibilityWindow] = []
        window_start: Optional[datetime] = None

        for moment in pass_.trajectory:
            visible = self._is_visible_at(elements, observer, moment.timestamp, moment.look_angles.elevation)

            if visible and window_start is None:
                window_start = moment.timestamp
            elif not visible and window_start is not None:
                windows.append(VisibilityWindow(
                    start=window_start,
                    end=moment.timestamp,
                    duration=(moment.timestamp - window_start).total_seconds(),
                ))
                window_start = None

        # Visible until the satellite sets
        if window_start is not None:
            windows.append(VisibilityWindow(
                start=window_start,
                end=pass_.end_time,
                duration=(pass_.end_time - window_start).total_seconds(),
            ))

        return windows

    def get_visible_duration(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        pass_: SatellitePass,
    ) -> float:
        return sum(w.duration for w in self.get_visibility_windows(elements, observer, pass_))

    def get_best_viewing_time(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        pass_: SatellitePass,
    ) -> datetime:
        """Highest visible sample; the maximum elevation time if none is visible."""
        best_time = pass_.max_elevation_time
        best_score = 0.0

        for moment in pass_.trajectory:
            elevation = moment.look_angles.elevation
            if elevation > best_score and self._is_visible_at(elements, observer, moment.timestamp, elevation):
                best_score = elevation
                best_time = moment.timestamp

        return best_time

    def enrich_passes(
        self,
        elements: OrbitalElements,
        observer: ObserverLocation,
        passes: List[SatellitePass],
    ) -> List[SatellitePass]:
        """Copies of the passes with visibility fields filled in."""
        enriched = []
        for pass_ in passes:
            visible = self.is_pass_visible(elements, observer, pass_)
            update = {"is_visible": visible}
            if visible:
                update["visible_duration"] = self.get_visible_duration(elements, observer, pass_)
                update["best_viewing_time"] = self.get_best_viewing_time(elements, observer, pass_)
            else:
                update["visible_duration"] = 0.0
                update["best_viewing_time"] = pass_.max_elevation_time
            enriched.append(pass_.model_copy(update=update))

        logger.debug(f"{sum(p.is_visible for p in enriched)} of {len(enriched)} passes visible")
        return enriched


def filter_visible_passes(passes: List[SatellitePass]) -> List[SatellitePass]:
    return [p for p in passes if p.is_visible]
