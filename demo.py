"""
Satellite Pass Prediction Demonstration

This script demonstrates the key capabilities of the pass service:
- TLE fetching with cache fallback (or the bundled ISS TLE offline)
- Pass prediction over an observer location
- Optical visibility and pass quality
- Doppler shift across a pass

Usage:
    python demo.py [--lat LAT --lon LON | --qth LOCATOR] [--norad ID]
                   [--days N] [--min-elevation DEG] [--offline] [--verbose]

Arguments:
    --offline: Use the bundled ISS TLE instead of fetching from CelesTrak
    --verbose: Enable debug logging
"""

import argparse
import logging
import sys
from datetime import datetime, timezone
from typing import List

from config import FALLBACK_ISS_TLE, PassServiceConfig
from logging_config import configure_logging, get_logger
from pass_service.doppler import doppler_for_pass, format_shift, parse_frequency_mhz
from pass_service.geometry import SGP4GeometryProvider, azimuth_to_cardinal
from pass_service.metadata import get_curated_satellite
from pass_service.models import ObserverLocation, OrbitalElements, PassFilters, SatellitePass
from pass_service.pass_predictor import PassPredictor, format_pass_duration, pass_quality
from pass_service.qth_locator import observer_from_qth
from pass_service.visibility import VisibilityEvaluator

logger = get_logger(__name__)

# Lisbon
DEFAULT_LATITUDE = 38.72
DEFAULT_LONGITUDE = -9.14


def predict_offline(
    observer: ObserverLocation, days: float, filters: PassFilters
) -> List[SatellitePass]:
    """
    Predict ISS passes from the bundled TLE, without any network access.

    Parameters
    ----------
    observer : ObserverLocation
        Ground location
    days : float
        Prediction window in days
    filters : PassFilters
        Pass filters

    Returns
    -------
    list of SatellitePass
        Refined passes with visibility fields set
    """
    elements = OrbitalElements(
        line1=FALLBACK_ISS_TLE["line1"],
        line2=FALLBACK_ISS_TLE["line2"],
        name=FALLBACK_ISS_TLE["name"],
        fetched_at=datetime.now(timezone.utc),
    )
    logger.warning(f"Offline mode: TLE epoch is {elements.age_days():.1f} days old")

    geometry = SGP4GeometryProvider()
    predictor = PassPredictor(geometry)
    evaluator = VisibilityEvaluator(geometry)

    # Start at the TLE epoch so the bundled elements stay meaningful
    passes = predictor.predict(elements, observer, elements.epoch, days, filters)
    passes = [predictor.refine(elements, observer, p) for p in passes]
    return evaluator.enrich_passes(elements, observer, passes)


def report_passes(passes: List[SatellitePass], downlink_mhz=None) -> None:
    """Log one line per pass, plus the Doppler range when a downlink is known."""
    if not passes:
        logger.info("No passes found in the prediction window")
        return

    for index, pass_ in enumerate(passes, start=1):
        logger.info(
            f"#{index:2d} {pass_.start_time:%Y-%m-%d %H:%M:%S}Z "
            f"{azimuth_to_cardinal(pass_.start_azimuth):>3} -> "
            f"{azimuth_to_cardinal(pass_.max_azimuth):>3} ({pass_.max_elevation:5.1f} deg) -> "
            f"{azimuth_to_cardinal(pass_.end_azimuth):>3}  "
            f"{format_pass_duration(pass_.duration):>7}  "
            f"{pass_quality(pass_.max_elevation):<9} "
            f"{'VISIBLE' if pass_.is_visible else ''}"
        )

        if downlink_mhz:
            shifts = [s.downlink_shift for s in doppler_for_pass(pass_.trajectory, downlink_mhz)]
            if shifts:
                logger.info(
                    f"    Doppler on {downlink_mhz:.3f} MHz: "
                    f"{format_shift(max(shifts))} .. {format_shift(min(shifts))}"
                )


def main() -> None:
    """Main demonstration entry point."""
    parser = argparse.ArgumentParser(description="Satellite Pass Prediction Demonstration")
    parser.add_argument("--lat", type=float, default=DEFAULT_LATITUDE, help="Observer latitude (deg)")
    parser.add_argument("--lon", type=float, default=DEFAULT_LONGITUDE, help="Observer longitude (deg)")
    parser.add_argument("--alt", type=float, default=0.0, help="Observer altitude (m)")
    parser.add_argument("--qth", help="Maidenhead locator, overrides --lat/--lon")
    parser.add_argument("--norad", default=str(FALLBACK_ISS_TLE["norad_id"]), help="Catalog number")
    parser.add_argument("--days", type=float, default=2.0, help="Prediction window (days)")
    parser.add_argument("--min-elevation", type=float, default=10.0, help="Minimum max elevation (deg)")
    parser.add_argument("--visible-only", action="store_true", help="Only optically visible passes")
    parser.add_argument("--offline", action="store_true", help="Use the bundled ISS TLE")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    if args.verbose:
        configure_logging(level=logging.DEBUG)

    if args.qth:
        observer = observer_from_qth(args.qth, altitude=args.alt)
        if observer is None:
            logger.error(f"Invalid Maidenhead locator: {args.qth}")
            sys.exit(2)
    else:
        observer = ObserverLocation(latitude=args.lat, longitude=args.lon, altitude=args.alt)

    filters = PassFilters(min_elevation=args.min_elevation, visible_only=args.visible_only)

    logger.info("Satellite Pass Prediction Demonstration")
    logger.info("=" * 60)
    logger.info(f"Observer: {observer.latitude:.4f}, {observer.longitude:.4f} ({observer.altitude:.0f} m)")

    if args.offline:
        passes = predict_offline(observer, args.days, filters)
        if args.visible_only:
            passes = [p for p in passes if p.is_visible]
    else:
        from pass_service.service import SatellitePassService

        service = SatellitePassService(PassServiceConfig())
        result = service.predict_passes(args.norad, observer, days=args.days, filters=filters)
        if result.error:
            logger.warning(result.error)
        passes = result.passes

    curated = get_curated_satellite(args.norad)
    downlink = parse_frequency_mhz(curated.downlink) if curated is not None else None

    logger.info("")
    report_passes(passes, downlink)

    logger.info("=" * 60)
    logger.info("Demonstration complete")


if __name__ == "__main__":
    main()
