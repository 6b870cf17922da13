"""
Pass Prediction Validation Suite

Cross-checks the SGP4 geometry and the pass scan against Skyfield for the
ISS over Lisbon, one day from the element epoch:

1. Topocentric look angles at sampled instants
2. Rise and culmination events against the predicted passes
3. End-to-end prediction through the service facade

Skyfield uses its own TEME to ITRS reduction (with polar motion and nutation
terms we ignore), so agreement is expected to a fraction of a degree rather
than exactly.

Run with:
    python -m pytest tests/test_validation_suite.py -v
"""

import unittest
from datetime import timedelta

import numpy as np
from skyfield.api import EarthSatellite, load, wgs84

from fakes import ISS_LINE1, ISS_LINE2, ISS_TLE_TEXT, T0, FixedClock, StubHttp, iss_elements, make_cache, make_config
from pass_service.geometry import SGP4GeometryProvider
from pass_service.models import ObserverLocation
from pass_service.pass_predictor import PassPredictor
from pass_service.service import SatellitePassService

LISBON = ObserverLocation(latitude=38.72, longitude=-9.14, altitude=0.0)

ANGLE_TOLERANCE_DEG = 0.5
RANGE_TOLERANCE_KM = 5.0
# Grid step plus model difference
EVENT_TOLERANCE_S = 90


class SkyfieldCrossValidation(unittest.TestCase):
    """Look angles and pass events against an independent implementation"""

    @classmethod
    def setUpClass(cls):
        cls.ts = load.timescale()
        cls.satellite = EarthSatellite(ISS_LINE1, ISS_LINE2, "ISS (ZARYA)", cls.ts)
        cls.topos = wgs84.latlon(LISBON.latitude, LISBON.longitude, elevation_m=LISBON.altitude)

        cls.elements = iss_elements()
        cls.geometry = SGP4GeometryProvider()
        cls.passes = PassPredictor(cls.geometry).predict(cls.elements, LISBON, T0, duration_days=1)

    def _skyfield_look(self, when):
        alt, az, distance = (self.satellite - self.topos).at(self.ts.from_datetime(when)).altaz()
        return alt.degrees, az.degrees, distance.km

    def test_look_angles_every_ten_minutes(self):
        errors = []
        for minutes in range(0, 24 * 60, 10):
            when = T0 + timedelta(minutes=minutes)
            angles = self.geometry.look_angles(self.elements, LISBON, when)
            self.assertIsNotNone(angles)

            elevation, azimuth, distance = self._skyfield_look(when)
            azimuth_error = abs((angles.azimuth - azimuth + 180.0) % 360.0 - 180.0)
            errors.append((abs(angles.elevation - elevation), azimuth_error, abs(angles.range - distance)))

        errors = np.array(errors)
        self.assertLess(errors[:, 0].max(), ANGLE_TOLERANCE_DEG)
        self.assertLess(errors[:, 1].max(), ANGLE_TOLERANCE_DEG)
        self.assertLess(errors[:, 2].max(), RANGE_TOLERANCE_KM)

    def test_look_angles_during_passes(self):
        self.assertGreater(len(self.passes), 0)
        for pass_ in self.passes:
            for moment in pass_.trajectory:
                elevation, azimuth, _ = self._skyfield_look(moment.timestamp)
                self.assertAlmostEqual(moment.look_angles.elevation, elevation, delta=ANGLE_TOLERANCE_DEG)
                self.assertGreater(elevation, -ANGLE_TOLERANCE_DEG)

    def test_predicted_passes_follow_rise_events(self):
        times, events = self.satellite.find_events(
            self.topos,
            self.ts.from_datetime(T0 - timedelta(minutes=20)),
            self.ts.from_datetime(T0 + timedelta(days=1)),
            altitude_degrees=0.0,
        )
        rises = [t.utc_datetime() for t, event in zip(times, events) if event == 0]

        for pass_ in self.passes:
            if pass_.start_time == T0:
                continue
            lag = min(
                ((pass_.start_time - rise).total_seconds() for rise in rises if rise <= pass_.start_time),
                default=None,
            )
            self.assertIsNotNone(lag, f"No rise before pass at {pass_.start_time}")
            self.assertLess(lag, EVENT_TOLERANCE_S)

    def test_culminations_are_covered(self):
        times, events = self.satellite.find_events(
            self.topos,
            self.ts.from_datetime(T0),
            self.ts.from_datetime(T0 + timedelta(days=1)),
            altitude_degrees=0.0,
        )
        for t, event in zip(times, events):
            if event != 1:
                continue
            culmination = t.utc_datetime()
            elevation, _, _ = self._skyfield_look(culmination)
            if elevation < 5.0:
                continue

            containing = [p for p in self.passes if p.start_time <= culmination <= p.end_time]
            self.assertEqual(len(containing), 1, f"Culmination at {culmination} not covered")
            self.assertLessEqual(containing[0].max_elevation, elevation + ANGLE_TOLERANCE_DEG)
            self.assertLess(
                abs((containing[0].max_elevation_time - culmination).total_seconds()),
                EVENT_TOLERANCE_S,
            )


class ServiceEndToEnd(unittest.TestCase):
    """Full predict path with real propagation and a scripted TLE download"""

    def setUp(self):
        clock = FixedClock()
        self.http = StubHttp(ISS_TLE_TEXT)
        self.service = SatellitePassService(
            config=make_config(),
            cache=make_cache(clock),
            http=self.http,
            clock=clock,
        )

    def test_predict_passes(self):
        result = self.service.predict_passes("25544", LISBON, days=1)

        self.assertIsNone(result.error)
        self.assertFalse(result.cached)
        self.assertGreaterEqual(len(result.passes), 1)
        self.assertEqual(len(self.http.calls), 1)

        self.assertTrue(any(p.duration > 0 and len(p.trajectory) >= 2 for p in result.passes))

        for pass_ in result.passes:
            self.assertGreaterEqual(pass_.duration, 0)
            self.assertGreater(pass_.max_elevation, 0)
            self.assertLessEqual(pass_.start_time, pass_.max_elevation_time)
            self.assertLessEqual(pass_.max_elevation_time, pass_.end_time)
            self.assertIsNotNone(pass_.visible_duration)
            self.assertLessEqual(pass_.visible_duration, pass_.duration)
            self.assertIsNotNone(pass_.best_viewing_time)

            # Refined at the configured trajectory step
            steps = {
                (b.timestamp - a.timestamp).total_seconds()
                for a, b in zip(pass_.trajectory, pass_.trajectory[1:-1])
            }
            self.assertLessEqual(steps, {10.0})

    def test_second_prediction_uses_cache(self):
        self.service.predict_passes("25544", LISBON, days=1)
        result = self.service.predict_passes("25544", LISBON, days=1)
        self.assertTrue(result.cached)
        self.assertEqual(len(self.http.calls), 1)

    def test_parallel_scan_matches(self):
        sequential = self.service.predict_passes("25544", LISBON, days=1)
        self.service.config.PREDICTION_WORKERS = 4
        parallel = self.service.predict_passes("25544", LISBON, days=1)
        self.assertEqual(
            [p.start_time for p in parallel.passes],
            [p.start_time for p in sequential.passes],
        )


if __name__ == "__main__":
    unittest.main()
