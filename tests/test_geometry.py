"""
Unit Tests for the Geometry Provider and Sun Model

Run with:
    python -m pytest tests/test_geometry.py -v
"""

import math
import unittest
from unittest.mock import MagicMock, patch
from datetime import datetime, timedelta, timezone

import numpy as np

from fakes import ISS_LINE1, ISS_LINE2, T0, iss_elements
from pass_service.geometry import (
    SGP4GeometryProvider,
    azimuth_to_cardinal,
    ecef_to_geodetic,
    ecef_to_look_angles,
    geodetic_to_ecef,
    gmst,
)
from pass_service.models import ObserverLocation, OrbitalElements
from pass_service.sun import (
    is_elements_sunlit,
    is_satellite_sunlit,
    julian_date,
    sun_position,
    sun_position_eci,
    twilight_type,
)


class TestTransforms(unittest.TestCase):
    """Frame conversions."""

    def test_gmst_range(self):
        for hours in range(0, 48, 5):
            theta = gmst(T0 + timedelta(hours=hours))
            self.assertGreaterEqual(theta, 0.0)
            self.assertLess(theta, 2 * math.pi)

    def test_gmst_advances_one_sidereal_day(self):
        # One solar day is ~361 degrees of Earth rotation
        delta = (gmst(T0 + timedelta(days=1)) - gmst(T0)) % (2 * math.pi)
        self.assertAlmostEqual(math.degrees(delta), 0.9856, places=2)

    def test_geodetic_round_trip(self):
        for lat, lon, alt in [(38.72, -9.14, 0.1), (-33.9, 151.2, 0.0), (0.0, 0.0, 420.0), (89.0, 45.0, 10.0)]:
            with self.subTest(lat=lat, lon=lon):
                back = ecef_to_geodetic(geodetic_to_ecef(lat, lon, alt))
                self.assertAlmostEqual(back[0], lat, places=6)
                self.assertAlmostEqual(back[1], lon, places=6)
                self.assertAlmostEqual(back[2], alt, places=4)

    def test_geodetic_round_trip_all_latitudes(self):
        worst = 0.0
        for lat in range(-89, 90):
            for alt in (0.0, 420.0, 800.0):
                back_lat, _, back_alt = ecef_to_geodetic(geodetic_to_ecef(float(lat), 30.0, alt))
                worst = max(worst, abs(back_lat - lat))
                self.assertAlmostEqual(back_alt, alt, places=6)
        self.assertLess(worst, 1e-9)

    def test_zenith_look_angles(self):
        observer = ObserverLocation(latitude=10.0, longitude=20.0)
        r = geodetic_to_ecef(10.0, 20.0, 500.0)
        angles = ecef_to_look_angles(r, np.zeros(3), observer)
        self.assertAlmostEqual(angles.elevation, 90.0, places=3)
        self.assertAlmostEqual(angles.range, 500.0, places=3)
        self.assertAlmostEqual(angles.range_rate, 0.0)

    def test_receding_range_rate_positive(self):
        observer = ObserverLocation(latitude=0.0, longitude=0.0)
        r = geodetic_to_ecef(0.0, 0.0, 500.0)
        angles = ecef_to_look_angles(r, np.array([1.0, 0.0, 0.0]), observer)
        self.assertAlmostEqual(angles.range_rate, 1.0, places=6)

    def test_cardinal_points(self):
        self.assertEqual(azimuth_to_cardinal(0.0), "N")
        self.assertEqual(azimuth_to_cardinal(359.0), "N")
        self.assertEqual(azimuth_to_cardinal(90.0), "E")
        self.assertEqual(azimuth_to_cardinal(200.0), "SSW")
        self.assertEqual(azimuth_to_cardinal(-45.0), "NW")


class TestSGP4GeometryProvider(unittest.TestCase):

    def setUp(self):
        self.geometry = SGP4GeometryProvider()
        self.elements = iss_elements()
        self.epoch = self.elements.epoch

    def test_propagate_at_epoch(self):
        r, v = self.geometry.propagate(self.elements, self.epoch)
        altitude = np.linalg.norm(r) - 6378.137
        self.assertGreater(altitude, 350)
        self.assertLess(altitude, 450)
        self.assertAlmostEqual(float(np.linalg.norm(v)), 7.66, delta=0.1)

    def test_position(self):
        position = self.geometry.position(self.elements, self.epoch + timedelta(minutes=30))
        self.assertLessEqual(abs(position.latitude), 51.7)
        self.assertGreater(position.altitude, 350)
        self.assertLess(position.altitude, 450)

    def test_sample_matches_look_angles(self):
        observer = ObserverLocation(latitude=38.72, longitude=-9.14)
        when = self.epoch + timedelta(hours=2)
        moment = self.geometry.sample(self.elements, observer, when)
        angles = self.geometry.look_angles(self.elements, observer, when)
        self.assertEqual(moment.timestamp, when)
        self.assertAlmostEqual(moment.look_angles.elevation, angles.elevation)
        self.assertAlmostEqual(moment.look_angles.azimuth, angles.azimuth)
        self.assertGreaterEqual(angles.elevation, -90.0)
        self.assertLessEqual(angles.elevation, 90.0)

    @patch("pass_service.geometry.Satrec")
    def test_unparseable_elements(self, satrec_cls):
        satrec_cls.twoline2rv.side_effect = ValueError("bad TLE")
        observer = ObserverLocation(latitude=0.0, longitude=0.0)
        self.assertIsNone(self.geometry.propagate(self.elements, T0))
        self.assertIsNone(self.geometry.sample(self.elements, observer, T0))

    def test_sgp4_error_code_returns_none(self):
        satellite = MagicMock()
        satellite.sgp4.return_value = (6, (0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        self.geometry._satrecs[(ISS_LINE1, ISS_LINE2)] = satellite
        self.assertIsNone(self.geometry.propagate(self.elements, T0))

    def test_non_finite_state_returns_none(self):
        satellite = MagicMock()
        satellite.sgp4.return_value = (0, (float("nan"), 0.0, 0.0), (0.0, 0.0, 0.0))
        self.geometry._satrecs[(ISS_LINE1, ISS_LINE2)] = satellite
        self.assertIsNone(self.geometry.propagate(self.elements, T0))

    def test_satrec_memoised(self):
        self.geometry.propagate(self.elements, self.epoch)
        other = OrbitalElements(line1=ISS_LINE1, line2=ISS_LINE2, fetched_at=T0 + timedelta(days=1))
        self.geometry.propagate(other, self.epoch)
        self.assertEqual(len(self.geometry._satrecs), 1)


class TestSunModel(unittest.TestCase):

    def test_julian_date(self):
        self.assertAlmostEqual(julian_date(datetime(2000, 1, 1, 12, tzinfo=timezone.utc)), 2451545.0)
        self.assertAlmostEqual(julian_date(datetime(1970, 1, 1)), 2440587.5)

    def test_noon_and_midnight(self):
        observer = ObserverLocation(latitude=0.0, longitude=0.0)
        noon = sun_position(observer, datetime(2023, 9, 23, 12, tzinfo=timezone.utc))
        midnight = sun_position(observer, datetime(2023, 9, 23, 0, tzinfo=timezone.utc))
        self.assertGreater(noon.elevation, 85.0)
        self.assertLess(midnight.elevation, -85.0)

    def test_morning_east_evening_west(self):
        london = ObserverLocation(latitude=51.5, longitude=0.0)
        morning = sun_position(london, datetime(2023, 6, 21, 6, tzinfo=timezone.utc))
        evening = sun_position(london, datetime(2023, 6, 21, 18, tzinfo=timezone.utc))
        self.assertGreater(morning.azimuth, 45.0)
        self.assertLess(morning.azimuth, 135.0)
        self.assertGreater(evening.azimuth, 225.0)
        self.assertLess(evening.azimuth, 315.0)

    def test_twilight_type(self):
        self.assertEqual(twilight_type(10.0), "day")
        self.assertEqual(twilight_type(-3.0), "civil")
        self.assertEqual(twilight_type(-6.0), "nautical")
        self.assertEqual(twilight_type(-15.0), "astronomical")
        self.assertEqual(twilight_type(-20.0), "night")

    def test_shadow_cylinder(self):
        when = datetime(2023, 9, 16, tzinfo=timezone.utc)
        toward_sun = sun_position_eci(when)
        unit = toward_sun / np.linalg.norm(toward_sun)

        self.assertTrue(is_satellite_sunlit(unit * 6800.0, when))
        self.assertFalse(is_satellite_sunlit(-unit * 6800.0, when))
        # Above the shadow altitude limit
        self.assertTrue(is_satellite_sunlit(-unit * 42164.0, when))

    def test_failed_propagation_not_sunlit(self):
        geometry = MagicMock()
        geometry.propagate.return_value = None
        self.assertFalse(is_elements_sunlit(geometry, iss_elements(), T0))


if __name__ == "__main__":
    unittest.main()
