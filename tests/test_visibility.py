"""
Unit Tests for the Visibility Evaluator

The Sun and shadow models are patched so each test controls exactly when
the observer is in darkness and when the satellite is lit.

Run with:
    python -m pytest tests/test_visibility.py -v
"""

import unittest
from datetime import timedelta
from unittest.mock import MagicMock, patch

from fakes import T0, iss_elements, make_pass
from pass_service.models import ObserverLocation
from pass_service.visibility import VisibilityEvaluator, filter_visible_passes

OBSERVER = ObserverLocation(latitude=38.72, longitude=-9.14)


def dark_from(seconds):
    """Sun elevation stub: daylight before T0 + seconds, night after."""
    return lambda observer, when: -20.0 if when >= T0 + timedelta(seconds=seconds) else 5.0


def dark_until(seconds):
    return lambda observer, when: -20.0 if when < T0 + timedelta(seconds=seconds) else 5.0


def dark_only_at(*seconds):
    instants = {T0 + timedelta(seconds=s) for s in seconds}
    return lambda observer, when: -20.0 if when in instants else 5.0


def always_lit(geometry, elements, when):
    return True


class VisibilityTestCase(unittest.TestCase):

    def setUp(self):
        self.elements = iss_elements()
        self.evaluator = VisibilityEvaluator(MagicMock())


@patch("pass_service.visibility.is_elements_sunlit", side_effect=always_lit)
class TestCalculateVisibility(VisibilityTestCase):

    @patch("pass_service.visibility.sun_elevation", return_value=-10.0)
    def test_all_conditions(self, _sun, _lit):
        conditions = self.evaluator.calculate_visibility(self.elements, OBSERVER, T0, 30.0)
        self.assertTrue(conditions.observer_in_darkness)
        self.assertTrue(conditions.satellite_sunlit)
        self.assertTrue(conditions.satellite_above_horizon)
        self.assertTrue(conditions.is_visible)

    @patch("pass_service.visibility.sun_elevation", return_value=-6.0)
    def test_civil_twilight_is_not_dark(self, _sun, _lit):
        conditions = self.evaluator.calculate_visibility(self.elements, OBSERVER, T0, 30.0)
        self.assertFalse(conditions.observer_in_darkness)
        self.assertFalse(conditions.is_visible)

    @patch("pass_service.visibility.sun_elevation", return_value=-10.0)
    def test_below_horizon(self, _sun, _lit):
        conditions = self.evaluator.calculate_visibility(self.elements, OBSERVER, T0, 0.0)
        self.assertFalse(conditions.satellite_above_horizon)
        self.assertFalse(conditions.is_visible)

    @patch("pass_service.visibility.sun_elevation", return_value=-10.0)
    def test_eclipsed(self, _sun, lit):
        lit.side_effect = None
        lit.return_value = False
        conditions = self.evaluator.calculate_visibility(self.elements, OBSERVER, T0, 30.0)
        self.assertFalse(conditions.satellite_sunlit)
        self.assertFalse(conditions.is_visible)

    def test_visible_is_conjunction(self, lit):
        for sun in (-10.0, 0.0):
            for sunlit in (True, False):
                for elevation in (20.0, -1.0):
                    lit.side_effect = None
                    lit.return_value = sunlit
                    with patch("pass_service.visibility.sun_elevation", return_value=sun):
                        conditions = self.evaluator.calculate_visibility(self.elements, OBSERVER, T0, elevation)
                    self.assertEqual(
                        conditions.is_visible,
                        conditions.observer_in_darkness
                        and conditions.satellite_sunlit
                        and conditions.satellite_above_horizon,
                    )


@patch("pass_service.visibility.is_elements_sunlit", side_effect=always_lit)
class TestPassVisibility(VisibilityTestCase):

    def test_checkpoints_only(self, _lit):
        # Visible only at t=60, which is none of start/max/end
        pass_ = make_pass([10.0, 20.0, 40.0, 20.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_only_at(60)):
            self.assertFalse(self.evaluator.is_pass_visible(self.elements, OBSERVER, pass_))

    def test_middle_checkpoint_for_long_trajectories(self, _lit):
        pass_ = make_pass([10.0, 60.0, 40.0, 30.0, 20.0, 15.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_only_at(180)):
            self.assertTrue(self.evaluator.is_pass_visible(self.elements, OBSERVER, pass_))

    def test_visible_at_end(self, _lit):
        pass_ = make_pass([10.0, 20.0, 40.0, 20.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_from(240)):
            self.assertTrue(self.evaluator.is_pass_visible(self.elements, OBSERVER, pass_))

    def test_window_closes_at_first_invisible_sample(self, _lit):
        pass_ = make_pass([10.0, 20.0, 40.0, 20.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_until(120)):
            windows = self.evaluator.get_visibility_windows(self.elements, OBSERVER, pass_)

        self.assertEqual(len(windows), 1)
        self.assertEqual(windows[0].start, T0)
        self.assertEqual(windows[0].end, T0 + timedelta(seconds=120))
        self.assertEqual(windows[0].duration, 120)

    def test_window_open_until_pass_end(self, _lit):
        pass_ = make_pass([10.0, 20.0, 40.0, 20.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_from(120)):
            windows = self.evaluator.get_visibility_windows(self.elements, OBSERVER, pass_)
            duration = self.evaluator.get_visible_duration(self.elements, OBSERVER, pass_)

        self.assertEqual(len(windows), 1)
        self.assertEqual(windows[0].end, pass_.end_time)
        self.assertEqual(duration, 120)

    def test_windows_within_pass(self, lit):
        # Satellite flickers in and out of shadow
        shadowed = {T0 + timedelta(seconds=s) for s in (120, 300)}
        lit.side_effect = lambda geometry, elements, when: when not in shadowed
        pass_ = make_pass([5.0, 15.0, 25.0, 35.0, 45.0, 35.0, 25.0, 15.0])

        with patch("pass_service.visibility.sun_elevation", return_value=-20.0):
            windows = self.evaluator.get_visibility_windows(self.elements, OBSERVER, pass_)
            duration = self.evaluator.get_visible_duration(self.elements, OBSERVER, pass_)

        self.assertEqual(len(windows), 3)
        for window in windows:
            self.assertGreaterEqual(window.start, pass_.start_time)
            self.assertLessEqual(window.end, pass_.end_time)
            self.assertLessEqual(window.start, window.end)
        self.assertEqual(duration, sum(w.duration for w in windows))
        self.assertLessEqual(duration, pass_.duration)

    def test_best_viewing_time(self, _lit):
        pass_ = make_pass([10.0, 30.0, 50.0, 30.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", side_effect=dark_from(180)):
            best = self.evaluator.get_best_viewing_time(self.elements, OBSERVER, pass_)
        self.assertEqual(best, T0 + timedelta(seconds=180))

    def test_best_viewing_time_defaults_to_max(self, _lit):
        pass_ = make_pass([10.0, 30.0, 50.0, 30.0, 10.0])
        with patch("pass_service.visibility.sun_elevation", return_value=10.0):
            best = self.evaluator.get_best_viewing_time(self.elements, OBSERVER, pass_)
        self.assertEqual(best, pass_.max_elevation_time)


@patch("pass_service.visibility.is_elements_sunlit", side_effect=always_lit)
class TestEnrichPasses(VisibilityTestCase):

    def test_enrich(self, _lit):
        night_pass = make_pass([10.0, 30.0, 50.0, 30.0, 10.0])
        day_pass = make_pass([10.0, 30.0, 10.0], start=T0 + timedelta(hours=6))

        sun = dark_until(3600)
        with patch("pass_service.visibility.sun_elevation", side_effect=sun):
            enriched = self.evaluator.enrich_passes(self.elements, OBSERVER, [night_pass, day_pass])

        self.assertTrue(enriched[0].is_visible)
        self.assertEqual(enriched[0].visible_duration, 240)
        self.assertEqual(enriched[0].best_viewing_time, T0 + timedelta(seconds=120))

        self.assertFalse(enriched[1].is_visible)
        self.assertEqual(enriched[1].visible_duration, 0.0)
        self.assertEqual(enriched[1].best_viewing_time, day_pass.max_elevation_time)

        # Inputs are left untouched
        self.assertFalse(night_pass.is_visible)
        self.assertIsNone(night_pass.visible_duration)

        self.assertEqual(filter_visible_passes(enriched), [enriched[0]])


if __name__ == "__main__":
    unittest.main()
