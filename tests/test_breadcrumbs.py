"""Tests for the breadcrumb trail and travel bearing."""

import pytest

from pedalnav.breadcrumbs import BreadcrumbTracker
from pedalnav.config import CONFIG
from pedalnav.geo import angle_difference
from pedalnav.models import Coordinate


def build_tracker(**overrides):
    config = dict(CONFIG)
    config.update(overrides)
    return BreadcrumbTracker(config)


def test_short_displacement_reports_no_bearing(origin, move, make_fix):
    # Two fixes 6 m apart: kept by the spacing filter, too close for a bearing
    tracker = build_tracker()
    assert tracker.add_fix(make_fix(origin, 0))
    assert tracker.add_fix(make_fix(move(origin, north_m=6), 2))
    assert len(tracker) == 2
    assert tracker.travel_bearing() is None
    assert tracker.last_bearing is None


def test_riding_north_gives_a_north_bearing(origin, move, make_fix):
    tracker = build_tracker()
    for i in range(3):
        tracker.add_fix(make_fix(move(origin, north_m=20 * i), 2 * i))
    bearing = tracker.travel_bearing()
    assert bearing is not None
    assert abs(angle_difference(0.0, bearing)) < 1.0


def test_single_breadcrumb_has_no_bearing(origin, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    assert tracker.travel_bearing() is None


def test_jitter_is_filtered(origin, move, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    assert not tracker.add_fix(make_fix(move(origin, east_m=3), 1))
    assert len(tracker) == 1


def test_trail_is_capped(origin, move, make_fix):
    tracker = build_tracker()
    fixes = [make_fix(move(origin, north_m=10 * i), i) for i in range(8)]
    for fix in fixes:
        tracker.add_fix(fix)
    assert len(tracker) == CONFIG["breadcrumb_max_count"]
    assert tracker.breadcrumbs[0].coordinate == fixes[3].coordinate
    assert tracker.breadcrumbs[-1].coordinate == fixes[-1].coordinate


def test_old_breadcrumbs_are_purged(origin, move, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    tracker.add_fix(make_fix(move(origin, north_m=10), 5))
    tracker.add_fix(make_fix(move(origin, north_m=20), 30))
    assert len(tracker) == 1
    assert all(30 - b.timestamp <= CONFIG["breadcrumb_max_age"] for b in tracker.breadcrumbs)


def test_breadcrumb_at_the_age_limit_is_kept(origin, move, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    tracker.add_fix(make_fix(move(origin, north_m=10), 20))
    assert len(tracker) == 2


def test_bearing_is_smoothed_with_the_previous_one(make_fix):
    equator = Coordinate(0.0, 0.0)
    tracker = build_tracker()
    tracker.last_bearing = 80.0
    tracker.add_fix(make_fix(equator, 0))
    tracker.add_fix(make_fix(Coordinate(0.0, 0.0002), 2))  # ~22 m due east
    assert tracker.travel_bearing() == pytest.approx(0.7 * 90 + 0.3 * 80)


def test_bearings_across_the_seam_are_not_blended(make_fix):
    tracker = build_tracker()
    tracker.last_bearing = 300.0
    tracker.add_fix(make_fix(Coordinate(0.0, 0.0), 0))
    tracker.add_fix(make_fix(Coordinate(0.0, 0.0002), 2))
    assert tracker.travel_bearing() == pytest.approx(90.0)


def test_last_bearing_survives_a_thin_trail(origin, move, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    tracker.add_fix(make_fix(move(origin, north_m=20), 2))
    bearing = tracker.travel_bearing()
    tracker.add_fix(make_fix(move(origin, north_m=40), 60))  # purges the rest
    assert tracker.travel_bearing() is None
    assert tracker.last_bearing == bearing


@pytest.mark.parametrize("spacing", [5, 8, 25])
def test_consecutive_breadcrumbs_respect_spacing(origin, move, make_fix, spacing):
    tracker = build_tracker(breadcrumb_min_spacing=spacing)
    for i in range(20):
        tracker.add_fix(make_fix(move(origin, north_m=3 * i), i * 0.5))
    trail = tracker.breadcrumbs
    for a, b in zip(trail, trail[1:]):
        assert b.timestamp > a.timestamp
        assert (b.coordinate.latitude - a.coordinate.latitude) * 111195 >= spacing - 0.01


def test_clear(origin, move, make_fix):
    tracker = build_tracker()
    tracker.add_fix(make_fix(origin, 0))
    tracker.add_fix(make_fix(move(origin, north_m=20), 2))
    tracker.travel_bearing()
    tracker.clear()
    assert len(tracker) == 0
    assert tracker.last_bearing is None
