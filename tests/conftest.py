import math

import pytest

from pedalnav.geo import EARTH_RADIUS
from pedalnav.logger import Logger
from pedalnav.models import Coordinate, LocationFix, RouteResult, RouteType

METERS_PER_DEGREE = EARTH_RADIUS * math.pi / 180


def offset(origin: Coordinate, north_m: float = 0.0, east_m: float = 0.0) -> Coordinate:
    """Coordinate displaced from origin by meters north and east"""
    lat = origin.latitude + north_m / METERS_PER_DEGREE
    lon = origin.longitude + east_m / (METERS_PER_DEGREE * math.cos(math.radians(origin.latitude)))
    return Coordinate(lat, lon)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def origin():
    return Coordinate(48.8566, 2.3522)


@pytest.fixture
def move():
    return offset


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def quiet_logger():
    return Logger(quiet=True)


@pytest.fixture
def make_fix():
    def _make(coordinate: Coordinate, timestamp: float = 0.0, speed=None, heading=None):
        return LocationFix(coordinate, timestamp, speed=speed, heading=heading)
    return _make


@pytest.fixture
def straight_route(origin):
    """Factory for a route heading due north from origin with a point every 100 m"""
    def _make(length_m: float = 1000.0, route_type: RouteType = RouteType.FASTEST,
              minutes: float = 4.0, start: Coordinate = origin):
        steps = max(1, int(length_m // 100))
        points = [offset(start, north_m=length_m * i / steps) for i in range(steps + 1)]
        return RouteResult(route_type, tuple(points), length_m / 1000, minutes)
    return _make
