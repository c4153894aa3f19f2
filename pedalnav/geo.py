"""Spherical geometry helpers: distances, bearings, segment projection."""

from __future__ import annotations

import math
import time
from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .models import Coordinate

EARTH_RADIUS = 6371000  # meters

COMPASS_POINTS = ("north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest")


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters"""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    half_dlat = math.radians(lat2 - lat1) / 2
    half_dlon = math.radians(lon2 - lon1) / 2
    h = math.sin(half_dlat) ** 2 + math.cos(p1) * math.cos(p2) * math.sin(half_dlon) ** 2
    return 2 * EARTH_RADIUS * math.asin(min(1.0, math.sqrt(h)))


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial great-circle bearing in [0, 360), clockwise from north.

    Identical points have no direction; 0 is returned for them.
    """
    if (lat1, lon1) == (lat2, lon2):
        return 0.0
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    east = math.sin(dlon) * math.cos(p2)
    north = math.cos(p1) * math.sin(p2) - math.sin(p1) * math.cos(p2) * math.cos(dlon)
    return math.degrees(math.atan2(east, north)) % 360


def distance_meters(a: "Coordinate", b: "Coordinate") -> float:
    return haversine_distance(a.latitude, a.longitude, b.latitude, b.longitude)


def bearing_degrees(a: "Coordinate", b: "Coordinate") -> float:
    return bearing_between(a.latitude, a.longitude, b.latitude, b.longitude)


def angle_difference(from_bearing: float, to_bearing: float) -> float:
    """Signed smallest rotation from one bearing to another, in (-180, 180]"""
    diff = (to_bearing - from_bearing) % 360
    if diff > 180:
        diff -= 360
    return diff


def bearing_to_compass(bearing: float) -> str:
    return COMPASS_POINTS[round(bearing / 45) % 8]


def project_onto_segment(point: "Coordinate", start: "Coordinate", end: "Coordinate") -> tuple[float, float]:
    """Project a point onto the segment start-end.

    Uses a local equirectangular projection centred on the point, which is
    accurate to well under a meter over the few hundred meters a route leg
    spans.

    Returns:
        (distance in meters from the point to the segment,
         fraction 0..1 along the segment of the closest position)
    """
    lat0 = math.radians(point.latitude)
    scale_x = math.cos(lat0) * EARTH_RADIUS * math.pi / 180
    scale_y = EARTH_RADIUS * math.pi / 180

    ax = (start.longitude - point.longitude) * scale_x
    ay = (start.latitude - point.latitude) * scale_y
    bx = (end.longitude - point.longitude) * scale_x
    by = (end.latitude - point.latitude) * scale_y

    dx = bx - ax
    dy = by - ay
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(ax, ay), 0.0

    # Point is the origin, so the projection parameter is -a.d / |d|^2
    t = max(0.0, min(1.0, -(ax * dx + ay * dy) / length_sq))
    cx = ax + t * dx
    cy = ay + t * dy
    return math.hypot(cx, cy), t


def point_to_segment_distance(point: "Coordinate", start: "Coordinate", end: "Coordinate") -> float:
    """Distance in meters from a point to the closest position on a segment"""
    return project_onto_segment(point, start, end)[0]


def path_length(points: Sequence["Coordinate"]) -> float:
    """Sum of haversine legs along a polyline"""
    return sum(distance_meters(a, b) for a, b in zip(points, points[1:]))


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       logger=None, sleep=time.sleep, clock=time.monotonic):
    """Call func until it returns something truthy or max_time runs out.

    The wait between attempts starts at initial_delay and doubles up to
    max_delay, never sleeping past the deadline. Returns func's result, or
    None once the deadline passes. sleep and clock are injectable for tests.
    """
    started = clock()
    delay = initial_delay
    attempts = 0
    while True:
        attempts += 1
        result = func()
        if result:
            return result

        spent = clock() - started
        if spent >= max_time:
            if logger:
                logger.log(f"Gave up on {description}", {"elapsed": round(spent, 1), "attempts": attempts})
            return None

        wait = min(delay, max_time - spent, max_delay)
        if wait > 0:
            if logger:
                logger.log(f"Retrying {description}", {"delay": round(wait, 1), "attempt": attempts})
            sleep(wait)
        delay = min(delay * 2, max_delay)
