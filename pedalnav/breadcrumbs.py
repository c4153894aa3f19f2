"""Breadcrumb trail for estimating direction of travel."""

from collections import deque
from typing import Optional

from .config import CONFIG
from .geo import bearing_degrees, distance_meters
from .models import Breadcrumb, LocationFix


class BreadcrumbTracker:
    """Bounded, time-windowed history of recent positions.

    Single writer: fixes must arrive in timestamp order from one event
    context. Ages are measured against the newest fix's timestamp, so a
    replayed trace behaves the same as a live one.
    """

    def __init__(self, config: dict = CONFIG):
        self.max_count = config["breadcrumb_max_count"]
        self.max_age = config["breadcrumb_max_age"]
        self.min_spacing = config["breadcrumb_min_spacing"]
        self.min_displacement = config["breadcrumb_min_displacement"]
        self.smoothing = config["bearing_smoothing"]

        self._trail: deque[Breadcrumb] = deque()
        self.last_bearing: Optional[float] = None

    def __len__(self) -> int:
        return len(self._trail)

    @property
    def breadcrumbs(self) -> tuple[Breadcrumb, ...]:
        return tuple(self._trail)

    def add_fix(self, fix: LocationFix) -> bool:
        """Record a fix. Returns False when it was filtered as jitter."""
        self._purge(fix.timestamp)

        if self._trail:
            if distance_meters(self._trail[-1].coordinate, fix.coordinate) < self.min_spacing:
                return False

        self._trail.append(Breadcrumb(fix.coordinate, fix.timestamp, fix.speed))
        while len(self._trail) > self.max_count:
            self._trail.popleft()
        return True

    def _purge(self, now: float):
        while self._trail and now - self._trail[0].timestamp > self.max_age:
            self._trail.popleft()

    def travel_bearing(self) -> Optional[float]:
        """Smoothed bearing from the oldest to the newest breadcrumb.

        None when there are fewer than two breadcrumbs or they span less
        than the minimum displacement; last_bearing keeps the previous
        answer for callers that want to hold their heading.
        """
        if len(self._trail) < 2:
            return None

        oldest = self._trail[0].coordinate
        newest = self._trail[-1].coordinate
        if distance_meters(oldest, newest) < self.min_displacement:
            return None

        bearing = bearing_degrees(oldest, newest)
        # Blending across the 0/360 seam would point the wrong way
        if self.last_bearing is not None and abs(bearing - self.last_bearing) < 180:
            bearing = bearing * self.smoothing + self.last_bearing * (1 - self.smoothing)

        self.last_bearing = bearing % 360
        return self.last_bearing

    def clear(self):
        self._trail.clear()
        self.last_bearing = None
