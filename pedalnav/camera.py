"""Camera target policy: zoom from speed, bearing from travel, recentering."""

from dataclasses import replace
from typing import Optional

from .config import CONFIG
from .geo import distance_meters
from .models import CameraIntent, LocationFix, NavigationMode


def zoom_for_speed(speed_mps: Optional[float], bands: list = CONFIG["zoom_speed_bands"]) -> float:
    """Map zoom for a speed; closer when slow, wider when fast"""
    kmh = (speed_mps or 0.0) * 3.6
    for upper, zoom in bands:
        if upper is None or kmh < upper:
            return zoom
    return bands[-1][1]


def compute_camera_intent(mode: NavigationMode, fix: LocationFix, travel_bearing: Optional[float],
                          previous: Optional[CameraIntent], config: dict = CONFIG) -> CameraIntent:
    """Camera target for one tick.

    Pure: the throttle and recenter memory travel in `previous`.
    Zoom follows speed only while navigating, at most once per
    zoom_change_interval and only for steps of zoom_min_step or more.
    Outside navigation the zoom and bearing stay where the user left them.
    """
    navigating = mode == NavigationMode.NAVIGATING
    now = fix.timestamp

    if previous is None:
        zoom = zoom_for_speed(fix.speed, config["zoom_speed_bands"]) if navigating else config["default_zoom"]
        zoom_changed_at = now
    else:
        zoom = previous.zoom
        zoom_changed_at = previous.zoom_changed_at
        if navigating:
            target = zoom_for_speed(fix.speed, config["zoom_speed_bands"])
            interval_ok = (previous.zoom_changed_at is None or
                           now - previous.zoom_changed_at >= config["zoom_change_interval"])
            if interval_ok and abs(target - previous.zoom) >= config["zoom_min_step"]:
                zoom = target
                zoom_changed_at = now

    if navigating:
        if travel_bearing is not None:
            bearing = travel_bearing
        elif previous is not None:
            bearing = previous.bearing
        elif fix.heading is not None:
            bearing = fix.heading
        else:
            bearing = 0.0
        pitch = config["navigation_pitch"]
        threshold = config["navigation_recenter_distance"]
    else:
        bearing = previous.bearing if previous is not None else 0.0
        pitch = config["exploration_pitch"]
        threshold = config["exploration_recenter_distance"]

    reference = previous.reference_point if previous is not None else None
    should_recenter = reference is None or distance_meters(reference, fix.coordinate) > threshold
    if should_recenter:
        reference = fix.coordinate
        center = fix.coordinate
    else:
        center = previous.center

    return CameraIntent(
        center=center,
        zoom=zoom,
        bearing=bearing,
        pitch=pitch,
        should_recenter=should_recenter,
        reference_point=reference,
        zoom_changed_at=zoom_changed_at,
    )


class CameraPolicy:
    """Keeps the previous intent between ticks.

    A mode change recenters and lets the zoom jump straight to its target.
    """

    def __init__(self, config: dict = CONFIG):
        self.config = config
        self.intent: Optional[CameraIntent] = None
        self.mode: Optional[NavigationMode] = None

    def update(self, mode: NavigationMode, fix: LocationFix, travel_bearing: Optional[float]) -> CameraIntent:
        previous = self.intent
        if previous is not None and mode != self.mode:
            previous = replace(previous, reference_point=None, zoom_changed_at=None)
        self.intent = compute_camera_intent(mode, fix, travel_bearing, previous, self.config)
        self.mode = mode
        return self.intent

    def reset(self):
        self.intent = None
        self.mode = None
