"""When to refresh map data as the visible extent moves."""

import math
from typing import Optional

from .config import CONFIG
from .models import BoundingBox, Coordinate


def extended_bounds(visible: BoundingBox, factor: float = CONFIG["bounds_extension"]) -> BoundingBox:
    """Grow a box by factor x its own height and width on each side"""
    lat_pad = visible.height * factor
    lon_pad = visible.width * factor
    return BoundingBox(
        south=max(visible.south - lat_pad, -90.0),
        west=max(visible.west - lon_pad, -180.0),
        north=min(visible.north + lat_pad, 90.0),
        east=min(visible.east + lon_pad, 180.0),
    )


def trigger_bounds(loaded: BoundingBox, buffer: float = CONFIG["reload_trigger_buffer"]) -> BoundingBox:
    """Shrink a box inward by buffer x each dimension on each side"""
    lat_pad = loaded.height * buffer
    lon_pad = loaded.width * buffer
    return BoundingBox(
        south=loaded.south + lat_pad,
        west=loaded.west + lon_pad,
        north=loaded.north - lat_pad,
        east=loaded.east - lon_pad,
    )


def viewport_bounds(center: Coordinate, zoom: float, width_px: int = 400, height_px: int = 800) -> BoundingBox:
    """Approximate extent a web-mercator map shows at a zoom level"""
    meters_per_px = 156543.03 * math.cos(math.radians(center.latitude)) / (2 ** zoom)
    half_height = height_px * meters_per_px / 2
    half_width = width_px * meters_per_px / 2
    lat_pad = half_height / 111320.0
    lon_pad = half_width / (111320.0 * max(math.cos(math.radians(center.latitude)), 1e-6))
    return BoundingBox(
        south=max(center.latitude - lat_pad, -90.0),
        west=max(center.longitude - lon_pad, -180.0),
        north=min(center.latitude + lat_pad, 90.0),
        east=min(center.longitude + lon_pad, 180.0),
    )


def should_reload(visible: BoundingBox, trigger: Optional[BoundingBox]) -> bool:
    if trigger is None:
        return True
    return (visible.north > trigger.north or
            visible.south < trigger.south or
            visible.east > trigger.east or
            visible.west < trigger.west)


class BoundsReloadPolicy:
    """Remembers what was loaded and decides when a pan leaves it.

    Bounds are only replaced through commit(), after a fetch succeeded.
    """

    def __init__(self, config: dict = CONFIG):
        self.extension = config["bounds_extension"]
        self.buffer = config["reload_trigger_buffer"]
        self.loaded_bounds: Optional[BoundingBox] = None
        self.trigger_bounds: Optional[BoundingBox] = None

    def needs_reload(self, visible: BoundingBox) -> bool:
        return should_reload(visible, self.trigger_bounds)

    def fetch_window(self, visible: BoundingBox) -> BoundingBox:
        return extended_bounds(visible, self.extension)

    def commit(self, loaded: BoundingBox):
        self.loaded_bounds = loaded
        self.trigger_bounds = trigger_bounds(loaded, self.buffer)

    def reset(self):
        self.loaded_bounds = None
        self.trigger_bounds = None
