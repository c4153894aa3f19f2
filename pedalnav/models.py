"""Data classes for pedalnav."""

import math
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Optional

from .errors import InvalidInputError


def _check_finite(name: str, value: float):
    if value is None or not math.isfinite(value):
        raise InvalidInputError(f"{name} must be a finite number, got {value!r}")


@dataclass(frozen=True)
class Coordinate:
    """Immutable geographic coordinate in decimal degrees."""
    latitude: float
    longitude: float

    def __post_init__(self):
        _check_finite("latitude", self.latitude)
        _check_finite("longitude", self.longitude)
        if not -90.0 <= self.latitude <= 90.0:
            raise InvalidInputError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise InvalidInputError(f"longitude out of range: {self.longitude}")

    def to_dict(self) -> dict:
        return {"lat": self.latitude, "lon": self.longitude}

    @classmethod
    def from_dict(cls, d: dict) -> "Coordinate":
        return cls(d["lat"], d["lon"])


@dataclass(frozen=True)
class LocationFix:
    """One GPS sample. Speed in m/s, heading in degrees [0, 360), accuracy in meters."""
    coordinate: Coordinate
    timestamp: float  # seconds
    speed: Optional[float] = None
    heading: Optional[float] = None
    accuracy: Optional[float] = None

    def __post_init__(self):
        _check_finite("timestamp", self.timestamp)
        if self.speed is not None:
            _check_finite("speed", self.speed)
            if self.speed < 0:
                raise InvalidInputError(f"speed must not be negative: {self.speed}")
        if self.heading is not None:
            _check_finite("heading", self.heading)
            object.__setattr__(self, "heading", self.heading % 360)

    @property
    def speed_kmh(self) -> float:
        return (self.speed or 0.0) * 3.6

    @classmethod
    def create(cls, lat: float, lon: float, timestamp: float, speed: Optional[float] = None,
               heading: Optional[float] = None, accuracy: Optional[float] = None) -> "LocationFix":
        return cls(Coordinate(lat, lon), timestamp, speed=speed, heading=heading, accuracy=accuracy)

    def to_dict(self) -> dict:
        return {
            "lat": self.coordinate.latitude,
            "lon": self.coordinate.longitude,
            "timestamp": self.timestamp,
            "speed": self.speed,
            "heading": self.heading,
            "accuracy": self.accuracy,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "LocationFix":
        return cls.create(
            d["lat"], d["lon"], d["timestamp"],
            speed=d.get("speed"), heading=d.get("heading"), accuracy=d.get("accuracy"),
        )


@dataclass(frozen=True)
class Breadcrumb:
    """A retained fix used to derive travel direction"""
    coordinate: Coordinate
    timestamp: float
    speed: Optional[float] = None


@dataclass(frozen=True)
class BoundingBox:
    """Rectangular extent in degrees. No antimeridian handling."""
    south: float
    west: float
    north: float
    east: float

    def __post_init__(self):
        for name in ("south", "west", "north", "east"):
            _check_finite(name, getattr(self, name))
        if not self.south < self.north:
            raise InvalidInputError(f"south ({self.south}) must be below north ({self.north})")
        if not self.west < self.east:
            raise InvalidInputError(f"west ({self.west}) must be below east ({self.east})")

    @property
    def height(self) -> float:
        return self.north - self.south

    @property
    def width(self) -> float:
        return self.east - self.west

    @property
    def center(self) -> Coordinate:
        return Coordinate((self.south + self.north) / 2, (self.west + self.east) / 2)

    def contains(self, other: "BoundingBox") -> bool:
        return (self.south <= other.south and self.north >= other.north and
                self.west <= other.west and self.east >= other.east)

    def contains_point(self, coordinate: Coordinate) -> bool:
        return (self.south <= coordinate.latitude <= self.north and
                self.west <= coordinate.longitude <= self.east)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def around(cls, points: list[Coordinate], margin: float = 0.0) -> "BoundingBox":
        """Smallest box holding all points, grown by margin degrees on each side"""
        if not points:
            raise InvalidInputError("cannot bound an empty point list")
        lats = [p.latitude for p in points]
        lons = [p.longitude for p in points]
        # Keep a non-degenerate box for a single point
        margin = max(margin, 1e-6)
        return cls(
            south=max(min(lats) - margin, -90.0),
            west=max(min(lons) - margin, -180.0),
            north=min(max(lats) + margin, 90.0),
            east=min(max(lons) + margin, 180.0),
        )


class RouteType(Enum):
    FASTEST = "fastest"
    SAFEST = "safest"
    SHORTEST = "shortest"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class PathDetail:
    """Metadata value for route points start_index..end_index (inclusive)"""
    start_index: int
    end_index: int
    value: Optional[str]


# Surface tag fragments -> quality class, checked in order ("unpaved" before "paved")
SURFACE_QUALITIES = [
    ("good", ("compacted", "fine_gravel")),
    ("moderate", ("gravel", "unpaved")),
    ("excellent", ("asphalt", "concrete", "paved")),
    ("poor", ("dirt", "sand", "grass", "mud", "ground")),
    ("special", ("cobble", "sett")),
]


def surface_quality(surface: Optional[str]) -> str:
    """Classify an OSM surface tag"""
    if not surface:
        return "unknown"
    surface = str(surface).lower()
    for quality, fragments in SURFACE_QUALITIES:
        if any(fragment in surface for fragment in fragments):
            return quality
    return "unknown"


@dataclass(frozen=True)
class SurfaceSegment:
    points: tuple[Coordinate, ...]
    surface: str
    quality: str


@dataclass(frozen=True)
class RouteResult:
    """A computed route. Immutable; a new selection supersedes it."""
    type: RouteType
    points: tuple[Coordinate, ...]
    distance_km: float
    duration_minutes: float
    path_details: dict = field(default_factory=dict, compare=False)  # name -> tuple[PathDetail, ...]

    def __post_init__(self):
        object.__setattr__(self, "points", tuple(self.points))
        if len(self.points) < 2:
            raise InvalidInputError(f"a route needs at least 2 points, got {len(self.points)}")
        _check_finite("distance_km", self.distance_km)
        _check_finite("duration_minutes", self.duration_minutes)
        if self.distance_km < 0 or self.duration_minutes < 0:
            raise InvalidInputError("route distance and duration must not be negative")

    @property
    def distance_meters(self) -> float:
        return self.distance_km * 1000

    @property
    def origin(self) -> Coordinate:
        return self.points[0]

    @property
    def destination(self) -> Coordinate:
        return self.points[-1]

    def surface_segments(self) -> list[SurfaceSegment]:
        """Split the geometry by surface details; one unknown segment when there are none"""
        details = self.path_details.get("surface") or ()
        if not details:
            return [SurfaceSegment(self.points, "unknown", "unknown")]

        segments = []
        for detail in details:
            points = self.points[detail.start_index:detail.end_index + 1]
            if points:
                surface = detail.value or "unknown"
                segments.append(SurfaceSegment(points, surface, surface_quality(surface)))
        return segments

    def summary(self) -> dict:
        return {
            "type": self.type.value,
            "points": len(self.points),
            "distance_km": round(self.distance_km, 2),
            "duration_min": round(self.duration_minutes),
        }


class NavigationMode(Enum):
    IDLE = "idle"
    PREVIEWING = "previewing"
    NAVIGATING = "navigating"
    ARRIVED = "arrived"


@dataclass(frozen=True)
class NavigationState:
    """Snapshot of the navigation session. Replaced, never mutated."""
    mode: NavigationMode = NavigationMode.IDLE
    active_route: Optional[RouteResult] = None
    candidate_routes: tuple[RouteResult, ...] = ()
    distance_remaining_meters: float = 0.0
    nearest_remaining_point_index: int = 0
    has_arrived: bool = False
    is_off_route: bool = False
    off_route_distance_meters: float = 0.0
    estimated_seconds_remaining: int = 0
    last_position: Optional[Coordinate] = None
    current_speed: Optional[float] = None
    gps_available: bool = True
    session_id: int = 0

    @property
    def is_navigating(self) -> bool:
        return self.mode == NavigationMode.NAVIGATING

    @property
    def progress(self) -> float:
        """Fraction of the route covered, 0.0 to 1.0"""
        if self.active_route is None:
            return 0.0
        total = self.active_route.distance_meters
        if total <= 0:
            return 1.0
        return min(1.0, max(0.0, 1.0 - self.distance_remaining_meters / total))

    @property
    def remaining_distance_text(self) -> str:
        if self.distance_remaining_meters < 1000:
            return f"{self.distance_remaining_meters:.0f} m"
        return f"{self.distance_remaining_meters / 1000:.1f} km"

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "route": self.active_route.summary() if self.active_route else None,
            "candidates": [r.type.value for r in self.candidate_routes],
            "distance_remaining": round(self.distance_remaining_meters, 1),
            "nearest_point": self.nearest_remaining_point_index,
            "has_arrived": self.has_arrived,
            "off_route": self.is_off_route,
            "eta_seconds": self.estimated_seconds_remaining,
            "position": self.last_position.to_dict() if self.last_position else None,
            "gps_available": self.gps_available,
        }


@dataclass(frozen=True)
class CameraIntent:
    """Logical camera target handed to the map renderer once per tick."""
    center: Coordinate
    zoom: float
    bearing: float
    pitch: float
    should_recenter: bool
    reference_point: Optional[Coordinate] = None  # where the camera last recentered
    zoom_changed_at: Optional[float] = None  # timestamp of the last applied zoom change

    def to_dict(self) -> dict:
        return {
            "center": self.center.to_dict(),
            "zoom": self.zoom,
            "bearing": round(self.bearing, 1),
            "pitch": self.pitch,
            "recenter": self.should_recenter,
        }
