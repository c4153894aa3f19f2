"""Map features (POIs and warnings), their stores and the viewport loader."""

import json
import time
from dataclasses import dataclass, field
from typing import Optional, Union

from .bounds import BoundsReloadPolicy
from .config import CONFIG
from .debounce import Debouncer
from .errors import DataFetchError, InvalidInputError
from .interfaces import FeatureStore
from .logger import Logger
from .models import BoundingBox, Coordinate
from .osm import OSMFetcher


@dataclass(frozen=True)
class OSMPOI:
    """Cycling point of interest from OpenStreetMap"""
    osm_id: str
    name: str
    type: str
    latitude: float
    longitude: float
    tags: dict = field(default_factory=dict, compare=False)

    kind = "osm_poi"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    @property
    def address(self) -> Optional[str]:
        parts = [self.tags.get(k) for k in ("addr:housenumber", "addr:street", "addr:city")]
        parts = [p for p in parts if p]
        return " ".join(parts) if parts else None

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.osm_id, "name": self.name, "type": self.type,
                "lat": self.latitude, "lon": self.longitude}


@dataclass(frozen=True)
class CommunityPOI:
    """Point of interest added by riders"""
    id: str
    name: str
    type: str
    latitude: float
    longitude: float
    description: Optional[str] = None

    kind = "community_poi"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id, "name": self.name, "type": self.type,
                "lat": self.latitude, "lon": self.longitude, "description": self.description}


@dataclass(frozen=True)
class CommunityWarning:
    """Hazard reported by riders (pothole, construction, ...)"""
    id: str
    type: str
    severity: str  # low, medium, high
    title: str
    latitude: float
    longitude: float
    description: str = ""
    is_active: bool = True

    kind = "warning"

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "id": self.id, "type": self.type, "severity": self.severity,
                "title": self.title, "lat": self.latitude, "lon": self.longitude,
                "description": self.description, "active": self.is_active}


Feature = Union[OSMPOI, CommunityPOI, CommunityWarning]


def poi_type_from_tags(tags: dict) -> Optional[str]:
    """Internal POI type for an OSM tag set, None when it is not a cycling POI"""
    amenity = tags.get("amenity")
    if amenity == "bicycle_parking":
        return "bike_parking"
    if amenity == "repair_station":
        return "bike_repair"
    if amenity == "charging_station" and tags.get("bicycle") == "yes":
        return "bike_charging"
    if tags.get("shop") == "bicycle":
        return "bike_shop"
    if amenity == "drinking_water":
        return "drinking_water"
    if tags.get("man_made") == "water_tap":
        return "water_tap"
    if amenity == "toilets":
        return "toilets"
    if amenity == "shelter":
        return "shelter"
    return None


def parse_osm_pois(osm_data: dict) -> list[OSMPOI]:
    pois = []
    for element in osm_data.get("elements", []):
        if element.get("type") != "node" or "lat" not in element:
            continue
        tags = element.get("tags", {})
        poi_type = poi_type_from_tags(tags)
        if poi_type is None:
            continue
        name = tags.get("name") or tags.get("brand") or tags.get("operator") or "Unnamed POI"
        pois.append(OSMPOI(str(element["id"]), name, poi_type, element["lat"], element["lon"], tags))
    return pois


class OverpassPOIStore:
    """Cycling POIs from OpenStreetMap"""

    def __init__(self, fetcher: Optional[OSMFetcher] = None):
        self.fetcher = fetcher or OSMFetcher()

    def fetch(self, bounds: BoundingBox) -> list[OSMPOI]:
        pois = parse_osm_pois(self.fetcher.fetch_pois(bounds))
        # A covering cache may hold a larger box than asked for
        return [p for p in pois if bounds.contains_point(p.coordinate)]


class StaticFeatureStore:
    """Community POIs and warnings held in memory, optionally loaded from JSON"""

    def __init__(self, features: Optional[list] = None):
        self.features: list = list(features or [])

    @classmethod
    def from_file(cls, path: str) -> "StaticFeatureStore":
        """Load {"pois": [...], "warnings": [...]}"""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DataFetchError(f"Cannot read features from {path}: {e}") from e

        features = []
        try:
            for d in data.get("pois", []):
                features.append(CommunityPOI(
                    id=str(d["id"]), name=d.get("name", ""), type=d["type"],
                    latitude=d["latitude"], longitude=d["longitude"],
                    description=d.get("description"),
                ))
            for d in data.get("warnings", []):
                features.append(CommunityWarning(
                    id=str(d["id"]), type=d["type"], severity=d.get("severity", "medium"),
                    title=d.get("title", d["type"]), latitude=d["latitude"], longitude=d["longitude"],
                    description=d.get("description", ""), is_active=d.get("is_active", True),
                ))
        except KeyError as e:
            raise InvalidInputError(f"Feature in {path} is missing {e}") from e
        return cls(features)

    def add(self, feature):
        self.features.append(feature)

    def fetch(self, bounds: BoundingBox) -> list:
        return [f for f in self.features
                if bounds.south <= f.latitude <= bounds.north and bounds.west <= f.longitude <= bounds.east]

    @property
    def warnings(self) -> list[CommunityWarning]:
        return [f for f in self.features if isinstance(f, CommunityWarning)]


class MapDataLoader:
    """Keeps POIs and warnings loaded around the visible map.

    Map-move events are debounced; once the map has been still for the
    debounce interval and the view left the trigger zone, every store is
    queried for the extended window. A failed fetch keeps the previous
    features and bounds so the next pan tries again.
    """

    def __init__(self, stores: list[FeatureStore], config: dict = CONFIG, clock=None,
                 logger: Optional[Logger] = None):
        self.stores = stores
        self.policy = BoundsReloadPolicy(config)
        self.debouncer = Debouncer(config["map_debounce_interval"], clock or time.monotonic)
        self.logger = logger or Logger(quiet=True)
        self.features: list = []
        self.last_error: Optional[Exception] = None

    def on_map_moved(self, visible: BoundingBox):
        """Register a map-move event; the load happens on a later poll()"""
        self.debouncer.submit(self.load, visible)

    def follow(self, visible: BoundingBox) -> bool:
        """Load for a view the ride moved to itself, without waiting.

        Recenters arrive on most fixes and are not debounced. Any pending
        pan is dropped.
        """
        self.debouncer.cancel()
        return self.load(visible)

    def poll(self, now: Optional[float] = None) -> bool:
        """Run a due load. Returns True when new features were committed."""
        fired, loaded = self.debouncer.poll(now)
        return bool(fired and loaded)

    def load(self, visible: BoundingBox, force: bool = False) -> bool:
        if not force and not self.policy.needs_reload(visible):
            return False

        window = self.policy.fetch_window(visible)
        features = []
        try:
            for store in self.stores:
                features.extend(store.fetch(window))
        except DataFetchError as e:
            self.last_error = e
            self.logger.log("Map data fetch failed", {"error": str(e), "bounds": window.to_dict()})
            return False

        self.features = features
        self.last_error = None
        self.policy.commit(window)
        self.logger.log("Loaded map data", {"features": len(features), "bounds": window.to_dict()})
        return True

    @property
    def warnings(self) -> list[CommunityWarning]:
        return [f for f in self.features if isinstance(f, CommunityWarning)]

    def reset(self):
        self.debouncer.cancel()
        self.policy.reset()
        self.features = []
