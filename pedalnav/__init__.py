"""pedalnav - Cycling navigation and route-tracking engine."""

from .config import CONFIG, load_config
from .errors import (
    PedalNavError,
    InvalidInputError,
    CollaboratorUnavailableError,
    LocationUnavailableError,
    RoutingUnavailableError,
    DataFetchError,
    NavigationStateError,
)
from .models import (
    Coordinate,
    LocationFix,
    Breadcrumb,
    BoundingBox,
    RouteType,
    PathDetail,
    SurfaceSegment,
    RouteResult,
    NavigationMode,
    NavigationState,
    CameraIntent,
    surface_quality,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    bearing_between,
    distance_meters,
    bearing_degrees,
    angle_difference,
    bearing_to_compass,
    point_to_segment_distance,
    path_length,
    retry_with_backoff,
)
from .interfaces import LocationSource, RoutingProvider, MapRenderer, FeatureStore
from .breadcrumbs import BreadcrumbTracker
from .debounce import Debouncer
from .bounds import extended_bounds, trigger_bounds, should_reload, viewport_bounds, BoundsReloadPolicy
from .routing import (
    RouteSearchStatus,
    RouteSelector,
    GraphHopperProvider,
    RouteHazard,
    label_routes,
    route_for,
    detect_route_hazards,
    upcoming_hazards,
)
from .navigation import NavigationController, ProgressStatus, ProgressUpdate, RouteRequest
from .camera import zoom_for_speed, compute_camera_intent, CameraPolicy
from .osm import OSMFetcher
from .graph import StreetGraph, LocalGraphProvider
from .features import (
    OSMPOI,
    CommunityPOI,
    CommunityWarning,
    OverpassPOIStore,
    StaticFeatureStore,
    MapDataLoader,
)
from .gps import GPS, GPSRecorder, GPSPlayback
from .debug_gui import DebugServer, WebSocketGPS
from .preview import create_route_map, write_route_preview
from .app import Ride
from .__main__ import main

__all__ = [
    "CONFIG",
    "load_config",
    "PedalNavError",
    "InvalidInputError",
    "CollaboratorUnavailableError",
    "LocationUnavailableError",
    "RoutingUnavailableError",
    "DataFetchError",
    "NavigationStateError",
    "Coordinate",
    "LocationFix",
    "Breadcrumb",
    "BoundingBox",
    "RouteType",
    "PathDetail",
    "SurfaceSegment",
    "RouteResult",
    "NavigationMode",
    "NavigationState",
    "CameraIntent",
    "surface_quality",
    "Logger",
    "haversine_distance",
    "bearing_between",
    "distance_meters",
    "bearing_degrees",
    "angle_difference",
    "bearing_to_compass",
    "point_to_segment_distance",
    "path_length",
    "retry_with_backoff",
    "LocationSource",
    "RoutingProvider",
    "MapRenderer",
    "FeatureStore",
    "BreadcrumbTracker",
    "Debouncer",
    "extended_bounds",
    "trigger_bounds",
    "should_reload",
    "viewport_bounds",
    "BoundsReloadPolicy",
    "RouteSearchStatus",
    "RouteSelector",
    "GraphHopperProvider",
    "RouteHazard",
    "label_routes",
    "route_for",
    "detect_route_hazards",
    "upcoming_hazards",
    "NavigationController",
    "ProgressStatus",
    "ProgressUpdate",
    "RouteRequest",
    "zoom_for_speed",
    "compute_camera_intent",
    "CameraPolicy",
    "OSMFetcher",
    "StreetGraph",
    "LocalGraphProvider",
    "OSMPOI",
    "CommunityPOI",
    "CommunityWarning",
    "OverpassPOIStore",
    "StaticFeatureStore",
    "MapDataLoader",
    "GPS",
    "GPSRecorder",
    "GPSPlayback",
    "DebugServer",
    "WebSocketGPS",
    "create_route_map",
    "write_route_preview",
    "Ride",
    "main",
]
