"""Configuration settings for pedalnav."""

import json
from typing import Optional

from .errors import InvalidInputError

CONFIG = {
    "gps_poll_interval": 1,  # seconds
    "log_interval": 10,  # seconds between state log entries
    # Breadcrumb tracker
    "breadcrumb_max_count": 5,
    "breadcrumb_max_age": 20,  # seconds
    "breadcrumb_min_spacing": 5,  # meters - jitter filter at standstill
    "breadcrumb_min_displacement": 8,  # meters - oldest to newest before a bearing is reported
    "bearing_smoothing": 0.7,  # weight of the new bearing, previous gets the rest
    # Navigation
    "arrival_threshold": 20,  # meters to the route terminal point
    "off_route_threshold": 50,  # meters from the route polyline
    "average_cycling_speed": 4.17,  # m/s (15 km/h), ETA fallback
    "min_eta_speed": 0.5,  # m/s - below this the fallback speed is used
    # Camera
    "zoom_speed_bands": [  # (upper bound km/h, zoom) - last band has no upper bound
        (1, 19.0),
        (5, 18.5),
        (10, 18.0),
        (15, 17.5),
        (20, 17.0),
        (25, 16.5),
        (30, 16.0),
        (40, 15.5),
        (None, 15.0),
    ],
    "default_zoom": 15.0,
    "zoom_change_interval": 3,  # seconds between applied zoom changes
    "zoom_min_step": 0.5,
    "navigation_pitch": 60.0,  # degrees
    "exploration_pitch": 0.0,
    "navigation_recenter_distance": 5,  # meters - tight following
    "exploration_recenter_distance": 50,  # meters
    # Map data loading
    "bounds_extension": 1.0,  # box heights/widths added on each side
    "reload_trigger_buffer": 0.1,  # fraction of each dimension shrunk inward
    "map_debounce_interval": 1.0,  # seconds of quiet before a reload fires
    # Routing
    "graphhopper_url": "https://graphhopper.com/api/1/route",
    "graphhopper_profile": "bike",
    "routing_timeout": 10,  # seconds
    "route_hazard_distance": 30,  # meters from the route for a warning to count
    "local_routing_margin": 0.01,  # degrees added around start/end for offline graphs
    # Cycling speeds per road type, km/h (offline fastest route)
    "road_speeds": {
        "cycleway": 20,
        "path": 14,
        "track": 12,
        "living_street": 12,
        "residential": 18,
        "service": 14,
        "unclassified": 18,
        "tertiary": 20,
        "secondary": 20,
        "primary": 18,
        "trunk": 15,
        "footway": 8,
        "pedestrian": 8,
    },
    "default_road_speed": 15,
    # Safety priority per road type (higher = preferred, offline safest route)
    "road_priorities": {
        "cycleway": 1.5,
        "path": 1.3,
        "residential": 1.2,
        "living_street": 1.2,
        "tertiary": 1.1,
        "track": 1.0,
        "service": 1.0,
        "unclassified": 1.0,
        "secondary": 0.7,
        "primary": 0.5,
        "trunk": 0.3,
        "footway": 0.8,
        "pedestrian": 0.8,
    },
    "default_road_priority": 1.0,
    "bike_network_bonus": 1.3,
}


def load_config(path: Optional[str] = None) -> dict:
    """Return CONFIG merged with overrides from a JSON file.

    Unknown keys are rejected so typos in the override file surface early.
    """
    config = dict(CONFIG)
    if not path:
        return config

    with open(path) as f:
        try:
            overrides = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(overrides, dict):
        raise InvalidInputError(f"Config file {path} must hold a JSON object")

    unknown = sorted(set(overrides) - set(CONFIG))
    if unknown:
        raise InvalidInputError(f"Unknown config keys: {', '.join(unknown)}")

    if "zoom_speed_bands" in overrides:
        overrides["zoom_speed_bands"] = [tuple(band) for band in overrides["zoom_speed_bands"]]
    config.update(overrides)
    return config
