"""Route calculation, labeling and hazard matching."""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import requests

from .config import CONFIG
from .errors import InvalidInputError, RoutingUnavailableError
from .geo import distance_meters, project_onto_segment
from .logger import Logger
from .models import Coordinate, PathDetail, RouteResult, RouteType


class RouteSearchStatus(Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    FOUND = "found"
    NO_ROUTE = "no_route"
    UNAVAILABLE = "unavailable"


# Preferred substitute order when a route type is missing
ROUTE_FALLBACKS = {
    RouteType.SAFEST: (RouteType.SAFEST, RouteType.SHORTEST, RouteType.FASTEST),
    RouteType.FASTEST: (RouteType.FASTEST, RouteType.SHORTEST, RouteType.SAFEST),
    RouteType.SHORTEST: (RouteType.SHORTEST, RouteType.FASTEST, RouteType.SAFEST),
}


def label_routes(routes: list[RouteResult]) -> list[RouteResult]:
    """Keep provider order, dropping repeats of a type already seen"""
    seen = set()
    labeled = []
    for route in routes:
        if route.type in seen:
            continue
        seen.add(route.type)
        labeled.append(route)
    return labeled


def route_for(routes: list[RouteResult], route_type: RouteType) -> Optional[RouteResult]:
    """The route of the requested type, or the next best one available"""
    by_type = {}
    for route in routes:
        by_type.setdefault(route.type, route)
    for candidate in ROUTE_FALLBACKS[route_type]:
        if candidate in by_type:
            return by_type[candidate]
    return None


class RouteSelector:
    """Asks a routing provider for candidates and labels them.

    Never returns None and never raises for an unreachable provider: the
    failure is kept in last_error and status tells "no route" apart from
    "service unavailable" and "still computing".
    """

    def __init__(self, provider, logger: Optional[Logger] = None):
        self.provider = provider
        self.logger = logger or Logger(quiet=True)
        self.status = RouteSearchStatus.IDLE
        self.last_error: Optional[Exception] = None
        self.routes: list[RouteResult] = []

    def calculate_routes(self, start: Coordinate, end: Coordinate) -> list[RouteResult]:
        self.status = RouteSearchStatus.COMPUTING
        self.last_error = None
        self.logger.log("Calculating routes", {"from": start.to_dict(), "to": end.to_dict()})

        try:
            routes = self.provider.calculate_routes(start, end)
        except RoutingUnavailableError as e:
            self.logger.log("Routing unavailable", {"error": str(e)})
            self.last_error = e
            self.status = RouteSearchStatus.UNAVAILABLE
            self.routes = []
            return []

        self.routes = label_routes(routes or [])
        self.status = RouteSearchStatus.FOUND if self.routes else RouteSearchStatus.NO_ROUTE
        self.logger.log(f"Found {len(self.routes)} route(s)", {
            "routes": [r.summary() for r in self.routes],
        })
        return list(self.routes)

    def route_for(self, route_type: RouteType) -> Optional[RouteResult]:
        return route_for(self.routes, route_type)


# Priority multipliers favouring bike infrastructure and quiet roads
SAFEST_MODEL = {
    "priority": [
        {"if": "road_class == CYCLEWAY", "multiply_by": 1.5},
        {"if": "road_class == PATH", "multiply_by": 1.3},
        {"if": "road_class == RESIDENTIAL", "multiply_by": 1.2},
        {"if": "road_class == TERTIARY", "multiply_by": 1.1},
        {"if": "road_class == PRIMARY", "multiply_by": 0.5},
        {"if": "road_class == TRUNK", "multiply_by": 0.3},
        {"if": "road_class == MOTORWAY", "multiply_by": 0.1},
        {"if": "bike_network != MISSING", "multiply_by": 1.3},
        {"if": "road_gradient > 10", "multiply_by": 0.8},
    ],
    "speed": [
        {"if": "road_class == PRIMARY", "limit_to": 12},
        {"if": "road_class == SECONDARY", "limit_to": 15},
    ],
}

# A high distance influence makes length dominate travel time
SHORTEST_MODEL = {"distance_influence": 200}


class GraphHopperProvider:
    """Routes from the GraphHopper web API.

    One request per route type. Raises RoutingUnavailableError only when
    no request got an answer at all; a reachable service with no path
    yields fewer routes.
    """

    def __init__(self, api_key: Optional[str] = None, session=None,
                 config: dict = CONFIG, logger: Optional[Logger] = None):
        self.api_key = api_key if api_key is not None else os.environ.get("GRAPHHOPPER_API_KEY", "")
        self.session = session or requests
        self.url = config["graphhopper_url"]
        self.profile = config["graphhopper_profile"]
        self.timeout = config["routing_timeout"]
        self.logger = logger or Logger(quiet=True)

    def _request_body(self, start: Coordinate, end: Coordinate, route_type: RouteType) -> dict:
        body = {
            "points": [
                [start.longitude, start.latitude],
                [end.longitude, end.latitude],
            ],
            "profile": self.profile,
            "locale": "en",
            "points_encoded": False,
            "elevation": False,
            "details": ["surface"],
        }
        if route_type == RouteType.SAFEST:
            body["custom_model"] = SAFEST_MODEL
        elif route_type == RouteType.SHORTEST:
            body["custom_model"] = SHORTEST_MODEL
        if "custom_model" in body:
            # Custom models need the flexible (non contraction hierarchy) mode
            body["ch.disable"] = True
        return body

    def calculate_routes(self, start: Coordinate, end: Coordinate) -> list[RouteResult]:
        if not self.api_key:
            raise RoutingUnavailableError("GraphHopper API key not configured (GRAPHHOPPER_API_KEY)")

        routes = []
        answered = 0
        errors = []
        for route_type in RouteType:
            try:
                response = self.session.post(
                    self.url,
                    params={"key": self.api_key},
                    json=self._request_body(start, end, route_type),
                    timeout=self.timeout,
                )
            except requests.RequestException as e:
                self.logger.log(f"GraphHopper request failed for {route_type.value} route", {"error": str(e)})
                errors.append(str(e))
                continue

            if response.status_code != 200:
                self.logger.log(f"GraphHopper API error for {route_type.value} route", {
                    "status": response.status_code,
                    "body": response.text[:500],
                })
                errors.append(f"HTTP {response.status_code}")
                continue

            answered += 1
            try:
                route = parse_graphhopper_path(response.json(), route_type)
            except (KeyError, IndexError, TypeError, ValueError) as e:
                self.logger.log(f"Unusable GraphHopper response for {route_type.value} route", {"error": str(e)})
                continue
            if route is None:
                self.logger.log(f"No {route_type.value} route found")
                continue
            routes.append(route)

        if not answered:
            raise RoutingUnavailableError(f"GraphHopper unreachable: {'; '.join(errors)}")
        return routes


def parse_graphhopper_path(data: dict, route_type: RouteType) -> Optional[RouteResult]:
    """Build a RouteResult from the first path of a GraphHopper response"""
    paths = data.get("paths") or []
    if not paths:
        return None

    path = paths[0]
    # GraphHopper coordinates are [lon, lat] or [lon, lat, ele]
    points = [Coordinate(c[1], c[0]) for c in path["points"]["coordinates"]]
    details = {}
    for name, spans in (path.get("details") or {}).items():
        details[name] = tuple(PathDetail(int(s), int(e), v) for s, e, v in spans)

    return RouteResult(
        type=route_type,
        points=tuple(points),
        distance_km=float(path["distance"]) / 1000,
        duration_minutes=float(path["time"]) / 60000,
        path_details=details,
    )


@dataclass(frozen=True)
class RouteHazard:
    warning: object  # CommunityWarning
    distance_along_route_m: float
    distance_from_route_m: float


def locate_on_route(point: Coordinate, route_points) -> tuple[float, float]:
    """(distance along the route to the closest position, distance from the route)"""
    if len(route_points) < 2:
        raise InvalidInputError("route needs at least 2 points")

    best_offset = float("inf")
    best_along = 0.0
    travelled = 0.0
    for start, end in zip(route_points, route_points[1:]):
        leg = distance_meters(start, end)
        offset, fraction = project_onto_segment(point, start, end)
        if offset < best_offset:
            best_offset = offset
            best_along = travelled + leg * fraction
        travelled += leg
    return best_along, best_offset


def detect_route_hazards(route: RouteResult, warnings: list,
                         max_distance_m: float = CONFIG["route_hazard_distance"]) -> list[RouteHazard]:
    """Active warnings within max_distance_m of the route, ordered along it"""
    hazards = []
    for warning in warnings:
        if not getattr(warning, "is_active", True):
            continue
        along, offset = locate_on_route(Coordinate(warning.latitude, warning.longitude), route.points)
        if offset <= max_distance_m:
            hazards.append(RouteHazard(warning, along, offset))
    hazards.sort(key=lambda h: h.distance_along_route_m)
    return hazards


def upcoming_hazards(hazards: list[RouteHazard], position: Coordinate, route: RouteResult,
                     limit: int = 5) -> list[tuple[RouteHazard, float]]:
    """(hazard, meters ahead) for hazards still in front of the rider, nearest first"""
    travelled, _ = locate_on_route(position, route.points)
    ahead = [(h, h.distance_along_route_m - travelled) for h in hazards
             if h.distance_along_route_m > travelled]
    return ahead[:limit]
