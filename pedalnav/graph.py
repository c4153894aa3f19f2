"""Street graph representation and offline routing."""

from typing import Optional

import networkx as nx

from .config import CONFIG
from .errors import DataFetchError, RoutingUnavailableError
from .geo import haversine_distance
from .logger import Logger
from .models import BoundingBox, Coordinate, PathDetail, RouteResult, RouteType
from .osm import OSMFetcher

# Edge attribute each route type minimises
ROUTE_WEIGHTS = {
    RouteType.FASTEST: "duration",
    RouteType.SAFEST: "risk",
    RouteType.SHORTEST: "length",
}

BIKE_NETWORK_TAGS = ("lcn", "rcn", "ncn")


class StreetGraph:
    """Graph representation of the cycleable street network"""

    def __init__(self, config: dict = CONFIG):
        self.config = config
        self.graph = nx.Graph()
        self.nodes: dict[int, tuple[float, float]] = {}  # node_id -> (lat, lon)

    def _speed(self, road_type: str) -> float:
        """Cycling speed in m/s for a road type"""
        kmh = self.config["road_speeds"].get(road_type, self.config["default_road_speed"])
        return kmh / 3.6

    def _priority(self, road_type: str, tags: dict) -> float:
        priority = self.config["road_priorities"].get(road_type, self.config["default_road_priority"])
        if tags.get("bicycle") == "designated" or any(tags.get(t) == "yes" for t in BIKE_NETWORK_TAGS):
            priority *= self.config["bike_network_bonus"]
        return priority

    def build_from_osm(self, osm_data: dict):
        """Build graph from Overpass way/node elements"""
        # First pass: collect all nodes
        for element in osm_data.get("elements", []):
            if element["type"] == "node":
                self.nodes[element["id"]] = (element["lat"], element["lon"])

        # Second pass: build edges from ways
        for element in osm_data.get("elements", []):
            if element["type"] != "way":
                continue

            tags = element.get("tags", {})
            road_type = tags.get("highway", "unclassified")
            surface = tags.get("surface")
            speed = self._speed(road_type)
            priority = self._priority(road_type, tags)
            nodes = element.get("nodes", [])

            for n1, n2 in zip(nodes, nodes[1:]):
                if n1 not in self.nodes or n2 not in self.nodes:
                    continue

                lat1, lon1 = self.nodes[n1]
                lat2, lon2 = self.nodes[n2]
                length = haversine_distance(lat1, lon1, lat2, lon2)
                self.graph.add_edge(n1, n2,
                                    way_id=element["id"],
                                    length=length,
                                    duration=length / speed,
                                    risk=length / priority,
                                    road_type=road_type,
                                    surface=surface,
                                    name=tags.get("name"))

        # Nodes that are not part of any way are of no use for routing
        self.nodes = {n: loc for n, loc in self.nodes.items() if n in self.graph}

    def find_nearest_node(self, lat: float, lon: float) -> Optional[int]:
        """Find the nearest graph node to a location"""
        if not self.nodes:
            return None

        min_dist = float("inf")
        nearest = None

        for node_id, (nlat, nlon) in self.nodes.items():
            dist = haversine_distance(lat, lon, nlat, nlon)
            if dist < min_dist:
                min_dist = dist
                nearest = node_id

        return nearest

    def get_node_location(self, node_id: int) -> Optional[tuple[float, float]]:
        return self.nodes.get(node_id)

    def shortest_path(self, source: int, target: int, weight: str) -> Optional[list[int]]:
        try:
            return nx.shortest_path(self.graph, source, target, weight=weight)
        except (nx.NetworkXNoPath, nx.NodeNotFound):
            return None

    def route_from_path(self, path: list[int], route_type: RouteType) -> RouteResult:
        """Turn a node path into a RouteResult with surface details"""
        points = [Coordinate(*self.nodes[n]) for n in path]
        length = 0.0
        duration = 0.0
        surfaces = []
        for n1, n2 in zip(path, path[1:]):
            edge = self.graph.edges[n1, n2]
            length += edge["length"]
            duration += edge["duration"]
            surfaces.append(edge.get("surface"))

        # Merge runs of equal surface into spans over point indices
        details = []
        start = 0
        for i in range(1, len(surfaces) + 1):
            if i == len(surfaces) or surfaces[i] != surfaces[start]:
                details.append(PathDetail(start, i, surfaces[start]))
                start = i

        return RouteResult(
            type=route_type,
            points=tuple(points),
            distance_km=length / 1000,
            duration_minutes=duration / 60,
            path_details={"surface": tuple(details)},
        )


class LocalGraphProvider:
    """Offline routing over OSM ways, one route per RouteType.

    Ways are treated as bidirectional; oneway tags are ignored.
    """

    def __init__(self, fetcher: Optional[OSMFetcher] = None, config: dict = CONFIG,
                 logger: Optional[Logger] = None):
        self.logger = logger or Logger(quiet=True)
        self.fetcher = fetcher or OSMFetcher(logger=self.logger)
        self.config = config

    def calculate_routes(self, start: Coordinate, end: Coordinate) -> list[RouteResult]:
        bounds = BoundingBox.around([start, end], self.config["local_routing_margin"])
        try:
            osm_data = self.fetcher.fetch_ways(bounds)
        except DataFetchError as e:
            raise RoutingUnavailableError(f"Street data unavailable: {e}") from e

        street_graph = StreetGraph(self.config)
        street_graph.build_from_osm(osm_data)
        self.logger.log("Built street graph", {
            "nodes": len(street_graph.nodes),
            "edges": street_graph.graph.number_of_edges(),
        })

        source = street_graph.find_nearest_node(start.latitude, start.longitude)
        target = street_graph.find_nearest_node(end.latitude, end.longitude)
        if source is None or target is None or source == target:
            return []

        routes = []
        for route_type, weight in ROUTE_WEIGHTS.items():
            path = street_graph.shortest_path(source, target, weight)
            if path is None:
                self.logger.log(f"No {route_type.value} route in street graph")
                continue
            routes.append(street_graph.route_from_path(path, route_type))
        return routes
