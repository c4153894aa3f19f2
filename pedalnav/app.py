"""Main pedalnav application."""

import time
from typing import Optional

from .bounds import viewport_bounds
from .camera import CameraPolicy
from .config import CONFIG
from .errors import LocationUnavailableError
from .features import MapDataLoader
from .geo import distance_meters, retry_with_backoff
from .gps import GPSPlayback, GPSRecorder
from .interfaces import LocationSource, MapRenderer, RoutingProvider
from .logger import Logger
from .models import Coordinate, LocationFix, RouteType
from .navigation import NavigationController, ProgressStatus
from .preview import write_route_preview
from .routing import RouteSearchStatus, RouteSelector, detect_route_hazards, upcoming_hazards

HAZARD_ANNOUNCE_DISTANCE = 100  # meters ahead along the route


class Ride:
    """One ride to a destination: GPS in, navigation state and camera out"""

    def __init__(self, destination: Coordinate, provider: RoutingProvider, location_source: LocationSource,
                 renderer: Optional[MapRenderer] = None, loader: Optional[MapDataLoader] = None,
                 route_type: RouteType = RouteType.SAFEST,
                 start: Optional[Coordinate] = None,
                 html_output: Optional[str] = None, preview_only: bool = False,
                 config: dict = CONFIG, logger: Optional[Logger] = None,
                 clock=time.time, sleep=time.sleep):
        self.destination = destination
        self.location_source = location_source
        self.renderer = renderer
        self.loader = loader
        self.route_type = route_type
        self.start = start
        self.html_output = html_output
        self.preview_only = preview_only
        self.config = config
        self.clock = clock
        self.sleep = sleep
        self.logger = logger or Logger()

        self.selector = RouteSelector(provider, self.logger)
        self.controller = NavigationController(config, logger=self.logger)
        self.camera = CameraPolicy(config)

        self.hazards = []
        self.announced_hazards: set = set()
        self.last_fix: Optional[LocationFix] = None
        self.arrived = False
        self.ridden_distance = 0.0
        self.ride_start_time = 0.0
        self.last_log_update = 0.0

    def get_state(self) -> dict:
        """Get current state as dict for logging"""
        state = self.controller.state.to_dict()
        state["ridden_distance"] = round(self.ridden_distance)
        state["gps_status"] = self.location_source.get_status() if hasattr(self.location_source, "get_status") else "unknown"
        if self.camera.intent:
            state["camera"] = self.camera.intent.to_dict()
        return state

    def periodic_update(self):
        now = self.clock()
        if now - self.last_log_update >= self.config["log_interval"]:
            self.logger.log("STATE", self.get_state())
            self.last_log_update = now

    def _first_fix(self) -> Optional[LocationFix]:
        if self.start:
            self.logger.log("Using provided start location", self.start.to_dict())
            return LocationFix(self.start, self.clock(), accuracy=0)

        def try_gps():
            fix = self.location_source.get_fix(timeout=10)
            if not fix:
                self.logger.log("GPS attempt failed")
            return fix

        return retry_with_backoff(try_gps, max_time=30.0, initial_delay=1.0, max_delay=8.0,
                                  description="GPS fix", logger=self.logger, sleep=self.sleep)

    def initialize(self) -> bool:
        """Get a fix, compute routes and start navigating the chosen one"""
        self.logger.log("Initializing ride", {"destination": self.destination.to_dict(),
                                              "route": self.route_type.value})
        try:
            fix = self._first_fix()
        except LocationUnavailableError as e:
            self.logger.log("Location unavailable", {"error": str(e)})
            return False
        if not fix:
            self.logger.log("Could not get GPS location after retries")
            return False
        self._accept_fix(fix)

        request = self.controller.begin_route_request()
        routes = self.selector.calculate_routes(fix.coordinate, self.destination)
        if self.selector.status == RouteSearchStatus.UNAVAILABLE:
            self.logger.log("Routing service unavailable", {"error": str(self.selector.last_error)})
            return False
        if self.selector.status == RouteSearchStatus.NO_ROUTE:
            self.logger.log("No route found")
            return False
        self.controller.deliver_routes(request, routes)

        if self.loader:
            self.loader.load(viewport_bounds(fix.coordinate, self.config["default_zoom"]), force=True)
        warnings = self.loader.warnings if self.loader else []

        if self.renderer:
            self.renderer.show_routes(routes)
        if self.html_output:
            write_route_preview(routes, self.html_output, warnings)
            self.logger.log("Route preview written", {"path": self.html_output})
        if self.preview_only:
            return False

        self.controller.select_route(self.route_type)
        route = self.controller.state.active_route
        if route.type != self.route_type:
            self.logger.log(f"No {self.route_type.value} route, using {route.type.value}")
        if self.renderer:
            self.renderer.show_routes([route], active=route)

        self.hazards = detect_route_hazards(route, warnings)
        if self.hazards:
            self.logger.log("Hazards on route", {
                "count": len(self.hazards),
                "first_at": round(self.hazards[0].distance_along_route_m),
            })
        self.ride_start_time = self.clock()
        return True

    def _accept_fix(self, fix: LocationFix):
        if self.last_fix:
            self.ridden_distance += distance_meters(self.last_fix.coordinate, fix.coordinate)
        self.last_fix = fix
        return self.controller.on_fix(fix)

    def _update_map(self, fix: LocationFix):
        intent = self.camera.update(self.controller.mode, fix, self.controller.tracker.travel_bearing())
        if self.renderer:
            self.renderer.apply_camera(intent)
            self.renderer.show_state(self.controller.state)

        if not self.loader:
            return
        reported = None
        if hasattr(self.renderer, "get_visible_bounds"):
            reported = self.renderer.get_visible_bounds()
        if intent.should_recenter:
            # Bounds reported this tick trail the recenter, so use the new view
            loaded = self.loader.follow(viewport_bounds(intent.center, intent.zoom))
        else:
            if reported is not None:
                self.loader.on_map_moved(reported)
            loaded = self.loader.poll()
        if loaded and self.renderer:
            self.renderer.show_features(self.loader.features)

    def _announce_hazards(self, position: Coordinate):
        route = self.controller.state.active_route
        if not self.hazards or route is None:
            return
        for hazard, ahead in upcoming_hazards(self.hazards, position, route):
            key = hazard.warning.id
            if key in self.announced_hazards or ahead > HAZARD_ANNOUNCE_DISTANCE:
                continue
            self.announced_hazards.add(key)
            self.logger.log("Hazard ahead", {
                "type": hazard.warning.type,
                "title": hazard.warning.title,
                "ahead": round(ahead),
            })

    def update(self) -> bool:
        """Main update loop - returns False when the ride is complete"""
        self.periodic_update()

        try:
            fix = self.location_source.get_fix()
        except LocationUnavailableError as e:
            self.controller.on_location_unavailable(str(e))
            if self.renderer:
                self.renderer.show_state(self.controller.state)
            return True  # Keep the route, retry on the next poll
        if not fix:
            self.logger.log("GPS fix failed", {"status": self.location_source.get_status()
                                               if hasattr(self.location_source, "get_status") else "unknown"})
            return True

        progress = self._accept_fix(fix)
        self._update_map(fix)

        if progress is None:
            return True
        if progress.status == ProgressStatus.ARRIVED:
            self.arrived = True
            self.logger.log("Destination reached", {"ridden_distance": round(self.ridden_distance)})
            return False
        if progress.status == ProgressStatus.PROGRESSING:
            self._announce_hazards(fix.coordinate)
        return True

    def get_poll_interval(self) -> float:
        """Get poll interval, respecting playback speed if applicable"""
        if isinstance(self.location_source, GPSPlayback):
            return self.location_source.get_poll_interval()
        return self.config["gps_poll_interval"]

    def is_playback_finished(self) -> bool:
        if isinstance(self.location_source, GPSPlayback):
            return self.location_source.is_finished()
        return False

    def summary(self) -> dict:
        state = self.controller.state
        return {
            "arrived": self.arrived,
            "ridden_distance": round(self.ridden_distance),
            "distance_remaining": round(state.distance_remaining_meters),
            "duration": round(self.clock() - self.ride_start_time) if self.ride_start_time else 0,
        }

    def run(self) -> bool:
        """Run the ride. Returns True when the destination was reached."""
        try:
            if not self.initialize():
                return False

            while self.update():
                if self.is_playback_finished():
                    self.logger.log("Playback finished")
                    break
                self.sleep(self.get_poll_interval())
        except KeyboardInterrupt:
            self.logger.log("Ride interrupted by user")
        finally:
            if isinstance(self.location_source, GPSRecorder):
                self.location_source.save(self.logger)
            self.logger.log("Ride summary", self.summary())
            self.controller.stop_navigation()
            self.logger.close()

        return self.arrived
