"""Navigation session state machine.

IDLE -> PREVIEWING -> NAVIGATING -> ARRIVED -> IDLE, with stop valid from
any state. The controller is the only writer of NavigationState; every
transition swaps in a new frozen snapshot, so readers never see a
half-updated state.

Remaining distance is the straight line from the rider to the route's
terminal point, not the distance along the remaining path. It
under-estimates on winding routes.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Union

from .breadcrumbs import BreadcrumbTracker
from .config import CONFIG
from .errors import NavigationStateError
from .geo import distance_meters, point_to_segment_distance
from .logger import Logger
from .models import Coordinate, LocationFix, NavigationMode, NavigationState, RouteResult, RouteType
from .routing import route_for


class ProgressStatus(Enum):
    PROGRESSING = "progressing"
    OFF_ROUTE = "off_route"
    ARRIVED = "arrived"


@dataclass
class ProgressUpdate:
    """Returned by on_location_update() for every navigating fix."""
    status: ProgressStatus
    message: str
    distance_remaining_m: float
    distance_from_route_m: float = 0.0
    estimated_seconds_remaining: int = 0
    nearest_point_index: int = 0
    progress: float = 0.0


@dataclass(frozen=True)
class RouteRequest:
    """Ticket for an in-flight route computation"""
    token: int
    session_id: int


def nearest_point_index(points, position: Coordinate, start: int = 0) -> int:
    """Index of the route point closest to position, never before start"""
    best = start
    best_dist = float("inf")
    for i in range(start, len(points)):
        dist = distance_meters(points[i], position)
        if dist < best_dist:
            best_dist = dist
            best = i
    return best


def distance_from_route(points, position: Coordinate) -> float:
    return min(point_to_segment_distance(position, a, b) for a, b in zip(points, points[1:]))


class NavigationController:
    """Owns the navigation state and the breadcrumb trail."""

    def __init__(self, config: dict = CONFIG, tracker: Optional[BreadcrumbTracker] = None,
                 logger: Optional[Logger] = None):
        self.arrival_threshold = config["arrival_threshold"]
        self.off_route_threshold = config["off_route_threshold"]
        self.average_speed = config["average_cycling_speed"]
        self.min_eta_speed = config["min_eta_speed"]
        self.tracker = tracker or BreadcrumbTracker(config)
        self.logger = logger or Logger(quiet=True)

        self._state = NavigationState()
        self._request_seq = 0

    @property
    def state(self) -> NavigationState:
        return self._state

    @property
    def mode(self) -> NavigationMode:
        return self._state.mode

    def _update(self, **changes) -> NavigationState:
        self._state = replace(self._state, **changes)
        return self._state

    def _eta_seconds(self, distance: float, speed: Optional[float]) -> int:
        if speed is None or speed < self.min_eta_speed:
            speed = self.average_speed
        return int(distance / speed)

    # Event entry points

    def on_fix(self, fix: LocationFix) -> Optional[ProgressUpdate]:
        """Feed one fix. Returns progress while navigating, else None."""
        self._update(last_position=fix.coordinate, current_speed=fix.speed, gps_available=True)
        self.tracker.add_fix(fix)
        if self._state.mode == NavigationMode.NAVIGATING:
            return self.on_location_update(fix)
        return None

    def on_location_unavailable(self, reason: str = ""):
        """GPS lost: flag it but keep route and last position"""
        if self._state.gps_available:
            self.logger.log("GPS unavailable", {"reason": reason})
        self._update(gps_available=False)

    # Route preview and selection

    def begin_route_request(self) -> RouteRequest:
        """Start a route computation; only the latest request may deliver"""
        self._request_seq += 1
        return RouteRequest(self._request_seq, self._state.session_id)

    def deliver_routes(self, request: RouteRequest, routes: list[RouteResult]) -> bool:
        """Apply routes from a finished request. Returns False if it went stale."""
        if request.token != self._request_seq or request.session_id != self._state.session_id:
            self.logger.log("Discarding stale route result", {
                "token": request.token, "latest": self._request_seq,
            })
            return False
        self.preview_routes(routes)
        return True

    def preview_routes(self, routes: list[RouteResult]) -> NavigationState:
        """Offer new candidates. A finished session is closed first."""
        if self._state.mode == NavigationMode.NAVIGATING:
            raise NavigationStateError("Cannot preview routes while navigating")
        if not routes:
            return self._state
        if self._state.mode == NavigationMode.ARRIVED:
            self._state = self._fresh_state()

        if len(routes) >= 2:
            self.logger.log("Previewing routes", {"routes": [r.summary() for r in routes]})
            return self._update(mode=NavigationMode.PREVIEWING, candidate_routes=tuple(routes))
        return self._update(candidate_routes=tuple(routes))

    def select_route(self, choice: Union[RouteResult, RouteType]) -> NavigationState:
        """Promote one candidate (or the best substitute for a type) and navigate it.

        A RouteResult must be one of the previewed candidates; use
        start_navigation() to navigate an arbitrary route.
        """
        candidates = list(self._state.candidate_routes)
        if isinstance(choice, RouteType):
            route = route_for(candidates, choice)
            if route is None:
                raise NavigationStateError(f"No candidate route to select for {choice.value}")
        elif choice in candidates:
            route = choice
        else:
            raise NavigationStateError(f"{choice.type.label} route is not one of the previewed candidates")
        return self.start_navigation(route)

    # Navigation session

    def start_navigation(self, route: RouteResult) -> NavigationState:
        if self._state.mode == NavigationMode.NAVIGATING:
            raise NavigationStateError("Navigation already in progress; stop it first")

        origin = self._state.last_position or route.origin
        remaining = distance_meters(origin, route.destination)
        self._update(
            mode=NavigationMode.NAVIGATING,
            active_route=route,
            candidate_routes=(),
            distance_remaining_meters=remaining,
            nearest_remaining_point_index=0,
            has_arrived=False,
            is_off_route=False,
            off_route_distance_meters=0.0,
            estimated_seconds_remaining=self._eta_seconds(remaining, self._state.current_speed),
            session_id=self._state.session_id + 1,
        )
        self.logger.log("Navigation started", {
            "route": route.summary(),
            "distance_remaining": round(remaining, 1),
        })
        return self._state

    def on_location_update(self, fix: LocationFix) -> ProgressUpdate:
        state = self._state
        if state.mode != NavigationMode.NAVIGATING:
            raise NavigationStateError(f"Location update while {state.mode.value}, not navigating")

        route = state.active_route
        position = fix.coordinate
        remaining = distance_meters(position, route.destination)
        index = nearest_point_index(route.points, position, state.nearest_remaining_point_index)
        off_route_distance = distance_from_route(route.points, position)
        off_route = off_route_distance > self.off_route_threshold
        eta = self._eta_seconds(remaining, fix.speed)

        changes = dict(
            last_position=position,
            current_speed=fix.speed,
            gps_available=True,
            distance_remaining_meters=remaining,
            nearest_remaining_point_index=index,
            is_off_route=off_route,
            off_route_distance_meters=off_route_distance,
            estimated_seconds_remaining=eta,
        )

        if remaining < self.arrival_threshold and not state.has_arrived:
            changes.update(mode=NavigationMode.ARRIVED, has_arrived=True,
                           is_off_route=False, estimated_seconds_remaining=0)
            self._update(**changes)
            self.logger.log("Arrived at destination", {"distance": round(remaining, 1)})
            return ProgressUpdate(
                status=ProgressStatus.ARRIVED,
                message="You have arrived.",
                distance_remaining_m=remaining,
                distance_from_route_m=off_route_distance,
                nearest_point_index=index,
                progress=self._state.progress,
            )

        if off_route and not state.is_off_route:
            self.logger.log("Off route", {"distance": round(off_route_distance, 1)})
        self._update(**changes)

        if off_route:
            status = ProgressStatus.OFF_ROUTE
            message = f"Off route by {off_route_distance:.0f} m."
        else:
            status = ProgressStatus.PROGRESSING
            message = f"{self._state.remaining_distance_text} to destination."
        return ProgressUpdate(
            status=status,
            message=message,
            distance_remaining_m=remaining,
            distance_from_route_m=off_route_distance,
            estimated_seconds_remaining=eta,
            nearest_point_index=index,
            progress=self._state.progress,
        )

    def _fresh_state(self) -> NavigationState:
        """Empty session that keeps what is known about the rider"""
        state = self._state
        return NavigationState(
            last_position=state.last_position,
            current_speed=state.current_speed,
            gps_available=state.gps_available,
            session_id=state.session_id + 1,
        )

    def stop_navigation(self) -> NavigationState:
        """Back to IDLE from anywhere. No-op when already idle."""
        state = self._state
        if state.mode == NavigationMode.IDLE and state.active_route is None and not state.candidate_routes:
            return state

        self._state = self._fresh_state()
        self.tracker.clear()
        self.logger.log("Navigation stopped", {"previous_mode": state.mode.value})
        return self._state
