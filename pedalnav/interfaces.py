"""Collaborator contracts.

The engine never talks to a platform API directly. Anything that supplies
fixes, computes routes, draws the map or loads features is passed in and
only has to satisfy one of these protocols.
"""

from typing import Optional, Protocol, runtime_checkable

from .models import BoundingBox, CameraIntent, Coordinate, LocationFix, NavigationState, RouteResult


@runtime_checkable
class LocationSource(Protocol):
    def get_fix(self, timeout: int = 30) -> Optional[LocationFix]:
        """Next fix, or None when none is available yet.

        Raises LocationUnavailableError when the location API is missing or
        permission is denied.
        """
        ...


@runtime_checkable
class RoutingProvider(Protocol):
    def calculate_routes(self, start: Coordinate, end: Coordinate) -> list[RouteResult]:
        """Zero to three routes, raising RoutingUnavailableError on failure"""
        ...


@runtime_checkable
class MapRenderer(Protocol):
    def apply_camera(self, intent: CameraIntent) -> None:
        ...

    def show_routes(self, routes: list[RouteResult], active: Optional[RouteResult] = None) -> None:
        ...

    def show_features(self, features: list) -> None:
        ...

    def show_state(self, state: NavigationState) -> None:
        ...


@runtime_checkable
class FeatureStore(Protocol):
    def fetch(self, bounds: BoundingBox) -> list:
        """Features inside bounds, raising DataFetchError on failure"""
        ...
