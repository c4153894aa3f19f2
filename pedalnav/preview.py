"""Static HTML preview of candidate routes."""

from typing import Optional

import folium
from folium import plugins

from .debug_gui import ROUTE_COLORS
from .errors import InvalidInputError
from .models import RouteResult
from .routing import detect_route_hazards

SURFACE_COLORS = {
    "excellent": "#16a34a",
    "good": "#84cc16",
    "moderate": "#eab308",
    "poor": "#dc2626",
    "special": "#9333ea",
    "unknown": "#9ca3af",
}


def create_route_map(routes: list[RouteResult], warnings: Optional[list] = None) -> folium.Map:
    """Interactive map with one layer per route, its surfaces and nearby hazards."""
    if not routes:
        raise InvalidInputError("No routes to preview")

    start = routes[0].origin
    m = folium.Map(
        location=[start.latitude, start.longitude],
        zoom_start=14,
        tiles="CartoDB positron"
    )
    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)

    for route in routes:
        layer = folium.FeatureGroup(name=f"{route.type.label} route", show=True)
        popup_text = f"""
            <b>{route.type.label}</b><br>
            Distance: {route.distance_km:.2f} km<br>
            Duration: {route.duration_minutes:.0f} min
        """
        folium.PolyLine(
            [[p.latitude, p.longitude] for p in route.points],
            weight=6,
            color=ROUTE_COLORS[route.type.value],
            opacity=0.7,
            popup=folium.Popup(popup_text, max_width=200)
        ).add_to(layer)
        layer.add_to(m)

        surfaces = folium.FeatureGroup(name=f"{route.type.label} surfaces", show=False)
        for segment in route.surface_segments():
            if len(segment.points) < 2:
                continue
            folium.PolyLine(
                [[p.latitude, p.longitude] for p in segment.points],
                weight=4,
                color=SURFACE_COLORS[segment.quality],
                opacity=0.9,
                tooltip=f"{segment.surface} ({segment.quality})"
            ).add_to(surfaces)
        surfaces.add_to(m)

        for hazard in detect_route_hazards(route, warnings or []):
            w = hazard.warning
            folium.Marker(
                [w.latitude, w.longitude],
                popup=f"<b>{w.title}</b><br>{w.type}, {w.severity}<br>"
                      f"{hazard.distance_along_route_m:.0f} m along {route.type.label.lower()} route",
                icon=folium.Icon(color="red", icon="warning-sign")
            ).add_to(m)

    end = routes[0].destination
    folium.Marker([start.latitude, start.longitude], popup="Start",
                  icon=folium.Icon(color="blue", icon="play")).add_to(m)
    folium.Marker([end.latitude, end.longitude], popup="Destination",
                  icon=folium.Icon(color="green", icon="flag")).add_to(m)

    folium.LayerControl().add_to(m)
    plugins.Fullscreen().add_to(m)
    lats = [p.latitude for r in routes for p in r.points]
    lons = [p.longitude for r in routes for p in r.points]
    m.fit_bounds([[min(lats), min(lons)], [max(lats), max(lons)]])
    return m


def write_route_preview(routes: list[RouteResult], path: str, warnings: Optional[list] = None) -> str:
    create_route_map(routes, warnings).save(path)
    return path
