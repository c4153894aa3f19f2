"""Browser debug map for pedalnav.

A Leaflet page is served over HTTP and kept up to date over a WebSocket:
camera intents, routes, features, navigation state and log lines are pushed
to it. Clicking the map sends a location fix back and panning it reports
the visible bounds, so a ride can be driven from a desktop browser.
"""

import asyncio
import http.server
import json
import queue
import threading
import time
import webbrowser
from typing import Optional

import websockets

from .errors import InvalidInputError
from .logger import Logger
from .models import BoundingBox, CameraIntent, LocationFix, NavigationState, RouteResult


ROUTE_COLORS = {
    "fastest": "#3b82f6",
    "safest": "#22c55e",
    "shortest": "#f97316",
}

FEATURE_COLORS = {
    "warning": "#dc2626",
    "community_poi": "#9333ea",
}

MAX_LOG_LINES = 150

PAGE_TEMPLATE = '''<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>pedalnav debug map</title>
<link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
<script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
<style>
html, body { margin: 0; height: 100%; font: 13px system-ui, sans-serif; }
#layout { display: grid; grid-template-columns: 320px 1fr; height: 100%; }
#side { display: flex; flex-direction: column; background: #0f172a; color: #cbd5e1; }
#side h3 { margin: 14px 14px 6px; font-size: 11px; letter-spacing: 1px; color: #64748b; }
#link { margin: 14px; padding: 6px 10px; border-radius: 4px; background: #b91c1c; color: #fff; }
#link.up { background: #15803d; }
#stats { margin: 0 14px; border-collapse: collapse; }
#stats td { padding: 3px 0; }
#stats td + td { text-align: right; color: #f8fafc; font-weight: 600; }
#log { flex: 1; margin: 0 14px 14px; overflow-y: auto; font: 11px ui-monospace, monospace; }
#log p { margin: 0 0 4px; }
#log em { color: #7dd3fc; font-style: normal; }
#map { height: 100%; }
.rider { width: 14px; height: 14px; border-radius: 50%; background: #2563eb; border: 2px solid #fff; }
</style>
</head>
<body>
<div id="layout">
  <div id="side">
    <div id="link">offline</div>
    <h3>NAVIGATION</h3>
    <table id="stats">
      <tr><td>Mode</td><td id="mode">-</td></tr>
      <tr><td>Remaining</td><td id="remaining">-</td></tr>
      <tr><td>ETA</td><td id="eta">-</td></tr>
      <tr><td>GPS</td><td id="gps">-</td></tr>
      <tr><td>Off route</td><td id="off-route">-</td></tr>
      <tr><td>Bearing / zoom</td><td id="camera">-</td></tr>
    </table>
    <h3>LOG</h3>
    <div id="log"></div>
  </div>
  <div id="map"></div>
</div>
<script>
var socket;
var map = L.map('map').setView([48.8566, 2.3522], 15);
L.tileLayer('https://tile.openstreetmap.org/{z}/{x}/{y}.png', {
  maxZoom: 19, attribution: 'OpenStreetMap contributors'
}).addTo(map);
var routes = L.layerGroup().addTo(map);
var features = L.layerGroup().addTo(map);
var rider = L.marker([0, 0], {icon: L.divIcon({className: 'rider', iconSize: [14, 14]})});
var featureColors = {{FEATURE_COLORS}};

function text(id, value) { document.getElementById(id).textContent = value; }

function setLink(up) {
  var el = document.getElementById('link');
  el.textContent = up ? 'live' : 'offline';
  el.className = up ? 'up' : '';
}

var handlers = {
  camera: function(cam) {
    var zoom = Math.round(cam.zoom);
    if (cam.recenter) { map.setView([cam.center.lat, cam.center.lon], zoom); }
    else if (zoom !== map.getZoom()) { map.setZoom(zoom); }
    text('camera', Math.round(cam.bearing) + '\\u00b0 / ' + cam.zoom);
  },
  routes: function(payload) {
    routes.clearLayers();
    payload.routes.forEach(function(r) {
      var on = payload.active === r.type;
      L.polyline(r.points, {color: r.color, weight: on ? 7 : 4, opacity: on ? 0.9 : 0.45})
        .bindPopup(r.label + ': ' + r.distance_km.toFixed(2) + ' km, ' + Math.round(r.duration_min) + ' min')
        .addTo(routes);
    });
  },
  features: function(list) {
    features.clearLayers();
    list.forEach(function(f) {
      L.circleMarker([f.lat, f.lon], {radius: 6, weight: 2, color: '#fff', fillOpacity: 1,
                                      fillColor: featureColors[f.kind] || '#0284c7'})
        .bindPopup(f.title || f.name || f.type)
        .addTo(features);
    });
  },
  state: function(s) {
    text('mode', s.mode);
    text('remaining', Math.round(s.distance_remaining) + ' m');
    text('eta', Math.round(s.eta_seconds / 60) + ' min');
    text('gps', s.gps_available ? 'ok' : 'lost');
    text('off-route', s.off_route ? 'yes' : 'no');
    if (s.position) { rider.setLatLng([s.position.lat, s.position.lon]).addTo(map); }
  },
  log: function(line) {
    var box = document.getElementById('log');
    var p = document.createElement('p');
    p.textContent = new Date().toLocaleTimeString() + ' ' + line.message + ' ';
    if (line.data) {
      var em = document.createElement('em');
      em.textContent = JSON.stringify(line.data);
      p.appendChild(em);
    }
    box.appendChild(p);
    while (box.childElementCount > {{MAX_LOG_LINES}}) { box.firstElementChild.remove(); }
    box.scrollTop = box.scrollHeight;
  }
};

function post(type, data) {
  if (socket && socket.readyState === 1) { socket.send(JSON.stringify({type: type, data: data})); }
}

function reportBounds() {
  var b = map.getBounds();
  post('bounds', {south: b.getSouth(), west: b.getWest(), north: b.getNorth(), east: b.getEast()});
}

function connectSocket() {
  socket = new WebSocket('ws://' + location.hostname + ':{{WS_PORT}}');
  socket.onopen = function() { setLink(true); reportBounds(); };
  socket.onclose = function() { setLink(false); setTimeout(connectSocket, 2000); };
  socket.onmessage = function(ev) {
    var msg = JSON.parse(ev.data);
    if (handlers[msg.type]) { handlers[msg.type](msg.data); }
  };
}

map.on('click', function(e) { post('location', {lat: e.latlng.lat, lon: e.latlng.lng}); });
map.on('moveend', reportBounds);
connectSocket();
</script>
</body>
</html>
'''


def render_page(ws_port: int) -> str:
    return (PAGE_TEMPLATE
            .replace("{{WS_PORT}}", str(ws_port))
            .replace("{{FEATURE_COLORS}}", json.dumps(FEATURE_COLORS))
            .replace("{{MAX_LOG_LINES}}", str(MAX_LOG_LINES)))


def routes_payload(routes: list[RouteResult], active: Optional[RouteResult] = None) -> dict:
    """JSON shape the page draws polylines from"""
    return {
        "routes": [
            {
                "type": r.type.value,
                "label": r.type.label,
                "color": ROUTE_COLORS[r.type.value],
                "points": [[p.latitude, p.longitude] for p in r.points],
                "distance_km": r.distance_km,
                "duration_min": r.duration_minutes,
            }
            for r in routes
        ],
        "active": active.type.value if active else None,
    }


class _PageHandler(http.server.BaseHTTPRequestHandler):
    """Serves the rendered page at / and nothing else"""

    def do_GET(self):
        if self.path not in ("/", "/index.html"):
            self.send_error(404)
            return
        body = self.server.page
        self.send_response(200)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        # Request lines would drown the ride log
        return


class DebugServer:
    """Debug map server; satisfies MapRenderer.

    The HTTP server and the WebSocket event loop each run in a daemon
    thread. Messages from the page land in two queues that the ride loop
    drains: location_queue (map clicks) and bounds_queue (viewport moves).
    """

    def __init__(self, http_port: int = 8080, ws_port: int = 8765, logger: Optional[Logger] = None):
        self.http_port = http_port
        self.ws_port = ws_port
        self.logger = logger or Logger(quiet=True)
        self.location_queue: queue.Queue = queue.Queue()
        self.bounds_queue: queue.Queue = queue.Queue()
        self.clients: set = set()
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._httpd: Optional[http.server.ThreadingHTTPServer] = None
        self._closed: Optional[asyncio.Future] = None
        self._threads: list[threading.Thread] = []

    def start(self, open_browser: bool = True):
        self._httpd = http.server.ThreadingHTTPServer(("", self.http_port), _PageHandler)
        self._httpd.page = render_page(self.ws_port).encode("utf-8")
        self._threads = [
            threading.Thread(target=self._httpd.serve_forever, name="debug-http", daemon=True),
            threading.Thread(target=self._serve_websocket, name="debug-ws", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        # The page reconnects on its own, this only avoids a first failed attempt
        time.sleep(0.3)

        url = f"http://localhost:{self.http_port}/"
        self.logger.log("Debug map available", {"url": url, "ws_port": self.ws_port})
        if open_browser:
            webbrowser.open(url)

    def _serve_websocket(self):
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._closed = self.loop.create_future()

        async def session(websocket):
            self.clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_client_message(message)
            finally:
                self.clients.discard(websocket)

        async def serve():
            async with websockets.serve(session, "localhost", self.ws_port):
                await self._closed

        try:
            self.loop.run_until_complete(serve())
        except OSError as e:
            self.logger.log("WebSocket server failed", {"port": self.ws_port, "error": str(e)})
        finally:
            self.loop.close()

    def handle_client_message(self, message: str):
        """Route one page message into the location or bounds queue"""
        try:
            envelope = json.loads(message)
            kind, data = envelope.get("type"), envelope.get("data") or {}
            if kind == "location":
                fix = LocationFix.create(data["lat"], data["lon"], time.time(), accuracy=0)
                self.location_queue.put(fix)
            elif kind == "bounds":
                self.bounds_queue.put(BoundingBox(data["south"], data["west"], data["north"], data["east"]))
        except (json.JSONDecodeError, KeyError, TypeError, AttributeError, InvalidInputError) as e:
            self.logger.log("Ignoring malformed debug map message", {"error": str(e)})

    def _send_message(self, kind: str, data):
        loop = self.loop
        if not self.clients or loop is None or loop.is_closed():
            return
        text = json.dumps({"type": kind, "data": data}, default=str)

        async def broadcast():
            for websocket in list(self.clients):
                try:
                    await websocket.send(text)
                except websockets.ConnectionClosed:
                    self.clients.discard(websocket)

        asyncio.run_coroutine_threadsafe(broadcast(), loop)

    def apply_camera(self, intent: CameraIntent):
        self._send_message("camera", intent.to_dict())

    def show_routes(self, routes: list[RouteResult], active: Optional[RouteResult] = None):
        self._send_message("routes", routes_payload(routes, active))

    def show_features(self, features: list):
        self._send_message("features", [f.to_dict() for f in features])

    def show_state(self, state: NavigationState):
        self._send_message("state", state.to_dict())

    def send_log(self, message: str, data: Optional[dict] = None):
        self._send_message("log", {"message": message, "data": data})

    def get_clicked_fix(self, timeout: float = 30) -> Optional[LocationFix]:
        try:
            return self.location_queue.get(timeout=timeout) if timeout > 0 else self.location_queue.get_nowait()
        except queue.Empty:
            return None

    def get_visible_bounds(self) -> Optional[BoundingBox]:
        """Most recent viewport, or None if the page has not moved since the last call"""
        latest = None
        while not self.bounds_queue.empty():
            latest = self.bounds_queue.get_nowait()
        return latest

    def stop(self):
        if self._httpd is not None:
            self._httpd.shutdown()
            self._httpd.server_close()
            self._httpd = None
        if self.loop is not None and self._closed is not None and not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self._closed.set_result, None)


class WebSocketGPS:
    """LocationSource that takes its fixes from clicks on the debug map"""

    def __init__(self, server: DebugServer):
        self.server = server
        self.last_fix: Optional[LocationFix] = None
        self.consecutive_failures = 0

    def get_fix(self, timeout: int = 30) -> Optional[LocationFix]:
        fix = self.server.get_clicked_fix(timeout=timeout)
        if fix is None:
            self.consecutive_failures += 1
            return None
        self.last_fix = fix
        self.consecutive_failures = 0
        return fix

    def get_status(self) -> str:
        if self.last_fix is None:
            return "Debug map: click to place the rider"
        c = self.last_fix.coordinate
        return f"Debug map: last click {c.latitude:.5f}, {c.longitude:.5f}"
