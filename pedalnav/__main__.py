#!/usr/bin/env python3
"""
pedalnav - Cycling navigation to a destination

Usage:
    python -m pedalnav DEST_LAT DEST_LON [options]

Options:
    --lat LAT          Starting latitude (for testing without GPS)
    --lon LON          Starting longitude (for testing without GPS)
    --record FILE      Record GPS trace to JSON file for debugging
    --playback FILE    Playback GPS trace from JSON file
    --speed FACTOR     Playback speed multiplier (default: 1.0)
    --route TYPE       fastest, safest or shortest (default: safest)
    --provider NAME    graphhopper or local (default: graphhopper)
    --preview          Calculate and preview routes without riding
    --html FILE        Write an HTML preview of the candidate routes
    --features FILE    Community POIs and warnings (JSON)
    --debug-gui        Run with web-based debug map (requires --lat/--lon)
    --log FILE         Log file path
    --config FILE      JSON file overriding configuration values
"""

import argparse
from datetime import datetime
from pathlib import Path

from .app import Ride
from .config import load_config
from .debug_gui import DebugServer, WebSocketGPS
from .errors import PedalNavError
from .features import MapDataLoader, OverpassPOIStore, StaticFeatureStore
from .gps import GPS, GPSPlayback, GPSRecorder
from .graph import LocalGraphProvider
from .logger import Logger
from .models import Coordinate, RouteType
from .osm import OSMFetcher
from .routing import GraphHopperProvider


def main():
    parser = argparse.ArgumentParser(
        description="Cycling navigation: route to a destination and follow it"
    )
    parser.add_argument("dest_lat", type=float, help="Destination latitude")
    parser.add_argument("dest_lon", type=float, help="Destination longitude")
    parser.add_argument("--lat", type=float, help="Starting latitude")
    parser.add_argument("--lon", type=float, help="Starting longitude")
    parser.add_argument("--record", metavar="FILE", help="Record GPS trace to file")
    parser.add_argument("--playback", metavar="FILE", help="Playback GPS trace from file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--route", choices=[t.value for t in RouteType], default=RouteType.SAFEST.value,
                        help="Route to follow (default: safest)")
    parser.add_argument("--provider", choices=["graphhopper", "local"], default="graphhopper",
                        help="Routing backend (default: graphhopper)")
    parser.add_argument("--preview", action="store_true",
                        help="Calculate and preview routes without riding")
    parser.add_argument("--html", metavar="FILE", help="Write route preview HTML")
    parser.add_argument("--features", metavar="FILE", help="Community POIs and warnings JSON")
    parser.add_argument("--debug-gui", action="store_true",
                        help="Run with web-based debug map (requires --lat and --lon)")
    parser.add_argument("--log", metavar="FILE", help="Log file path")
    parser.add_argument("--config", metavar="FILE", help="JSON configuration overrides")

    args = parser.parse_args()

    # Validate lat/lon - must provide both or neither
    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be used together")
    if args.debug_gui and args.lat is None:
        parser.error("--debug-gui requires --lat and --lon")
    if args.playback and not Path(args.playback).exists():
        parser.error(f"Playback file not found: {args.playback}")

    try:
        config = load_config(args.config)
        destination = Coordinate(args.dest_lat, args.dest_lon)
        start = Coordinate(args.lat, args.lon) if args.lat is not None else None
    except (PedalNavError, OSError) as e:
        parser.error(str(e))

    log_path = args.log
    if not log_path:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = f"pedalnav_{timestamp}.log"

    debug_server = DebugServer() if args.debug_gui else None
    logger = Logger(log_path, callback=debug_server.send_log if debug_server else None)
    if debug_server:
        debug_server.logger = logger
        debug_server.start()

    fetcher = OSMFetcher(logger=logger)
    if args.provider == "local":
        provider = LocalGraphProvider(fetcher, config, logger)
    else:
        provider = GraphHopperProvider(config=config, logger=logger)

    stores = [OverpassPOIStore(fetcher)]
    if args.features:
        try:
            stores.append(StaticFeatureStore.from_file(args.features))
        except PedalNavError as e:
            parser.error(str(e))
    loader = MapDataLoader(stores, config, logger=logger)

    # Set up GPS source
    if debug_server:
        source = WebSocketGPS(debug_server)
    elif args.playback:
        source = GPSPlayback(args.playback, args.speed)
    elif args.record:
        source = GPSRecorder(GPS(), args.record)
    else:
        source = GPS()

    ride = Ride(
        destination,
        provider,
        source,
        renderer=debug_server,
        loader=loader,
        route_type=RouteType(args.route),
        start=start,
        html_output=args.html,
        preview_only=args.preview,
        config=config,
        logger=logger,
    )
    ride.run()
    if debug_server:
        debug_server.stop()


if __name__ == "__main__":
    main()
