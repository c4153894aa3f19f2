"""OpenStreetMap data fetching via Overpass API with disk caching."""

import hashlib
import json
import os
import time
from typing import Optional

import requests

from .errors import DataFetchError
from .logger import Logger
from .models import BoundingBox

# Ways a bicycle may use
CYCLEABLE_HIGHWAYS = (
    "cycleway|path|track|residential|living_street|service|unclassified|"
    "tertiary|secondary|primary|trunk|footway|pedestrian"
)

POI_SELECTORS = [
    '["amenity"="bicycle_parking"]',
    '["amenity"="repair_station"]',
    '["amenity"="charging_station"]["bicycle"="yes"]',
    '["shop"="bicycle"]',
    '["amenity"="drinking_water"]',
    '["man_made"="water_tap"]',
    '["amenity"="toilets"]',
    '["amenity"="shelter"]',
]


def _bbox(bounds: BoundingBox) -> str:
    return f"{bounds.south},{bounds.west},{bounds.north},{bounds.east}"


class OSMFetcher:
    """Fetch street and POI data from OpenStreetMap via Overpass API"""

    OVERPASS_URL = "https://overpass-api.de/api/interpreter"
    CACHE_DIR = "osm_cache"
    CACHE_MAX_AGE = 7 * 24 * 3600  # 7 days

    def __init__(self, cache_dir: Optional[str] = CACHE_DIR, session=None,
                 logger: Optional[Logger] = None):
        self.cache_dir = cache_dir
        self.session = session or requests
        self.logger = logger or Logger(quiet=True)

    def _cache_path(self, kind: str, bounds: BoundingBox) -> str:
        # Round coordinates to reduce near-duplicate caches
        key = f"{kind}:{bounds.south:.5f},{bounds.west:.5f},{bounds.north:.5f},{bounds.east:.5f}"
        h = hashlib.md5(key.encode()).hexdigest()[:12]
        return os.path.join(self.cache_dir, f"{kind}_{h}.json")

    def _find_covering_cache(self, kind: str, bounds: BoundingBox) -> Optional[dict]:
        """Find a fresh cached response whose box contains the requested box."""
        if not self.cache_dir or not os.path.isdir(self.cache_dir):
            return None
        now = time.time()
        for fname in os.listdir(self.cache_dir):
            if not (fname.startswith(f"{kind}_") and fname.endswith(".json")):
                continue
            fpath = os.path.join(self.cache_dir, fname)
            try:
                age = now - os.path.getmtime(fpath)
                if age > self.CACHE_MAX_AGE:
                    continue
                with open(fpath) as f:
                    cached = json.load(f)
                meta = cached.get("_cache_meta")
                if not meta:
                    continue
                cached_bounds = BoundingBox(**meta["bounds"])
                if cached_bounds.contains(bounds):
                    self.logger.log("Using cached OSM data", {"kind": kind, "age_h": round(age / 3600, 1)})
                    return {k: v for k, v in cached.items() if k != "_cache_meta"}
            except (json.JSONDecodeError, KeyError, TypeError, ValueError, OSError):
                continue
        return None

    def _save_cache(self, kind: str, bounds: BoundingBox, data: dict):
        os.makedirs(self.cache_dir, exist_ok=True)
        cache_data = dict(data)
        cache_data["_cache_meta"] = {"bounds": bounds.to_dict(), "fetched_at": time.time()}
        cache_path = self._cache_path(kind, bounds)
        with open(cache_path, "w") as f:
            json.dump(cache_data, f)
        self.logger.log("Cached OSM data", {"path": cache_path})

    def query(self, kind: str, bounds: BoundingBox, query: str, timeout: int = 30) -> dict:
        """Run an Overpass query, served from cache when a cached box covers it.

        Raises DataFetchError when Overpass cannot be reached or answers
        with an error.
        """
        cached = self._find_covering_cache(kind, bounds)
        if cached is not None:
            return cached

        self.logger.log("Fetching OSM data", {"kind": kind, "bounds": bounds.to_dict()})
        try:
            response = self.session.post(self.OVERPASS_URL, data={"data": query}, timeout=timeout + 30)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            self.logger.log("OSM fetch error", {"kind": kind, "error": str(e)})
            raise DataFetchError(f"Overpass request failed: {e}") from e

        if data.get("elements") and self.cache_dir:
            self._save_cache(kind, bounds, data)
        return data

    def fetch_ways(self, bounds: BoundingBox) -> dict:
        """All cycleable ways inside bounds, with their nodes"""
        # Scale timeout with area, larger boxes need more server time
        timeout = max(30, int(bounds.height * bounds.width * 20000))
        query = f"""
        [out:json][timeout:{timeout}];
        (
          way["highway"~"^({CYCLEABLE_HIGHWAYS})$"]["bicycle"!="no"]({_bbox(bounds)});
        );
        out body;
        >;
        out skel qt;
        """
        return self.query("ways", bounds, query, timeout)

    def fetch_pois(self, bounds: BoundingBox) -> dict:
        """Cycling-related POI nodes inside bounds"""
        box = _bbox(bounds)
        selectors = "\n".join(f"  node{selector}({box});" for selector in POI_SELECTORS)
        query = f"[out:json][timeout:15];\n(\n{selectors}\n);\nout;\n"
        return self.query("pois", bounds, query, 15)
