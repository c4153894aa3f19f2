"""Tests for map features, their stores and the viewport loader."""

import json

import pytest

from pedalnav.errors import DataFetchError, InvalidInputError
from pedalnav.features import (
    CommunityPOI,
    CommunityWarning,
    MapDataLoader,
    OverpassPOIStore,
    StaticFeatureStore,
    parse_osm_pois,
    poi_type_from_tags,
)
from pedalnav.models import BoundingBox

VISIBLE = BoundingBox(48.85, 2.34, 48.86, 2.36)


class FakeStore:
    def __init__(self, features=None, error=None):
        self.features = features or []
        self.error = error
        self.requests = []

    def fetch(self, bounds):
        self.requests.append(bounds)
        if self.error:
            raise self.error
        return list(self.features)


class FakeFetcher:
    def __init__(self, data):
        self.data = data

    def fetch_pois(self, bounds):
        return self.data


def poi_node(node_id, lat, lon, **tags):
    return {"type": "node", "id": node_id, "lat": lat, "lon": lon, "tags": tags}


@pytest.mark.parametrize("tags, expected", [
    ({"amenity": "bicycle_parking"}, "bike_parking"),
    ({"amenity": "repair_station"}, "bike_repair"),
    ({"amenity": "charging_station", "bicycle": "yes"}, "bike_charging"),
    ({"amenity": "charging_station"}, None),
    ({"shop": "bicycle"}, "bike_shop"),
    ({"man_made": "water_tap"}, "water_tap"),
    ({"amenity": "bench"}, None),
])
def test_poi_type_from_tags(tags, expected):
    assert poi_type_from_tags(tags) == expected


def test_parse_osm_pois():
    data = {"elements": [
        poi_node(1, 48.851, 2.341, amenity="drinking_water", name="Fountain"),
        poi_node(2, 48.852, 2.342, shop="bicycle", brand="Velo"),
        poi_node(3, 48.853, 2.343, amenity="bench"),
        {"type": "way", "id": 4, "nodes": [1, 2], "tags": {"amenity": "toilets"}},
    ]}
    pois = parse_osm_pois(data)
    assert [(p.osm_id, p.name, p.type) for p in pois] == [
        ("1", "Fountain", "drinking_water"),
        ("2", "Velo", "bike_shop"),
    ]


def test_overpass_store_filters_to_bounds():
    store = OverpassPOIStore(FakeFetcher({"elements": [
        poi_node(1, 48.855, 2.35, amenity="toilets"),
        poi_node(2, 48.95, 2.35, amenity="toilets"),
    ]}))
    assert [p.osm_id for p in store.fetch(VISIBLE)] == ["1"]


def test_static_store_from_file(tmp_path):
    path = tmp_path / "features.json"
    path.write_text(json.dumps({
        "pois": [{"id": 7, "name": "Pump", "type": "bike_repair", "latitude": 48.855, "longitude": 2.35}],
        "warnings": [
            {"id": "w1", "type": "pothole", "severity": "high", "title": "Deep pothole",
             "latitude": 48.856, "longitude": 2.351},
            {"id": "w2", "type": "construction", "latitude": 49.5, "longitude": 2.351, "is_active": False},
        ],
    }))
    store = StaticFeatureStore.from_file(str(path))
    assert isinstance(store.features[0], CommunityPOI)
    assert store.features[0].id == "7"
    assert [w.id for w in store.warnings] == ["w1", "w2"]
    assert store.warnings[1].title == "construction"
    assert not store.warnings[1].is_active
    assert [f.id for f in store.fetch(VISIBLE)] == ["7", "w1"]


def test_static_store_missing_file(tmp_path):
    with pytest.raises(DataFetchError):
        StaticFeatureStore.from_file(str(tmp_path / "missing.json"))


def test_static_store_incomplete_feature(tmp_path):
    path = tmp_path / "features.json"
    path.write_text(json.dumps({"warnings": [{"id": "w1", "latitude": 1.0, "longitude": 2.0}]}))
    with pytest.raises(InvalidInputError):
        StaticFeatureStore.from_file(str(path))


def test_feature_dicts_carry_their_kind():
    warning = CommunityWarning("w1", "pothole", "high", "Pothole", 48.85, 2.35)
    assert warning.to_dict()["kind"] == "warning"
    assert warning.coordinate.latitude == 48.85


def test_loader_debounces_map_moves(clock):
    poi = CommunityPOI("p1", "Pump", "bike_repair", 48.855, 2.35)
    store = FakeStore([poi])
    loader = MapDataLoader([store], clock=clock)

    for _ in range(5):
        loader.on_map_moved(VISIBLE)
        clock.advance(0.2)
    assert not loader.poll()
    assert store.requests == []

    clock.advance(1.0)
    assert loader.poll()
    assert len(store.requests) == 1
    assert store.requests[0].contains(VISIBLE)
    assert loader.features == [poi]


def test_loader_skips_views_inside_the_loaded_area(clock):
    store = FakeStore([])
    loader = MapDataLoader([store], clock=clock)
    assert loader.load(VISIBLE)
    loader.on_map_moved(VISIBLE)
    clock.advance(2.0)
    assert not loader.poll()
    assert len(store.requests) == 1

def test_loader_follows_ride_recenters_without_waiting(clock):
    store = FakeStore([])
    loader = MapDataLoader([store], clock=clock)
    loader.on_map_moved(VISIBLE)
    assert loader.follow(VISIBLE)
    assert len(store.requests) == 1
    # The pan queued before the recenter is dropped
    clock.advance(2.0)
    assert not loader.poll()
    assert not loader.follow(VISIBLE)
    assert len(store.requests) == 1



def test_loader_keeps_features_when_a_fetch_fails(clock):
    poi = CommunityPOI("p1", "Pump", "bike_repair", 48.855, 2.35)
    good = FakeStore([poi])
    loader = MapDataLoader([good], clock=clock)
    loader.load(VISIBLE)
    loaded = loader.policy.loaded_bounds

    error = DataFetchError("overpass down")
    loader.stores = [FakeStore(error=error)]
    far_away = BoundingBox(49.85, 2.34, 49.86, 2.36)
    assert not loader.load(far_away)
    assert loader.features == [poi]
    assert loader.last_error is error
    assert loader.policy.loaded_bounds == loaded

    # The next pan tries again
    loader.stores = [good]
    assert loader.load(far_away)
    assert loader.last_error is None


def test_loader_warnings_and_reset(clock):
    warning = CommunityWarning("w1", "pothole", "high", "Pothole", 48.855, 2.35)
    poi = CommunityPOI("p1", "Pump", "bike_repair", 48.855, 2.35)
    loader = MapDataLoader([FakeStore([warning, poi])], clock=clock)
    loader.load(VISIBLE, force=True)
    assert loader.warnings == [warning]
    loader.reset()
    assert loader.features == []
    assert loader.policy.loaded_bounds is None
