"""Tests for the navigation state machine."""

import dataclasses

import pytest

from pedalnav.errors import NavigationStateError
from pedalnav.models import NavigationMode, RouteType
from pedalnav.navigation import NavigationController, ProgressStatus, nearest_point_index


@pytest.fixture
def controller():
    return NavigationController()


@pytest.fixture
def route(straight_route):
    return straight_route(1000.0, RouteType.FASTEST)


def test_starts_idle(controller):
    state = controller.state
    assert state.mode == NavigationMode.IDLE
    assert state.active_route is None
    assert not state.has_arrived


def test_start_navigation_measures_from_route_origin(controller, route):
    state = controller.start_navigation(route)
    assert state.mode == NavigationMode.NAVIGATING
    assert state.active_route == route
    assert state.distance_remaining_meters == pytest.approx(1000, rel=1e-3)
    assert state.candidate_routes == ()


def test_start_navigation_measures_from_last_position(controller, route, origin, move, make_fix):
    controller.on_fix(make_fix(move(origin, north_m=400), 0))
    state = controller.start_navigation(route)
    assert state.distance_remaining_meters == pytest.approx(600, rel=1e-3)


def test_second_start_is_rejected(controller, route):
    controller.start_navigation(route)
    with pytest.raises(NavigationStateError):
        controller.start_navigation(route)
    assert controller.state.active_route == route


def test_arrives_once_near_the_end(controller, route, origin, move, make_fix):
    controller.start_navigation(route)

    midway = controller.on_fix(make_fix(move(origin, north_m=500), 1, speed=5.0))
    assert midway.status == ProgressStatus.PROGRESSING
    assert midway.message == "500 m to destination."
    assert not controller.state.has_arrived

    # 15 m short of the end, inside the 20 m threshold
    arrival = controller.on_fix(make_fix(move(origin, north_m=985), 2, speed=5.0))
    assert arrival.status == ProgressStatus.ARRIVED
    assert arrival.message == "You have arrived."
    state = controller.state
    assert state.mode == NavigationMode.ARRIVED
    assert state.has_arrived
    assert state.estimated_seconds_remaining == 0

    # Later fixes no longer produce progress, so arrival fires once
    assert controller.on_fix(make_fix(move(origin, north_m=995), 3)) is None
    assert controller.state.has_arrived
    with pytest.raises(NavigationStateError):
        controller.on_location_update(make_fix(move(origin, north_m=995), 4))


def test_update_while_idle_is_rejected(controller, origin, make_fix):
    with pytest.raises(NavigationStateError):
        controller.on_location_update(make_fix(origin, 0))


def test_fixes_while_idle_only_track_position(controller, origin, make_fix):
    assert controller.on_fix(make_fix(origin, 0, speed=3.0)) is None
    assert controller.state.last_position == origin
    assert controller.state.current_speed == 3.0


def test_off_route(controller, route, origin, move, make_fix):
    controller.start_navigation(route)
    update = controller.on_fix(make_fix(move(origin, north_m=300, east_m=100), 1))
    assert update.status == ProgressStatus.OFF_ROUTE
    assert update.distance_from_route_m == pytest.approx(100, rel=1e-2)
    assert update.message == "Off route by 100 m."
    assert controller.state.is_off_route

    back = controller.on_fix(make_fix(move(origin, north_m=320), 2))
    assert back.status == ProgressStatus.PROGRESSING
    assert not controller.state.is_off_route


def test_nearest_point_never_moves_backwards(controller, route, origin, move, make_fix):
    controller.start_navigation(route)
    controller.on_fix(make_fix(move(origin, north_m=500), 1))
    ahead = controller.state.nearest_remaining_point_index
    assert ahead == 5
    controller.on_fix(make_fix(move(origin, north_m=100), 2))
    assert controller.state.nearest_remaining_point_index == ahead


def test_nearest_point_index_helper(route, origin, move):
    assert nearest_point_index(route.points, move(origin, north_m=310)) == 3
    assert nearest_point_index(route.points, move(origin, north_m=110), start=4) == 4


@pytest.mark.parametrize("speed, expected", [
    (5.0, 100),
    (0.1, int(500 / 4.17)),
    (None, int(500 / 4.17)),
])
def test_eta_uses_current_speed_or_fallback(controller, route, origin, move, make_fix, speed, expected):
    controller.start_navigation(route)
    update = controller.on_fix(make_fix(move(origin, north_m=500), 1, speed=speed))
    assert update.estimated_seconds_remaining == pytest.approx(expected, abs=1)


def test_stop_returns_to_idle(controller, route, origin, make_fix):
    controller.on_fix(make_fix(origin, 0))
    controller.start_navigation(route)
    state = controller.stop_navigation()
    assert state.mode == NavigationMode.IDLE
    assert state.active_route is None
    assert state.distance_remaining_meters == 0.0
    assert state.last_position == origin
    assert len(controller.tracker) == 0


def test_stop_from_every_mode(controller, straight_route, origin, move, make_fix):
    fastest = straight_route(1000.0, RouteType.FASTEST)
    safest = straight_route(1200.0, RouteType.SAFEST, minutes=6.0)

    controller.preview_routes([fastest, safest])
    assert controller.mode == NavigationMode.PREVIEWING
    assert controller.stop_navigation().mode == NavigationMode.IDLE
    assert controller.state.candidate_routes == ()

    controller.start_navigation(fastest)
    controller.on_fix(make_fix(move(origin, north_m=995), 1))
    assert controller.mode == NavigationMode.ARRIVED
    assert controller.stop_navigation().mode == NavigationMode.IDLE
    assert not controller.state.has_arrived


def test_stop_is_idempotent(controller, route):
    controller.start_navigation(route)
    first = controller.stop_navigation()
    second = controller.stop_navigation()
    assert second is first
    assert second.session_id == first.session_id


def test_can_navigate_again_after_arrival(controller, route, origin, move, make_fix):
    controller.start_navigation(route)
    controller.on_fix(make_fix(move(origin, north_m=995), 1))
    state = controller.start_navigation(route)
    assert state.mode == NavigationMode.NAVIGATING
    assert not state.has_arrived


def test_state_snapshots_are_frozen(controller, route):
    before = controller.state
    controller.start_navigation(route)
    assert before.mode == NavigationMode.IDLE
    with pytest.raises(dataclasses.FrozenInstanceError):
        controller.state.mode = NavigationMode.IDLE


def test_preview_needs_two_routes(controller, straight_route):
    single = straight_route(1000.0)
    controller.preview_routes([single])
    assert controller.mode == NavigationMode.IDLE
    assert controller.state.candidate_routes == (single,)

    controller.preview_routes([])
    assert controller.state.candidate_routes == (single,)


def test_preview_while_navigating_is_rejected(controller, route):
    controller.start_navigation(route)
    with pytest.raises(NavigationStateError):
        controller.preview_routes([route])


def test_select_route_by_type_falls_back(controller, straight_route):
    fastest = straight_route(1000.0, RouteType.FASTEST)
    shortest = straight_route(900.0, RouteType.SHORTEST)
    controller.preview_routes([fastest, shortest])
    state = controller.select_route(RouteType.SAFEST)
    assert state.active_route == shortest
    assert state.mode == NavigationMode.NAVIGATING


def test_select_route_without_candidates(controller):
    with pytest.raises(NavigationStateError):
        controller.select_route(RouteType.SAFEST)


def test_only_the_latest_route_request_delivers(controller, straight_route):
    routes = [straight_route(1000.0, RouteType.FASTEST), straight_route(1100.0, RouteType.SAFEST)]
    first = controller.begin_route_request()
    second = controller.begin_route_request()
    assert not controller.deliver_routes(first, routes)
    assert controller.state.candidate_routes == ()
    assert controller.deliver_routes(second, routes)
    assert controller.mode == NavigationMode.PREVIEWING


def test_route_request_from_a_stopped_session_is_stale(controller, straight_route, route):
    request = controller.begin_route_request()
    controller.start_navigation(route)
    controller.stop_navigation()
    assert not controller.deliver_routes(request, [route, straight_route(1100.0, RouteType.SAFEST)])
    assert controller.mode == NavigationMode.IDLE


def test_location_loss_keeps_the_route(controller, route, origin, move, make_fix):
    controller.start_navigation(route)
    controller.on_fix(make_fix(move(origin, north_m=200), 1))
    controller.on_location_unavailable("permission denied")
    state = controller.state
    assert not state.gps_available
    assert state.active_route == route
    assert state.last_position == move(origin, north_m=200)

    controller.on_fix(make_fix(move(origin, north_m=220), 2))
    assert controller.state.gps_available


def test_preview_after_arrival_starts_a_clean_session(controller, route, straight_route, make_fix):
    controller.start_navigation(route)
    controller.on_fix(make_fix(route.destination, 1, speed=4.0))
    assert controller.mode == NavigationMode.ARRIVED
    finished = controller.state.session_id

    fresh = [straight_route(800.0, RouteType.FASTEST), straight_route(900.0, RouteType.SAFEST)]
    request = controller.begin_route_request()
    assert controller.deliver_routes(request, fresh)

    state = controller.state
    assert state.mode == NavigationMode.PREVIEWING
    assert state.candidate_routes == tuple(fresh)
    assert state.active_route is None
    assert not state.has_arrived
    assert state.distance_remaining_meters == 0
    assert state.session_id == finished + 1
    assert state.last_position == route.destination
    assert state.gps_available


def test_arrived_session_survives_an_empty_preview(controller, route, make_fix):
    controller.start_navigation(route)
    controller.on_fix(make_fix(route.destination, 1))
    controller.preview_routes([])
    assert controller.mode == NavigationMode.ARRIVED
    assert controller.state.active_route == route


def test_select_route_rejects_a_route_that_was_not_previewed(controller, straight_route):
    fastest = straight_route(1000.0, RouteType.FASTEST)
    safest = straight_route(1100.0, RouteType.SAFEST)
    controller.preview_routes([fastest, safest])
    stranger = straight_route(1500.0, RouteType.SAFEST)
    with pytest.raises(NavigationStateError):
        controller.select_route(stranger)
    assert controller.mode == NavigationMode.PREVIEWING
    assert controller.select_route(safest).active_route == safest
