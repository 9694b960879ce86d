import math

import pytest

from pawwalk.core.errors import InvalidState, LocationUnavailable, PermissionDenied
from pawwalk.core.geo import haversine_m
from pawwalk.tracking.builder import SessionBuilder, WalkStatus
from pawwalk.tracking.models import LocationPoint
from pawwalk.tracking.sampler import ReplaySource

T0 = 1_735_718_400_000  # 2025-01-01T08:00:00Z
LAT, LON = 40.0, -73.0


class FakeClock:
    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> int:
        self.now += int(seconds * 1000)
        return self.now


def make_builder(permission=True, fix=(LAT, LON)):
    clock = FakeClock()
    points = [LocationPoint(fix[0], fix[1], T0)] if fix else []
    builder = SessionBuilder(
        ReplaySource(points, permission=permission), user_id="alice", dog_id="rex", clock=clock
    )
    return builder, clock


def point_north(prev: LocationPoint, meters: float, ts: int) -> LocationPoint:
    # ~111.2 km per degree of latitude
    return LocationPoint(prev.latitude + meters / 111_195.0, prev.longitude, ts)


def test_start_seeds_route_with_fix():
    builder, clock = make_builder()
    builder.start()
    assert builder.status == WalkStatus.active
    assert len(builder.route) == 1
    assert builder.route[0].timestamp == clock.now
    assert builder.distance_m == 0


def test_only_segments_in_noise_window_add_distance():
    builder, clock = make_builder()
    builder.start()

    p1 = point_north(builder.route[-1], 1.0, clock.advance(2))
    assert builder.record_sample(p1) is False
    assert builder.distance_m == 0

    p2 = point_north(p1, 10.0, clock.advance(2))
    assert builder.record_sample(p2) is True
    expected = haversine_m(p1.latitude, p1.longitude, p2.latitude, p2.longitude)
    assert builder.distance_m == pytest.approx(expected)
    steps, calories = builder.steps, builder.calories

    # GPS jump: ignored for distance, but the point still becomes the new anchor
    p3 = point_north(p2, 120.0, clock.advance(2))
    assert builder.record_sample(p3) is False
    assert builder.distance_m == pytest.approx(expected)
    assert (builder.steps, builder.calories) == (steps, calories)
    assert builder.route[-1] == p3

    assert len(builder.route) == 4


def test_window_edges():
    builder, clock = make_builder()
    builder.start()
    for meters, counted in [(1.9, False), (2.1, True), (49.9, True), (50.1, False)]:
        before = builder.distance_m
        p = point_north(builder.route[-1], meters, clock.advance(5))
        assert builder.record_sample(p) is counted
        assert (builder.distance_m > before) is counted


def test_steps_and_calories_follow_distance():
    builder, clock = make_builder()
    builder.start()
    prev = builder.route[-1]
    for _ in range(100):
        prev = point_north(prev, 20.0, clock.advance(5))
        builder.record_sample(prev)
    assert builder.steps == math.floor(builder.distance_m / 0.75)
    assert builder.calories == math.floor(builder.distance_m / 1000.0 * 50)
    assert builder.distance_m == pytest.approx(2000.0, rel=0.01)


def test_speed_settles_then_clamps():
    builder, clock = make_builder()
    builder.start()
    p1 = point_north(builder.route[-1], 10.0, clock.advance(10))
    builder.record_sample(p1)
    assert builder.avg_speed_kmh == 0.0

    p2 = point_north(p1, 10.0, clock.advance(90))
    builder.record_sample(p2)
    # 20 m in 100 s is under 1 km/h
    assert builder.avg_speed_kmh == 1.0

    prev = p2
    for _ in range(5):
        prev = point_north(prev, 45.0, clock.advance(1))
        builder.record_sample(prev)
    # 245 m in 105 s is over 8 km/h
    assert builder.avg_speed_kmh == 8.0


def test_out_of_order_and_invalid_samples_are_dropped():
    builder, clock = make_builder()
    builder.start()
    p1 = point_north(builder.route[-1], 10.0, clock.advance(5))
    builder.record_sample(p1)

    stale = point_north(p1, 10.0, p1.timestamp - 1)
    assert builder.record_sample(stale) is False
    assert builder.record_sample(LocationPoint(91.0, LON, clock.advance(5))) is False
    assert len(builder.route) == 2


def test_pause_excludes_paused_time():
    builder, clock = make_builder()
    builder.start()
    clock.advance(60)
    before_pause = builder.elapsed_seconds()
    builder.pause()
    clock.advance(300)
    assert builder.elapsed_seconds() == before_pause

    builder.resume()
    clock.advance(30)
    assert builder.elapsed_seconds() == before_pause + 30

    session = builder.stop()
    assert session.duration_seconds == 90
    assert session.duration_minutes == 1


def test_samples_ignored_while_paused():
    builder, clock = make_builder()
    builder.start()
    builder.pause()
    p1 = point_north(builder.route[-1], 10.0, clock.advance(5))
    assert builder.record_sample(p1) is False
    assert len(builder.route) == 1
    assert builder.distance_m == 0


def test_stop_while_paused_ends_at_pause():
    builder, clock = make_builder()
    builder.start()
    clock.advance(120)
    builder.pause()
    clock.advance(600)
    session = builder.stop()
    assert session.duration_seconds == 120
    assert session.end_time.timestamp() * 1000 == T0 + 120_000
    assert builder.status == WalkStatus.idle


def test_stop_builds_session():
    builder, clock = make_builder()
    builder.start()
    prev = builder.route[-1]
    for _ in range(10):
        prev = point_north(prev, 10.0, clock.advance(8))
        builder.record_sample(prev)
    session = builder.stop()

    assert session.user_id == "alice"
    assert session.dog_id == "rex"
    assert session.distance_km == pytest.approx(builder.distance_m / 1000.0)
    assert session.start_location == builder.route[0]
    assert session.end_location == prev
    assert len(session.route_points) == 11
    assert session.duration_minutes == 1


def test_transitions_from_wrong_state():
    builder, _ = make_builder()
    with pytest.raises(InvalidState):
        builder.pause()
    with pytest.raises(InvalidState):
        builder.resume()
    with pytest.raises(InvalidState):
        builder.stop()

    builder.start()
    with pytest.raises(InvalidState):
        builder.start()
    with pytest.raises(InvalidState):
        builder.resume()


def test_permission_denied():
    builder, _ = make_builder(permission=False)
    with pytest.raises(PermissionDenied):
        builder.start()
    assert builder.status == WalkStatus.idle


def test_no_fix():
    builder, _ = make_builder(fix=None)
    with pytest.raises(LocationUnavailable):
        builder.start()

    builder, _ = make_builder(fix=(95.0, LON))
    with pytest.raises(LocationUnavailable):
        builder.start()


def test_failed_start_keeps_previous_accumulators():
    builder, clock = make_builder()
    builder.start()
    p1 = point_north(builder.route[-1], 10.0, clock.advance(5))
    builder.record_sample(p1)
    builder.stop()
    distance, route_len = builder.distance_m, len(builder.route)

    builder.source = ReplaySource([], permission=False)
    with pytest.raises(PermissionDenied):
        builder.start()
    assert builder.distance_m == distance
    assert len(builder.route) == route_len
