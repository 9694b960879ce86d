from datetime import date, datetime, timedelta, timezone

import pytest

from pawwalk.core.errors import ServerError
from pawwalk.models.user_statistics import UserStatistics
from pawwalk.schemas.walk import WalkSessionCreate
from pawwalk.services import stats_aggregator, walk_sessions
from pawwalk.services.stats_aggregator import WalkMetrics, apply_walk, streak
from pawwalk.services.stats_query import get_user_stats

TODAY = date(2025, 3, 12)


def test_streak_rules():
    assert streak(None, TODAY, 0) == 1
    assert streak(None, TODAY, 7) == 1
    assert streak(TODAY, TODAY, 4) == 4
    assert streak(TODAY - timedelta(days=1), TODAY, 4) == 5
    assert streak(TODAY - timedelta(days=2), TODAY, 4) == 1
    assert streak(TODAY - timedelta(days=3), TODAY, 4) == 1


def _submit(db, user_id, day, **metrics):
    payload = WalkSessionCreate(
        start_time=datetime.combine(day, datetime.min.time(), tzinfo=timezone.utc) + timedelta(hours=8),
        **metrics,
    )
    return walk_sessions.save_walk_session(db, user_id, payload)


def test_first_second_and_gap_walks(db, monkeypatch):
    days = iter([TODAY, TODAY + timedelta(days=1), TODAY + timedelta(days=4)])
    current = {}

    def fake_today(tz_name=None):
        return current["day"]

    monkeypatch.setattr(walk_sessions, "local_today", fake_today)

    current["day"] = next(days)
    walk, updated = _submit(
        db, "alice", current["day"],
        duration_minutes=32, distance_km=2.1, steps=2800, calories_burned=105,
    )
    assert updated is True
    stats = get_user_stats(db, "alice")
    assert stats.total_walks == 1
    assert stats.current_streak_days == 1
    assert stats.longest_streak_days == 1
    assert stats.total_distance_km == pytest.approx(2.1)
    assert stats.total_steps == 2800
    assert stats.total_calories_burned == 105
    assert stats.total_duration_minutes == 32

    current["day"] = next(days)
    _submit(db, "alice", current["day"], duration_minutes=20, distance_km=1.5)
    stats = get_user_stats(db, "alice")
    assert stats.current_streak_days == 2
    assert stats.longest_streak_days == 2

    current["day"] = next(days)
    _submit(db, "alice", current["day"], duration_minutes=20, distance_km=1.0)
    stats = get_user_stats(db, "alice")
    assert stats.current_streak_days == 1
    assert stats.longest_streak_days == 2
    assert stats.total_walks == 3
    assert stats.last_walk_date == current["day"]


def test_same_day_walks_keep_streak(db):
    apply_walk(db, "bob", WalkMetrics(1.0, 10, 1000, 50), today=TODAY)
    row = apply_walk(db, "bob", WalkMetrics(1.0, 10, 1000, 50), today=TODAY)
    assert row.total_walks == 2
    assert row.current_streak_days == 1


def test_longest_streak_never_decreases(db):
    day = TODAY
    seen = []
    for gap in [1, 1, 1, 5, 1, 0, 3, 1, 1, 1, 1, 2]:
        day = day + timedelta(days=gap)
        row = apply_walk(db, "carol", WalkMetrics(1.0, 15), today=day)
        seen.append(row.longest_streak_days)
        assert row.longest_streak_days >= row.current_streak_days
    assert seen == sorted(seen)
    assert seen[-1] == 5


def test_incomplete_walk_does_not_touch_statistics(db):
    payload = WalkSessionCreate(
        start_time=datetime(2025, 3, 12, 8, tzinfo=timezone.utc),
        distance_km=1.0,
        is_completed=False,
    )
    walk, updated = walk_sessions.save_walk_session(db, "dave", payload)
    assert walk.id is not None
    assert updated is False
    assert get_user_stats(db, "dave").total_walks == 0


def test_statistics_failure_keeps_walk(db, monkeypatch):
    def boom(*args, **kwargs):
        raise ServerError("stats store unavailable")

    monkeypatch.setattr(walk_sessions, "apply_walk", boom)
    payload = WalkSessionCreate(start_time=datetime(2025, 3, 12, 8, tzinfo=timezone.utc), distance_km=1.0)
    walk, updated = walk_sessions.save_walk_session(db, "erin", payload)
    assert updated is False
    assert walk_sessions.get_walk_session(db, "erin", walk.id).distance_km == 1.0


def test_concurrent_update_is_retried(file_session_factory, monkeypatch):
    setup = file_session_factory()
    apply_walk(setup, "alice", WalkMetrics(1.0, 10), today=TODAY)
    setup.close()

    real_apply = stats_aggregator._apply_to_row
    calls = {"n": 0}

    def racing_apply(row, metrics, today):
        calls["n"] += 1
        if calls["n"] == 1:
            # another request lands between our read and our write
            other = file_session_factory()
            try:
                apply_walk(other, "alice", WalkMetrics(2.0, 20), today=today)
            finally:
                other.close()
        real_apply(row, metrics, today)

    monkeypatch.setattr(stats_aggregator, "_apply_to_row", racing_apply)

    session = file_session_factory()
    try:
        row = apply_walk(session, "alice", WalkMetrics(3.0, 30), today=TODAY)
        assert row.total_walks == 3
        assert row.total_distance_km == pytest.approx(6.0)
        assert row.total_duration_minutes == 60
    finally:
        session.close()
    # first attempt lost the race, nested call, then the retry
    assert calls["n"] == 3


def test_gives_up_after_retries(file_session_factory, monkeypatch):
    setup = file_session_factory()
    apply_walk(setup, "alice", WalkMetrics(1.0, 10), today=TODAY)
    setup.close()

    real_apply = stats_aggregator._apply_to_row

    def always_racing(row, metrics, today):
        other = file_session_factory()
        try:
            other_row = other.query(UserStatistics).filter(UserStatistics.user_id == "alice").one()
            real_apply(other_row, WalkMetrics(0.5, 5), today)
            other.commit()
        finally:
            other.close()
        real_apply(row, metrics, today)

    monkeypatch.setattr(stats_aggregator, "_apply_to_row", always_racing)

    session = file_session_factory()
    try:
        with pytest.raises(ServerError):
            apply_walk(session, "alice", WalkMetrics(3.0, 30), today=TODAY, max_retries=2)
    finally:
        session.close()
