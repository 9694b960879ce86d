import threading
from datetime import date, datetime, timezone

import pytest

from pawwalk.core.errors import (
    Forbidden,
    Full,
    InvalidState,
    NotFound,
    NotParticipant,
    ValidationError,
)
from pawwalk.models.walk_participant import WalkParticipant
from pawwalk.schemas.schedule import ScheduleCreate, ScheduleStatus, ScheduleUpdate
from pawwalk.services.broadcaster import ScheduleBroadcaster
from pawwalk.services.scheduling import ScheduleService


def _create(service, organizer="alice", **overrides):
    data = {
        "partner_id": "bob",
        "title": "Park loop",
        "scheduled_date": date(2099, 5, 1),
        "scheduled_time": "09:30",
        "duration_minutes": 45,
        "location_name": "Central Park",
    }
    data.update(overrides)
    return service.create(organizer, ScheduleCreate(**data))


@pytest.fixture()
def service(db, broadcaster):
    return ScheduleService(db, broadcaster)


def test_create_parses_time_and_defaults(service):
    schedule = _create(service, scheduled_time="7:15 PM")
    assert schedule.id is not None
    assert schedule.status == "scheduled"
    assert schedule.max_participants == 2
    assert schedule.scheduled_time.hour == 19
    assert schedule.scheduled_time.minute == 15


def test_create_rejects_bad_time(service):
    with pytest.raises(ValidationError):
        _create(service, scheduled_time="quarter past nine")


def test_group_walk_duration_bounds(service):
    with pytest.raises(ValidationError):
        _create(service, is_group_walk=True, duration_minutes=10)
    with pytest.raises(ValidationError):
        _create(service, is_group_walk=True, duration_minutes=301)
    with pytest.raises(ValidationError):
        _create(service, is_group_walk=True, duration_minutes=None)
    assert _create(service, is_group_walk=True, duration_minutes=300).is_group_walk


def test_update_by_partner_and_forbidden_for_others(service):
    schedule = _create(service)
    updated = service.update(schedule.id, "bob", ScheduleUpdate(title="Lake loop", scheduled_time="10:00"))
    assert updated.title == "Lake loop"
    assert updated.scheduled_time.hour == 10

    with pytest.raises(Forbidden):
        service.update(schedule.id, "carol", ScheduleUpdate(title="Mine now"))

    with pytest.raises(NotFound):
        service.update(9999, "alice", ScheduleUpdate(title="x"))


def test_update_ignores_null_for_required_fields(service):
    schedule = _create(service)
    updated = service.update(schedule.id, "alice", ScheduleUpdate(title=None, notes="bring treats"))
    assert updated.title == "Park loop"
    assert updated.notes == "bring treats"


@pytest.mark.parametrize("final", [ScheduleStatus.completed, ScheduleStatus.cancelled])
def test_terminal_status_rejects_updates(service, final):
    schedule = _create(service)
    service.update(schedule.id, "alice", ScheduleUpdate(status=final))
    with pytest.raises(InvalidState):
        service.update(schedule.id, "alice", ScheduleUpdate(status=ScheduleStatus.scheduled))
    with pytest.raises(InvalidState):
        service.update(schedule.id, "bob", ScheduleUpdate(notes="late"))


def test_join_until_full(service):
    schedule = _create(service, max_participants=2)
    service.join(schedule.id, "carol")
    service.join(schedule.id, "dave")
    with pytest.raises(Full):
        service.join(schedule.id, "erin")
    assert [p.user_id for p in service.list_participants(schedule.id)] == ["carol", "dave"]


def test_join_twice_is_invalid(service):
    schedule = _create(service)
    service.join(schedule.id, "carol")
    with pytest.raises(InvalidState):
        service.join(schedule.id, "carol")


def test_rejoin_reuses_row(service, db):
    schedule = _create(service, max_participants=1)
    first = service.join(schedule.id, "carol", dog_id="rex")
    left = service.leave(schedule.id, "carol")
    assert left.status == "left"
    assert left.left_at is not None

    # the freed seat can be taken again
    again = service.join(schedule.id, "carol", dog_id="fido")
    assert again.id == first.id
    assert again.status == "joined"
    assert again.dog_id == "fido"
    assert again.left_at is None
    assert db.query(WalkParticipant).filter(WalkParticipant.walk_id == schedule.id).count() == 1


def test_leave_without_join(service):
    schedule = _create(service)
    with pytest.raises(NotParticipant):
        service.leave(schedule.id, "carol")


def test_cannot_join_cancelled_or_missing(service):
    schedule = _create(service)
    service.update(schedule.id, "alice", ScheduleUpdate(status=ScheduleStatus.cancelled))
    with pytest.raises(InvalidState):
        service.join(schedule.id, "carol")
    with pytest.raises(NotFound):
        service.join(9999, "carol")


def test_list_for_user(service):
    past = _create(service, scheduled_date=date(2020, 1, 1))
    later = _create(service, scheduled_date=date(2099, 6, 1))
    sooner = _create(service, scheduled_date=date(2099, 5, 1))
    _create(service, organizer="carol", partner_id=None)

    now = datetime(2025, 1, 1, tzinfo=timezone.utc)
    upcoming, total = service.list_for_user("bob", now=now)
    assert total == 2
    assert [s.id for s in upcoming] == [sooner.id, later.id]

    everything, total = service.list_for_user("alice", upcoming_only=False, now=now)
    assert total == 3
    assert everything[0].id == past.id

    service.update(later.id, "alice", ScheduleUpdate(status=ScheduleStatus.cancelled))
    cancelled, total = service.list_for_user("alice", status="cancelled", upcoming_only=False)
    assert [s.id for s in cancelled] == [later.id]

    page, total = service.list_for_user("alice", upcoming_only=False, limit=1, offset=1)
    assert total == 3
    assert len(page) == 1


def test_events_published_for_changes(service, broadcaster):
    bob = broadcaster.subscribe("bob")
    carol = broadcaster.subscribe("carol")

    schedule = _create(service)
    service.update(schedule.id, "alice", ScheduleUpdate(title="Renamed"))
    service.join(schedule.id, "carol")
    service.update(schedule.id, "alice", ScheduleUpdate(status=ScheduleStatus.completed))

    types = [e.type.value for e in bob.drain()]
    assert types == ["schedule_created", "schedule_updated", "schedule_completed"]
    # carol joined but is neither organizer, partner nor actor
    assert carol.drain() == []


def test_concurrent_joins_never_exceed_capacity(file_session_factory):
    broadcaster = ScheduleBroadcaster(queue_size=10)
    setup = file_session_factory()
    schedule = _create(ScheduleService(setup, broadcaster), max_participants=3)
    walk_id = schedule.id
    setup.close()

    results = []
    results_lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker(user_id):
        session = file_session_factory()
        try:
            barrier.wait()
            ScheduleService(session, broadcaster).join(walk_id, user_id)
            outcome = "joined"
        except Full:
            outcome = "full"
        finally:
            session.close()
        with results_lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(f"user-{i}",)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count("joined") == 3
    assert results.count("full") == 5

    check = file_session_factory()
    try:
        joined = (
            check.query(WalkParticipant)
            .filter(WalkParticipant.walk_id == walk_id, WalkParticipant.status == "joined")
            .count()
        )
    finally:
        check.close()
    assert joined == 3
