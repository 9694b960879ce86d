import httpx

from pawwalk.client.schedule_feed import ScheduleFeed, diff_snapshots, parse_sse
from pawwalk.schemas.schedule import ScheduleEventType, ScheduleRead

from test_broadcaster import _event


def _schedule(sid, status="scheduled", title="Park loop"):
    return ScheduleRead(
        id=sid,
        organizer_id="alice",
        partner_id="bob",
        title=title,
        scheduled_date="2099-05-01",
        scheduled_time="09:30",
        location_name="Central Park",
        max_participants=2,
        is_group_walk=False,
        status=status,
        reminder_sent=False,
    )


def _page(schedules, has_more=False):
    return {
        "schedules": [s.model_dump(mode="json") for s in schedules],
        "total": len(schedules),
        "has_more": has_more,
    }


def test_parse_sse():
    lines = [
        ": keepalive",
        "",
        "event: schedule_created",
        'data: {"a": 1}',
        "",
        "data: first",
        "data: second",
        "",
    ]
    assert list(parse_sse(lines)) == [
        ("schedule_created", '{"a": 1}'),
        ("message", "first\nsecond"),
    ]


def test_diff_snapshots():
    before = {1: _schedule(1), 2: _schedule(2), 3: _schedule(3)}
    after = {
        1: _schedule(1),
        2: _schedule(2, title="Renamed"),
        3: _schedule(3, status="cancelled"),
        4: _schedule(4),
    }
    events = diff_snapshots(before, after)
    assert [(e.type, e.schedule.id) for e in events] == [
        (ScheduleEventType.updated, 2),
        (ScheduleEventType.cancelled, 3),
        (ScheduleEventType.created, 4),
    ]
    assert diff_snapshots(after, after) == []


def test_stream_reads_server_events():
    created = _event(ScheduleEventType.created)
    body = (
        ": keepalive\n\n"
        f"event: schedule_created\ndata: {created.model_dump_json()}\n\n"
        "event: schedule_updated\ndata: not json\n\n"
    )

    def handler(request):
        assert request.url.path == "/schedules/updates"
        assert request.headers["authorization"] == "Bearer token-bob"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    feed = ScheduleFeed("token-bob", base_url="http://test", transport=httpx.MockTransport(handler))
    events = list(feed.stream())
    assert len(events) == 1
    assert events[0].type == ScheduleEventType.created
    assert events[0].schedule.id == 1


def test_falls_back_to_polling():
    snapshots = iter([
        [_schedule(1)],
        [_schedule(1), _schedule(2)],
        [_schedule(1, status="completed"), _schedule(2)],
    ])

    def handler(request):
        if request.url.path == "/schedules/updates":
            return httpx.Response(404)
        assert request.url.params["upcoming_only"] == "false"
        return httpx.Response(200, json=_page(next(snapshots)))

    sleeps = []
    feed = ScheduleFeed(
        "token-bob",
        base_url="http://test",
        poll_interval=5,
        transport=httpx.MockTransport(handler),
        sleep=sleeps.append,
    )
    events = list(feed.events(max_polls=3))
    assert [(e.type, e.schedule.id) for e in events] == [
        (ScheduleEventType.created, 2),
        (ScheduleEventType.completed, 1),
    ]
    assert sleeps == [5, 5]


def test_snapshot_follows_pages():
    def handler(request):
        offset = int(request.url.params["offset"])
        if offset == 0:
            return httpx.Response(200, json=_page([_schedule(1)], has_more=True))
        return httpx.Response(200, json=_page([_schedule(2)]))

    feed = ScheduleFeed("t", base_url="http://test", transport=httpx.MockTransport(handler))
    assert sorted(feed.fetch_snapshot()) == [1, 2]


def test_poll_errors_are_logged_not_raised():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    feed = ScheduleFeed(
        "t", base_url="http://test", transport=httpx.MockTransport(handler), sleep=lambda s: None
    )
    assert list(feed.poll(max_polls=2)) == []
