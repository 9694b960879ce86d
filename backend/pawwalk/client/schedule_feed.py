"""Schedule change feed for the device.

Prefers the server's `GET /schedules/updates` event stream. When streaming is
not available (connection refused, proxy strips it, non-200) the feed polls
`GET /schedules/` instead and turns the differences between two snapshots
into the same events the stream would have carried.
"""

import logging
import time
from typing import Callable, Iterable, Iterator, Optional

import httpx

from pawwalk.core.config import settings
from pawwalk.schemas.schedule import (
    ScheduleEvent,
    ScheduleEventType,
    ScheduleList,
    ScheduleRead,
    ScheduleStatus,
)

logger = logging.getLogger(__name__)

_PAGE_SIZE = 50


def parse_sse(lines: Iterable[str]) -> Iterator[tuple[str, str]]:
    """Yield (event, data) pairs from text/event-stream lines. Comments are skipped."""
    event, data = "message", []
    for line in lines:
        line = line.rstrip("\r\n")
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def _status_event(status: ScheduleStatus) -> ScheduleEventType:
    if status == ScheduleStatus.cancelled:
        return ScheduleEventType.cancelled
    if status == ScheduleStatus.completed:
        return ScheduleEventType.completed
    return ScheduleEventType.updated


def diff_snapshots(
    before: dict[int, ScheduleRead], after: dict[int, ScheduleRead]
) -> list[ScheduleEvent]:
    """Events explaining how `before` became `after`. Schedules that vanish are ignored."""
    events = []
    for sid, schedule in sorted(after.items()):
        old = before.get(sid)
        if old is None:
            etype = ScheduleEventType.created
        elif old == schedule:
            continue
        elif old.status != schedule.status:
            etype = _status_event(schedule.status)
        else:
            etype = ScheduleEventType.updated
        # the poll response does not say who acted; attribute it to the organizer
        events.append(ScheduleEvent(type=etype, schedule=schedule, user_id=schedule.organizer_id))
    return events


class ScheduleFeed:
    def __init__(
        self,
        token: str,
        base_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.poll_interval = settings.schedule_poll_seconds if poll_interval is None else poll_interval
        self._sleep = sleep
        self._snapshot: Optional[dict[int, ScheduleRead]] = None
        self._client = httpx.Client(
            base_url=base_url or settings.api_base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=httpx.Timeout(settings.submission_timeout_seconds, read=None),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    # --- push --- #

    def stream(self) -> Iterator[ScheduleEvent]:
        """Events from the server stream until it closes. Raises httpx errors on failure."""
        with self._client.stream("GET", "/schedules/updates") as r:
            r.raise_for_status()
            for event, data in parse_sse(r.iter_lines()):
                try:
                    yield ScheduleEvent.model_validate_json(data)
                except ValueError:
                    logger.warning("Skipping malformed %s event", event)

    # --- polling fallback --- #

    def fetch_snapshot(self) -> dict[int, ScheduleRead]:
        schedules: dict[int, ScheduleRead] = {}
        offset = 0
        while True:
            r = self._client.get(
                "/schedules/",
                params={"upcoming_only": "false", "limit": _PAGE_SIZE, "offset": offset},
            )
            r.raise_for_status()
            page = ScheduleList.model_validate(r.json())
            for s in page.schedules:
                schedules[s.id] = s
            if not page.has_more:
                return schedules
            offset += _PAGE_SIZE

    def poll_once(self) -> list[ScheduleEvent]:
        """Take a snapshot and return what changed since the last one.

        The first call only records a baseline and returns nothing.
        """
        current = self.fetch_snapshot()
        previous, self._snapshot = self._snapshot, current
        if previous is None:
            return []
        return diff_snapshots(previous, current)

    def poll(self, max_polls: Optional[int] = None) -> Iterator[ScheduleEvent]:
        polls = 0
        while max_polls is None or polls < max_polls:
            try:
                yield from self.poll_once()
            except httpx.HTTPError as e:
                logger.warning("Schedule poll failed: %s", e)
            polls += 1
            if max_polls is None or polls < max_polls:
                self._sleep(self.poll_interval)

    def events(self, max_polls: Optional[int] = None) -> Iterator[ScheduleEvent]:
        """Stream if possible, otherwise poll."""
        try:
            yield from self.stream()
            return
        except httpx.HTTPError as e:
            logger.warning("Schedule stream unavailable (%s); falling back to polling", e)
        yield from self.poll(max_polls=max_polls)
