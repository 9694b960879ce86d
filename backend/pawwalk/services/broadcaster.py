"""In-process fan-out of schedule changes to connected clients.

Each subscription owns a bounded queue and is registered under one user id.
`publish` routes an event only to the channels of the users it concerns
(organizer, partner, acting user) and never blocks: a subscriber whose queue
is full misses that event. Nothing is buffered for users who are not
connected.
"""

import logging
import queue
import threading
from typing import Optional

from pawwalk.core.config import settings
from pawwalk.schemas.schedule import ScheduleEvent, ScheduleEventType, ScheduleRead

logger = logging.getLogger(__name__)


def event_type_for_status(status: Optional[str]) -> ScheduleEventType:
    if status == "completed":
        return ScheduleEventType.completed
    if status == "cancelled":
        return ScheduleEventType.cancelled
    return ScheduleEventType.updated


def event_recipients(event: ScheduleEvent) -> set[str]:
    users = {event.user_id, event.schedule.organizer_id, event.schedule.partner_id}
    users.discard(None)
    return users


class Subscription:
    """One connected client's view of the schedule event stream."""

    def __init__(self, broadcaster: "ScheduleBroadcaster", user_id: str, maxsize: int):
        self.user_id = user_id
        self._broadcaster = broadcaster
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.closed = False

    def matches(self, event: ScheduleEvent) -> bool:
        return self.user_id in event_recipients(event)

    def offer(self, event: ScheduleEvent) -> bool:
        if self.closed or not self.matches(event):
            return False
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            self.dropped += 1
            logger.warning("Dropping %s for slow subscriber %s", event.type.value, self.user_id)
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[ScheduleEvent]:
        """Next event, or None when nothing arrives within `timeout` seconds."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ScheduleEvent]:
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._broadcaster.unsubscribe(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ScheduleBroadcaster:
    def __init__(self, queue_size: Optional[int] = None):
        self._queue_size = queue_size or settings.subscriber_queue_size
        self._lock = threading.Lock()
        self._channels: dict[str, set[Subscription]] = {}

    def subscribe(self, user_id: str) -> Subscription:
        sub = Subscription(self, user_id, self._queue_size)
        with self._lock:
            self._channels.setdefault(user_id, set()).add(sub)
        logger.info("Schedule subscription opened for user %s", user_id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._channels.get(sub.user_id)
            if subs is not None:
                subs.discard(sub)
                if not subs:
                    del self._channels[sub.user_id]
        logger.info("Schedule subscription closed for user %s", sub.user_id)

    def subscriber_count(self, user_id: Optional[str] = None) -> int:
        with self._lock:
            if user_id is not None:
                return len(self._channels.get(user_id, ()))
            return sum(len(s) for s in self._channels.values())

    def publish(self, event: ScheduleEvent) -> int:
        """Deliver to every interested subscriber; returns how many got it."""
        with self._lock:
            targets = [
                sub
                for user_id in event_recipients(event)
                for sub in self._channels.get(user_id, ())
            ]
        delivered = sum(1 for sub in targets if sub.offer(event))
        logger.debug("Published %s for schedule %s to %d subscribers",
                     event.type.value, event.schedule.id, delivered)
        return delivered

    def publish_schedule(self, event_type: ScheduleEventType, schedule, actor_id: str) -> int:
        event = ScheduleEvent(
            type=event_type,
            schedule=ScheduleRead.from_row(schedule),
            user_id=actor_id,
        )
        return self.publish(event)


# Shared by the API process
broadcaster = ScheduleBroadcaster()


def get_broadcaster() -> ScheduleBroadcaster:
    return broadcaster
