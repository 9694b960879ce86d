import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from pawwalk.core.errors import NotFound
from pawwalk.tracking.builder import SessionBuilder, TrackingSnapshot
from pawwalk.tracking.models import LocationPoint, WalkSession
from pawwalk.tracking.sampler import LocationSource, ThrottledSampler

logger = logging.getLogger(__name__)


@dataclass
class _Tracked:
    builder: SessionBuilder
    sampler: Optional[ThrottledSampler]


class WalkTracker:
    """Session-id keyed front for the device: start, sample, pause, resume, stop.

    Samples for one session are applied in arrival order under a lock, so a
    location callback and a UI action never interleave inside the builder.
    """

    def __init__(
        self,
        source: LocationSource,
        user_id: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
        throttle: bool = True,
    ):
        self.source = source
        self.user_id = user_id
        self.clock = clock
        self.throttle = throttle
        self._lock = threading.Lock()
        self._sessions: dict[str, _Tracked] = {}

    def _get(self, session_id: str) -> _Tracked:
        tracked = self._sessions.get(session_id)
        if tracked is None:
            raise NotFound(f"Unknown or finished session {session_id}")
        return tracked

    def start_session(
        self,
        dog_id: Optional[str] = None,
        scheduled_walk_id: Optional[int] = None,
    ) -> str:
        builder = SessionBuilder(
            self.source,
            user_id=self.user_id,
            dog_id=dog_id,
            scheduled_walk_id=scheduled_walk_id,
            clock=self.clock,
        )
        builder.start()
        sampler = None
        if self.throttle:
            sampler = ThrottledSampler()
            sampler.reset(builder.route[0])
        session_id = uuid.uuid4().hex
        with self._lock:
            self._sessions[session_id] = _Tracked(builder, sampler)
        logger.info("Tracking session %s started", session_id)
        return session_id

    def record_sample(self, session_id: str, point: LocationPoint) -> bool:
        with self._lock:
            tracked = self._get(session_id)
            if tracked.sampler is not None and not tracked.sampler.accept(point):
                return False
            return tracked.builder.record_sample(point)

    def feed(self, session_id: str, points: Iterable[LocationPoint]) -> int:
        """Record a batch (e.g. a replayed track); returns how many added distance."""
        return sum(1 for p in points if self.record_sample(session_id, p))

    def pause_session(self, session_id: str) -> None:
        with self._lock:
            self._get(session_id).builder.pause()

    def resume_session(self, session_id: str) -> None:
        with self._lock:
            self._get(session_id).builder.resume()

    def stop_session(self, session_id: str) -> WalkSession:
        with self._lock:
            tracked = self._get(session_id)
            session = tracked.builder.stop()
            # later samples for this id fail fast
            del self._sessions[session_id]
        logger.info("Tracking session %s stopped", session_id)
        return session

    def snapshot(self, session_id: str) -> TrackingSnapshot:
        with self._lock:
            return self._get(session_id).builder.snapshot()

    def active_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)
