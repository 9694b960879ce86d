"""Live walk recording on the device.

State machine: idle -> active -> paused <-> active -> idle. Samples arrive
serially from the location stream and are only processed while active.
Every processed sample extends the route; only segments between 2 m and
50 m (inclusive) from the previous route point add distance, which keeps
standing-still jitter and GPS jumps out of the totals.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from pawwalk.core.constants import (
    KCAL_PER_KM,
    MAX_SEGMENT_M,
    MAX_WALK_SPEED_KMH,
    MIN_SEGMENT_M,
    MIN_WALK_SPEED_KMH,
    SPEED_SETTLING_SECONDS,
    STRIDE_M,
)
from pawwalk.core.errors import InvalidState, LocationUnavailable, PermissionDenied
from pawwalk.core.geo import haversine_m, is_valid_coordinate
from pawwalk.core.time_utils import ms_to_datetime
from pawwalk.tracking.models import LocationPoint, WalkSession
from pawwalk.tracking.sampler import LocationSource

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class WalkStatus(str, Enum):
    idle = "idle"
    active = "active"
    paused = "paused"


@dataclass(frozen=True)
class TrackingSnapshot:
    status: WalkStatus
    elapsed_seconds: int
    distance_m: float
    steps: int
    calories: int
    avg_speed_kmh: float
    points: int


class SessionBuilder:
    def __init__(
        self,
        source: LocationSource,
        user_id: Optional[str] = None,
        dog_id: Optional[str] = None,
        scheduled_walk_id: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.source = source
        self.user_id = user_id
        self.dog_id = dog_id
        self.scheduled_walk_id = scheduled_walk_id
        self.clock = clock or _now_ms
        self.status = WalkStatus.idle
        self._reset()

    def _reset(self):
        self._start_ms: Optional[int] = None
        self._end_ms: Optional[int] = None
        self._paused_ms = 0
        self._pause_started_ms: Optional[int] = None
        self.distance_m = 0.0
        self.steps = 0
        self.calories = 0
        self.avg_speed_kmh = 0.0
        self.route: list[LocationPoint] = []
        self._start_point: Optional[LocationPoint] = None

    # --- state transitions --- #

    def start(self) -> None:
        if self.status != WalkStatus.idle:
            raise InvalidState("A walk is already being recorded")
        if not self.source.permission_granted():
            raise PermissionDenied("Location permission is needed to track walks")
        fix = self.source.last_known_position()
        if fix is None or not is_valid_coordinate(fix.latitude, fix.longitude):
            raise LocationUnavailable("No GPS fix available yet")

        # preconditions passed; only now touch the accumulators
        self._reset()
        now = self.clock()
        self._start_ms = now
        self._start_point = LocationPoint(fix.latitude, fix.longitude, now)
        self.route.append(self._start_point)
        self.status = WalkStatus.active
        logger.info("Walk started at (%.5f, %.5f)", fix.latitude, fix.longitude)

    def pause(self) -> None:
        if self.status != WalkStatus.active:
            raise InvalidState("Only an active walk can be paused")
        self._pause_started_ms = self.clock()
        self.status = WalkStatus.paused

    def resume(self) -> None:
        if self.status != WalkStatus.paused:
            raise InvalidState("Only a paused walk can be resumed")
        # re-base the clock so paused time never counts toward duration
        self._paused_ms += self.clock() - self._pause_started_ms
        self._pause_started_ms = None
        self.status = WalkStatus.active

    def stop(self) -> WalkSession:
        if self.status == WalkStatus.idle:
            raise InvalidState("No walk is being recorded")
        end_ms = self._pause_started_ms if self.status == WalkStatus.paused else self.clock()
        if self._pause_started_ms is not None:
            self._paused_ms += end_ms - self._pause_started_ms
            self._pause_started_ms = None
        self._end_ms = end_ms
        self.status = WalkStatus.idle

        duration_seconds = int(self.elapsed_seconds())
        session = WalkSession(
            user_id=self.user_id,
            dog_id=self.dog_id,
            scheduled_walk_id=self.scheduled_walk_id,
            start_time=ms_to_datetime(self._start_ms),
            end_time=ms_to_datetime(end_ms),
            duration_seconds=duration_seconds,
            duration_minutes=duration_seconds // 60,
            distance_km=self.distance_m / 1000.0,
            steps=self.steps,
            calories_burned=self.calories,
            avg_speed_kmh=self.avg_speed_kmh,
            route_points=list(self.route),
            start_location=self._start_point,
            end_location=self.route[-1] if self.route else None,
        )
        logger.info(
            "Walk stopped: %.0f m, %d s, %d points",
            self.distance_m, duration_seconds, len(self.route),
        )
        return session

    # --- samples --- #

    def record_sample(self, point: LocationPoint) -> bool:
        """Feed one position; returns True when it added distance."""
        if self.status != WalkStatus.active:
            return False
        if not is_valid_coordinate(point.latitude, point.longitude):
            return False
        last = self.route[-1] if self.route else None
        if last is not None and point.timestamp < last.timestamp:
            logger.debug("Dropping out-of-order sample at %d", point.timestamp)
            return False

        self.route.append(point)
        if last is None:
            return False

        segment_m = haversine_m(last.latitude, last.longitude, point.latitude, point.longitude)
        if not (MIN_SEGMENT_M <= segment_m <= MAX_SEGMENT_M):
            logger.debug("Ignoring %.1f m segment (outside noise window)", segment_m)
            return False

        self.distance_m += segment_m
        self.steps = math.floor(self.distance_m / STRIDE_M)
        self.calories = math.floor((self.distance_m / 1000.0) * KCAL_PER_KM)

        elapsed = self.elapsed_seconds()
        if elapsed > SPEED_SETTLING_SECONDS:
            speed_kmh = (self.distance_m / elapsed) * 3.6
            self.avg_speed_kmh = min(max(speed_kmh, MIN_WALK_SPEED_KMH), MAX_WALK_SPEED_KMH)
        return True

    # --- reads --- #

    def elapsed_seconds(self) -> float:
        """Walking time so far, excluding pauses."""
        if self._start_ms is None:
            return 0.0
        if self._end_ms is not None:
            end = self._end_ms
        elif self._pause_started_ms is not None:
            end = self._pause_started_ms
        else:
            end = self.clock()
        return max(0, end - self._start_ms - self._paused_ms) / 1000.0

    def snapshot(self) -> TrackingSnapshot:
        return TrackingSnapshot(
            status=self.status,
            elapsed_seconds=int(self.elapsed_seconds()),
            distance_m=self.distance_m,
            steps=self.steps,
            calories=self.calories,
            avg_speed_kmh=self.avg_speed_kmh,
            points=len(self.route),
        )
