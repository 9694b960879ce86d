"""Position sources feeding the session builder.

The device location stream is an external collaborator; anything that
implements `LocationSource` can drive a walk. `ThrottledSampler` applies the
same cadence and minimum-movement rules the device stream is configured
with, so a raw or replayed feed never reaches the builder faster than that.
"""

from typing import Iterable, Iterator, Optional, Protocol

import gpxpy

from pawwalk.core.config import settings
from pawwalk.core.geo import haversine_m
from pawwalk.tracking.models import LocationPoint


class LocationSource(Protocol):
    def permission_granted(self) -> bool:
        ...

    def last_known_position(self) -> Optional[LocationPoint]:
        ...

    def positions(self) -> Iterator[LocationPoint]:
        ...


class ReplaySource:
    """Replays a fixed list of positions; the first one is the starting fix."""

    def __init__(self, points: Iterable[LocationPoint], permission: bool = True):
        self._points = list(points)
        self._permission = permission

    def permission_granted(self) -> bool:
        return self._permission

    def last_known_position(self) -> Optional[LocationPoint]:
        return self._points[0] if self._points else None

    def positions(self) -> Iterator[LocationPoint]:
        return iter(self._points[1:])


class GpxTrackSource(ReplaySource):
    """Replays the points of a recorded GPX file (all tracks and segments, in order)."""

    def __init__(self, path: str, permission: bool = True):
        with open(path, "r", encoding="utf-8") as f:
            gpx = gpxpy.parse(f)

        points = []
        for track in gpx.tracks:
            for segment in track.segments:
                for p in segment.points:
                    if p.time is None:
                        continue
                    points.append(
                        LocationPoint(p.latitude, p.longitude, int(p.time.timestamp() * 1000))
                    )
        super().__init__(points, permission=permission)


class ThrottledSampler:
    """Passes a sample on only after `interval_ms` and `min_movement_m` since the last one."""

    def __init__(self, interval_ms: Optional[int] = None, min_movement_m: Optional[float] = None):
        self.interval_ms = settings.sampling_interval_ms if interval_ms is None else interval_ms
        self.min_movement_m = settings.min_movement_m if min_movement_m is None else min_movement_m
        self._last: Optional[LocationPoint] = None

    def reset(self, anchor: Optional[LocationPoint] = None) -> None:
        self._last = anchor

    def accept(self, point: LocationPoint) -> bool:
        last = self._last
        if last is not None:
            if point.timestamp - last.timestamp < self.interval_ms:
                return False
            moved = haversine_m(last.latitude, last.longitude, point.latitude, point.longitude)
            if moved < self.min_movement_m:
                return False
        self._last = point
        return True

    def filter(self, points: Iterable[LocationPoint]) -> Iterator[LocationPoint]:
        for point in points:
            if self.accept(point):
                yield point
