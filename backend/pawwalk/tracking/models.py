from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class LocationPoint:
    latitude: float
    longitude: float
    timestamp: int  # epoch milliseconds

    def as_dict(self) -> dict:
        return {"latitude": self.latitude, "longitude": self.longitude, "timestamp": self.timestamp}


@dataclass
class WalkSession:
    """A finished walk as recorded on the device, before submission."""

    user_id: Optional[str]
    start_time: datetime
    end_time: datetime
    duration_seconds: int
    duration_minutes: int
    distance_km: float
    steps: int
    calories_burned: int
    avg_speed_kmh: float
    route_points: list[LocationPoint] = field(default_factory=list)
    start_location: Optional[LocationPoint] = None
    end_location: Optional[LocationPoint] = None
    dog_id: Optional[str] = None
    scheduled_walk_id: Optional[int] = None
    notes: Optional[str] = None
    is_completed: bool = True
    id: Optional[int] = None  # server id once synced
