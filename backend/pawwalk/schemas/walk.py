from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Coordinates(BaseModel):
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class LocationPointIn(Coordinates):
    timestamp: int  # epoch milliseconds


class WalkSessionBase(BaseModel):
    dog_id: Optional[str] = None
    scheduled_walk_id: Optional[int] = None

    start_time: datetime
    end_time: Optional[datetime] = None

    duration_minutes: int = Field(0, ge=0)
    distance_km: float = Field(0.0, ge=0)
    steps: int = Field(0, ge=0)
    calories_burned: int = Field(0, ge=0)

    start_location: Optional[Coordinates] = None
    end_location: Optional[Coordinates] = None
    notes: Optional[str] = None
    is_completed: bool = True


class WalkSessionCreate(WalkSessionBase):
    """Schema for submitting a finished walk."""

    route_points: list[LocationPointIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_times_and_route(self):
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time")
        stamps = [p.timestamp for p in self.route_points]
        if any(b < a for a, b in zip(stamps, stamps[1:])):
            raise ValueError("route_points must be ordered by timestamp")
        return self


class WalkSessionRead(WalkSessionBase):
    """Schema returned when reading a stored walk."""

    id: int
    user_id: str
    route_points: list[LocationPointIn] = Field(default_factory=list)
    model_config = ConfigDict(from_attributes=True)


class WalkSaved(BaseModel):
    id: int
    # False when the walk is stored but the per-user totals could not be updated
    statistics_updated: bool


class WalkHistory(BaseModel):
    walks: list[WalkSessionRead]
    total: int
    has_more: bool
