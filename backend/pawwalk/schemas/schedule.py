from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from pawwalk.core.constants import DEFAULT_MAX_PARTICIPANTS
from pawwalk.core.time_utils import time_to_hhmm
from pawwalk.schemas.walk import Coordinates


class ScheduleStatus(str, Enum):
    scheduled = "scheduled"
    completed = "completed"
    cancelled = "cancelled"


class ParticipantStatus(str, Enum):
    joined = "joined"
    left = "left"


class ScheduleEventType(str, Enum):
    created = "schedule_created"
    updated = "schedule_updated"
    cancelled = "schedule_cancelled"
    completed = "schedule_completed"


class ScheduleCreate(BaseModel):
    partner_id: Optional[str] = None
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    scheduled_date: date
    scheduled_time: str  # 'HH:MM', 'HH:MM:SS' or '10:00 AM'
    duration_minutes: Optional[int] = Field(None, gt=0)
    location_name: str = Field(min_length=1, max_length=255)
    location_coordinates: Optional[Coordinates] = None
    location_address: Optional[str] = None
    max_participants: int = Field(DEFAULT_MAX_PARTICIPANTS, gt=0)
    is_group_walk: bool = False
    notes: Optional[str] = None


class ScheduleUpdate(BaseModel):
    """All fields optional; only the ones sent are applied."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    scheduled_date: Optional[date] = None
    scheduled_time: Optional[str] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    location_name: Optional[str] = Field(None, min_length=1, max_length=255)
    location_coordinates: Optional[Coordinates] = None
    location_address: Optional[str] = None
    max_participants: Optional[int] = Field(None, gt=0)
    status: Optional[ScheduleStatus] = None
    reminder_sent: Optional[bool] = None
    notes: Optional[str] = None

    # Be lenient with extra fields from clients
    model_config = ConfigDict(extra="ignore")


class ScheduleRead(BaseModel):
    id: int
    organizer_id: str
    partner_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    scheduled_date: date
    scheduled_time: str  # 'HH:MM'
    duration_minutes: Optional[int] = None
    location_name: str
    location_coordinates: Optional[Coordinates] = None
    location_address: Optional[str] = None
    max_participants: int
    is_group_walk: bool
    status: ScheduleStatus
    reminder_sent: bool
    notes: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "ScheduleRead":
        return cls(
            id=row.id,
            organizer_id=row.organizer_id,
            partner_id=row.partner_id,
            title=row.title,
            description=row.description,
            scheduled_date=row.scheduled_date,
            scheduled_time=time_to_hhmm(row.scheduled_time),
            duration_minutes=row.duration_minutes,
            location_name=row.location_name,
            location_coordinates=row.location_coordinates,
            location_address=row.location_address,
            max_participants=row.max_participants,
            is_group_walk=row.is_group_walk,
            status=row.status,
            reminder_sent=row.reminder_sent,
            notes=row.notes,
        )


class ScheduleList(BaseModel):
    schedules: list[ScheduleRead]
    total: int
    has_more: bool


class ParticipantRead(BaseModel):
    id: int
    walk_id: int
    user_id: str
    dog_id: Optional[str] = None
    status: ParticipantStatus
    joined_at: datetime
    left_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class JoinRequest(BaseModel):
    dog_id: Optional[str] = None


class ScheduleEvent(BaseModel):
    type: ScheduleEventType
    schedule: ScheduleRead
    user_id: str  # acting user
