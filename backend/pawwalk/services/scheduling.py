"""Walk appointments: create, update, join/leave, listing.

Status moves scheduled -> completed or scheduled -> cancelled, and both ends
are terminal. Joins are serialized per walk so the capacity check and the
participant write happen as one unit: a process-local lock per walk id, plus
a row lock on the schedule (SELECT ... FOR UPDATE) on databases that support
it.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from pawwalk.core.config import settings
from pawwalk.core.constants import GROUP_WALK_MAX_MINUTES, GROUP_WALK_MIN_MINUTES
from pawwalk.core.errors import (
    Forbidden,
    Full,
    InvalidState,
    NotFound,
    NotParticipant,
    ValidationError,
)
from pawwalk.core.locks import KeyedLock
from pawwalk.core.time_utils import hhmm_to_time, to_local_datetime
from pawwalk.models.walk_participant import WalkParticipant
from pawwalk.models.walk_schedule import WalkSchedule
from pawwalk.schemas.schedule import ScheduleCreate, ScheduleEventType, ScheduleUpdate
from pawwalk.services.broadcaster import ScheduleBroadcaster, event_type_for_status

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"completed", "cancelled"}

# One per process, shared by every ScheduleService
_join_locks = KeyedLock()


def _parse_time(value: str):
    try:
        parsed = hhmm_to_time(value)
    except ValueError as e:
        raise ValidationError(str(e))
    if parsed is None:
        raise ValidationError("scheduled_time is required")
    return parsed


def _check_group_duration(is_group_walk: bool, duration_minutes: Optional[int]) -> None:
    if not is_group_walk:
        return
    if duration_minutes is None or not (
        GROUP_WALK_MIN_MINUTES <= duration_minutes <= GROUP_WALK_MAX_MINUTES
    ):
        raise ValidationError(
            f"Duration must be between {GROUP_WALK_MIN_MINUTES} and "
            f"{GROUP_WALK_MAX_MINUTES} minutes for group walks"
        )


class ScheduleService:
    def __init__(self, db: Session, broadcaster: ScheduleBroadcaster):
        self.db = db
        self.broadcaster = broadcaster

    def _get(self, schedule_id: int, for_update: bool = False) -> WalkSchedule:
        query = self.db.query(WalkSchedule).filter(WalkSchedule.id == schedule_id)
        if for_update:
            query = query.with_for_update()
        schedule = query.first()
        if not schedule:
            raise NotFound("Walk schedule not found")
        return schedule

    def create(self, organizer_id: str, payload: ScheduleCreate) -> WalkSchedule:
        _check_group_duration(payload.is_group_walk, payload.duration_minutes)
        schedule = WalkSchedule(
            organizer_id=organizer_id,
            partner_id=payload.partner_id,
            title=payload.title,
            description=payload.description,
            scheduled_date=payload.scheduled_date,
            scheduled_time=_parse_time(payload.scheduled_time),
            duration_minutes=payload.duration_minutes,
            location_name=payload.location_name,
            location_address=payload.location_address,
            location_coordinates=(
                payload.location_coordinates.model_dump() if payload.location_coordinates else None
            ),
            max_participants=payload.max_participants,
            is_group_walk=payload.is_group_walk,
            status="scheduled",
            reminder_sent=False,
            notes=payload.notes,
        )
        self.db.add(schedule)
        self.db.commit()
        self.db.refresh(schedule)
        logger.info("User %s created walk schedule %s", organizer_id, schedule.id)

        self.broadcaster.publish_schedule(ScheduleEventType.created, schedule, organizer_id)
        return schedule

    def update(self, schedule_id: int, actor_id: str, payload: ScheduleUpdate) -> WalkSchedule:
        schedule = self._get(schedule_id)
        if actor_id not in (schedule.organizer_id, schedule.partner_id):
            raise Forbidden("Not authorized to update this schedule")
        if schedule.status in TERMINAL_STATUSES:
            raise InvalidState(f"Schedule is already {schedule.status}")

        update_data = payload.model_dump(exclude_unset=True)

        if "scheduled_time" in update_data:
            val = update_data.pop("scheduled_time")
            if val is not None:
                schedule.scheduled_time = _parse_time(val)
        if "status" in update_data and update_data["status"] is not None:
            update_data["status"] = update_data["status"].value

        # Fields that must stay non-null
        for key in ("title", "scheduled_date", "location_name", "max_participants",
                    "status", "reminder_sent"):
            if key in update_data and update_data[key] is None:
                update_data.pop(key)

        for key, value in update_data.items():
            setattr(schedule, key, value)

        _check_group_duration(schedule.is_group_walk, schedule.duration_minutes)

        self.db.commit()
        self.db.refresh(schedule)
        logger.info("User %s updated walk schedule %s (status=%s)", actor_id, schedule.id, schedule.status)

        self.broadcaster.publish_schedule(
            event_type_for_status(update_data.get("status")), schedule, actor_id
        )
        return schedule

    def join(self, walk_id: int, user_id: str, dog_id: Optional[str] = None) -> WalkParticipant:
        with _join_locks.hold(walk_id):
            try:
                participant = self._join_locked(walk_id, user_id, dog_id)
            except Exception:
                self.db.rollback()
                raise
        logger.info("User %s joined walk %s", user_id, walk_id)
        return participant

    def _join_locked(self, walk_id: int, user_id: str, dog_id: Optional[str]) -> WalkParticipant:
        schedule = self._get(walk_id, for_update=True)
        if schedule.status != "scheduled":
            raise InvalidState("Cannot join a walk that is not scheduled")

        joined = (
            self.db.query(func.count(WalkParticipant.id))
            .filter(WalkParticipant.walk_id == walk_id)
            .filter(WalkParticipant.status == "joined")
            .scalar()
        ) or 0

        existing = (
            self.db.query(WalkParticipant)
            .filter(WalkParticipant.walk_id == walk_id)
            .filter(WalkParticipant.user_id == user_id)
            .first()
        )
        if existing is not None and existing.status == "joined":
            raise InvalidState("Already participating in this walk")
        if joined >= schedule.max_participants:
            raise Full("Walk is already full")

        now = datetime.now(timezone.utc)
        if existing is not None:
            existing.status = "joined"
            existing.dog_id = dog_id
            existing.joined_at = now
            existing.left_at = None
            participant = existing
        else:
            participant = WalkParticipant(
                walk_id=walk_id,
                user_id=user_id,
                dog_id=dog_id,
                status="joined",
                joined_at=now,
            )
            self.db.add(participant)
        self.db.commit()
        self.db.refresh(participant)
        return participant

    def leave(self, walk_id: int, user_id: str) -> WalkParticipant:
        participant = (
            self.db.query(WalkParticipant)
            .filter(WalkParticipant.walk_id == walk_id)
            .filter(WalkParticipant.user_id == user_id)
            .first()
        )
        if not participant:
            raise NotParticipant("You are not a participant in this walk")
        participant.status = "left"
        participant.left_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(participant)
        logger.info("User %s left walk %s", user_id, walk_id)
        return participant

    def list_participants(self, walk_id: int) -> list[WalkParticipant]:
        self._get(walk_id)
        return (
            self.db.query(WalkParticipant)
            .filter(WalkParticipant.walk_id == walk_id)
            .order_by(WalkParticipant.joined_at, WalkParticipant.id)
            .all()
        )

    def list_for_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        upcoming_only: bool = True,
        limit: int = 20,
        offset: int = 0,
        now: Optional[datetime] = None,
    ) -> tuple[list[WalkSchedule], int]:
        """Schedules the user organizes or partners on, soonest first."""
        query = self.db.query(WalkSchedule).filter(
            or_(WalkSchedule.organizer_id == user_id, WalkSchedule.partner_id == user_id)
        )
        if status is not None:
            query = query.filter(WalkSchedule.status == status)
        if upcoming_only:
            if now is None:
                now = datetime.now(timezone.utc)
            local = to_local_datetime(now, settings.timezone)
            today = local.date()
            current_time = local.time().replace(microsecond=0, tzinfo=None)
            query = query.filter(
                or_(
                    WalkSchedule.scheduled_date > today,
                    and_(
                        WalkSchedule.scheduled_date == today,
                        WalkSchedule.scheduled_time >= current_time,
                    ),
                )
            )

        total = query.count()
        schedules = (
            query.order_by(WalkSchedule.scheduled_date, WalkSchedule.scheduled_time, WalkSchedule.id)
            .offset(offset)
            .limit(limit)
            .all()
        )
        return schedules, total
