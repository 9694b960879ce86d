from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from pawwalk.api.deps import get_current_user_id
from pawwalk.core.config import settings
from pawwalk.db import get_db
from pawwalk.schemas.schedule import (
    JoinRequest,
    ParticipantRead,
    ScheduleCreate,
    ScheduleEvent,
    ScheduleList,
    ScheduleRead,
    ScheduleStatus,
    ScheduleUpdate,
)
from pawwalk.services.broadcaster import ScheduleBroadcaster, Subscription, get_broadcaster
from pawwalk.services.scheduling import ScheduleService

router = APIRouter(prefix="/schedules", tags=["schedules"])


def get_schedule_service(
    db: Session = Depends(get_db),
    broadcaster: ScheduleBroadcaster = Depends(get_broadcaster),
) -> ScheduleService:
    return ScheduleService(db, broadcaster)


def format_sse(event: ScheduleEvent) -> str:
    return f"event: {event.type.value}\ndata: {event.model_dump_json()}\n\n"


def _event_stream(sub: Subscription, keepalive: float):
    try:
        while True:
            event = sub.get(timeout=keepalive)
            if event is None:
                # comment line keeps proxies from closing an idle stream
                yield ": keepalive\n\n"
                continue
            yield format_sse(event)
    finally:
        sub.close()


@router.get("/updates")
def subscribe_schedule_updates(
    user_id: str = Depends(get_current_user_id),
    broadcaster: ScheduleBroadcaster = Depends(get_broadcaster),
):
    """Server-Sent Events stream of schedule changes that concern the caller."""
    sub = broadcaster.subscribe(user_id)
    return StreamingResponse(
        _event_stream(sub, settings.sse_keepalive_seconds),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )


@router.post("/", response_model=ScheduleRead)
def create_schedule(
    payload: ScheduleCreate,
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    return ScheduleRead.from_row(service.create(user_id, payload))


@router.get("/", response_model=ScheduleList)
def list_schedules(
    status: Optional[ScheduleStatus] = Query(None),
    upcoming_only: bool = Query(True),
    limit: int = Query(20, gt=0, le=50),
    offset: int = Query(0, ge=0),
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    schedules, total = service.list_for_user(
        user_id,
        status=status.value if status else None,
        upcoming_only=upcoming_only,
        limit=limit,
        offset=offset,
    )
    return ScheduleList(
        schedules=[ScheduleRead.from_row(s) for s in schedules],
        total=total,
        has_more=(offset + limit) < total,
    )


@router.put("/{schedule_id}", response_model=ScheduleRead)
def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdate,
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    return ScheduleRead.from_row(service.update(schedule_id, user_id, payload))


@router.post("/{walk_id}/join", response_model=ParticipantRead)
def join_walk(
    walk_id: int,
    payload: Optional[JoinRequest] = None,
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    dog_id = payload.dog_id if payload else None
    return service.join(walk_id, user_id, dog_id=dog_id)


@router.post("/{walk_id}/leave", response_model=ParticipantRead)
def leave_walk(
    walk_id: int,
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    return service.leave(walk_id, user_id)


@router.get("/{walk_id}/participants", response_model=list[ParticipantRead])
def list_participants(
    walk_id: int,
    user_id: str = Depends(get_current_user_id),
    service: ScheduleService = Depends(get_schedule_service),
):
    return service.list_participants(walk_id)
