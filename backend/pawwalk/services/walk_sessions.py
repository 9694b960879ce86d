import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pawwalk.core.errors import NotFound, ValidationError
from pawwalk.core.time_utils import local_today, to_utc_naive
from pawwalk.core.config import settings
from pawwalk.models.walk_schedule import WalkSchedule
from pawwalk.models.walk_session import WalkSession
from pawwalk.schemas.walk import WalkSessionCreate
from pawwalk.services.stats_aggregator import WalkMetrics, apply_walk

logger = logging.getLogger(__name__)


def save_walk_session(db: Session, user_id: str, payload: WalkSessionCreate) -> tuple[WalkSession, bool]:
    """Persist a finished walk, then fold it into the user's totals.

    The walk row is committed first and stays authoritative: a statistics
    failure is logged and reported through the returned flag, never rolled
    back into the session write.
    """
    if payload.scheduled_walk_id is not None and db.get(WalkSchedule, payload.scheduled_walk_id) is None:
        raise ValidationError(f"Scheduled walk {payload.scheduled_walk_id} not found")

    walk = WalkSession(
        user_id=user_id,
        dog_id=payload.dog_id,
        scheduled_walk_id=payload.scheduled_walk_id,
        start_time=to_utc_naive(payload.start_time),
        end_time=to_utc_naive(payload.end_time) if payload.end_time else None,
        duration_minutes=payload.duration_minutes,
        distance_km=payload.distance_km,
        steps=payload.steps,
        calories_burned=payload.calories_burned,
        route_points=[p.model_dump() for p in payload.route_points],
        start_location=payload.start_location.model_dump() if payload.start_location else None,
        end_location=payload.end_location.model_dump() if payload.end_location else None,
        notes=payload.notes,
        is_completed=payload.is_completed,
    )
    db.add(walk)
    try:
        db.commit()
    except IntegrityError as e:
        # schedule deleted between the check and the insert
        db.rollback()
        raise ValidationError(f"Scheduled walk {payload.scheduled_walk_id} not found") from e
    db.refresh(walk)
    logger.info(
        "Saved walk %s for user %s: %.2f km, %d min",
        walk.id, user_id, walk.distance_km, walk.duration_minutes,
    )

    if not walk.is_completed:
        return walk, False

    metrics = WalkMetrics(
        distance_km=payload.distance_km,
        duration_minutes=payload.duration_minutes,
        steps=payload.steps,
        calories_burned=payload.calories_burned,
    )
    try:
        apply_walk(db, user_id, metrics, today=local_today(settings.timezone))
    except Exception:
        db.rollback()
        logger.exception("Walk %s saved but statistics update failed for user %s", walk.id, user_id)
        return walk, False
    return walk, True


def get_walk_session(db: Session, user_id: str, session_id: int) -> WalkSession:
    walk = (
        db.query(WalkSession)
        .filter(WalkSession.id == session_id)
        .filter(WalkSession.user_id == user_id)
        .first()
    )
    if not walk:
        raise NotFound("Walk session not found")
    return walk


def list_walk_sessions(
    db: Session,
    user_id: str,
    limit: int = 20,
    offset: int = 0,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    completed_only: bool = True,
) -> tuple[list[WalkSession], int]:
    """Most recent walks first, with the unpaged total."""
    query = db.query(WalkSession).filter(WalkSession.user_id == user_id)
    if completed_only:
        query = query.filter(WalkSession.is_completed.is_(True))
    if start_date is not None:
        query = query.filter(WalkSession.start_time >= to_utc_naive(start_date))
    if end_date is not None:
        query = query.filter(WalkSession.start_time <= to_utc_naive(end_date))

    total = query.count()
    walks = (
        query.order_by(WalkSession.start_time.desc(), WalkSession.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return walks, total

