import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pawwalk.core.config import settings
from pawwalk.core.time_utils import period_window, to_local_datetime, to_utc_naive
from pawwalk.models.user_statistics import UserStatistics
from pawwalk.models.walk_session import WalkSession
from pawwalk.schemas.stats import DailyStats, StatsPeriod, StatsReport

logger = logging.getLogger(__name__)


def get_user_stats(db: Session, user_id: str) -> UserStatistics:
    """Return the user's totals row, creating a zeroed one on first access."""
    row = db.query(UserStatistics).filter(UserStatistics.user_id == user_id).first()
    if row is not None:
        return row

    row = UserStatistics(
        user_id=user_id,
        total_walks=0,
        total_distance_km=0.0,
        total_duration_minutes=0,
        total_steps=0,
        total_calories_burned=0,
        current_streak_days=0,
        longest_streak_days=0,
        last_walk_date=None,
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # created concurrently (first walk or another first read)
        db.rollback()
        return db.query(UserStatistics).filter(UserStatistics.user_id == user_id).one()
    db.refresh(row)
    logger.info("Created default statistics for user %s", user_id)
    return row


def get_walk_stats(
    db: Session,
    user_id: str,
    period: StatsPeriod = StatsPeriod.week,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> StatsReport:
    """
    Totals, averages and a per-day breakdown for completed walks whose
    start time falls in the window.

    The window is derived from `period` (ending now); explicit
    `start_date` / `end_date` override the matching side.
    """
    period = StatsPeriod(period)
    if now is None:
        now = datetime.now(timezone.utc)
    local_now = to_local_datetime(now, settings.timezone)
    window_start, window_end = period_window(period.value, local_now)
    if start_date is not None:
        window_start = start_date
    if end_date is not None:
        window_end = end_date

    start_utc = to_utc_naive(window_start)
    end_utc = to_utc_naive(window_end)

    query = (
        db.query(WalkSession)
        .filter(WalkSession.user_id == user_id)
        .filter(WalkSession.is_completed.is_(True))
        .filter(WalkSession.start_time >= start_utc)
        .filter(WalkSession.start_time <= end_utc)
    )

    total_walks, total_distance, total_duration, total_steps, total_calories = (
        query.with_entities(
            func.count(WalkSession.id),
            func.coalesce(func.sum(WalkSession.distance_km), 0.0),
            func.coalesce(func.sum(WalkSession.duration_minutes), 0),
            func.coalesce(func.sum(WalkSession.steps), 0),
            func.coalesce(func.sum(WalkSession.calories_burned), 0),
        ).one()
    )
    total_walks = int(total_walks or 0)
    total_distance = float(total_distance or 0.0)
    total_duration = int(total_duration or 0)

    avg_distance = total_distance / total_walks if total_walks else 0.0
    # half-up, so 2.5 minutes reads as 3
    avg_duration = int(total_duration / total_walks + 0.5) if total_walks else 0
    avg_speed = total_distance / (total_duration / 60) if total_duration else 0.0

    # Daily breakdown keyed by the local calendar day the walk started
    daily: dict[str, DailyStats] = {}
    rows = query.with_entities(
        WalkSession.start_time,
        WalkSession.distance_km,
        WalkSession.duration_minutes,
        WalkSession.steps,
    ).order_by(WalkSession.start_time).all()
    for started, distance, duration, steps in rows:
        day = to_local_datetime(started, settings.timezone).date().isoformat()
        bucket = daily.setdefault(day, DailyStats())
        bucket.walks += 1
        bucket.distance += float(distance or 0.0)
        bucket.duration += int(duration or 0)
        bucket.steps += int(steps or 0)
    for bucket in daily.values():
        bucket.distance = round(bucket.distance, 2)

    return StatsReport(
        period=period,
        start_date=window_start,
        end_date=window_end,
        total_walks=total_walks,
        total_distance=round(total_distance, 2),
        total_duration=total_duration,
        total_steps=int(total_steps or 0),
        total_calories=int(total_calories or 0),
        avg_distance=round(avg_distance, 2),
        avg_duration=avg_duration,
        avg_speed=round(avg_speed, 2),
        daily_breakdown=daily,
    )
