"""Cumulative per-user walk totals and day streaks.

`apply_walk` is a read-modify-write of the single `user_statistics` row for a
user. Two submissions for the same user can race; the row's version column
turns a lost update into a StaleDataError, which we roll back and retry from
a fresh read. A racing first insert shows up as an IntegrityError on the
unique user_id and is retried the same way.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pawwalk.core.config import settings
from pawwalk.core.errors import ServerError
from pawwalk.core.time_utils import local_today
from pawwalk.models.user_statistics import UserStatistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WalkMetrics:
    distance_km: float = 0.0
    duration_minutes: int = 0
    steps: int = 0
    calories_burned: int = 0


def streak(last_walk_date: Optional[date], today: date, current_streak: int) -> int:
    """Consecutive-day streak after walking on `today`.

    Same day keeps the streak, the next day extends it, any gap restarts it.
    """
    if last_walk_date is None:
        return 1
    diff_days = (today - last_walk_date).days
    if diff_days == 0:
        return current_streak
    if diff_days == 1:
        return current_streak + 1
    return 1


def _apply_to_row(row: UserStatistics, metrics: WalkMetrics, today: date) -> None:
    new_streak = streak(row.last_walk_date, today, row.current_streak_days or 0)
    row.total_walks = (row.total_walks or 0) + 1
    row.total_distance_km = (row.total_distance_km or 0.0) + metrics.distance_km
    row.total_duration_minutes = (row.total_duration_minutes or 0) + metrics.duration_minutes
    row.total_steps = (row.total_steps or 0) + metrics.steps
    row.total_calories_burned = (row.total_calories_burned or 0) + metrics.calories_burned
    row.current_streak_days = new_streak
    row.longest_streak_days = max(row.longest_streak_days or 0, new_streak)
    row.last_walk_date = today


def apply_walk(
    db: Session,
    user_id: str,
    metrics: WalkMetrics,
    today: Optional[date] = None,
    max_retries: Optional[int] = None,
) -> UserStatistics:
    """Add one walk to the user's totals and advance the streak."""
    if today is None:
        today = local_today(settings.timezone)
    if max_retries is None:
        max_retries = settings.stats_update_max_retries

    attempts = max(1, max_retries + 1)
    for attempt in range(1, attempts + 1):
        row = db.query(UserStatistics).filter(UserStatistics.user_id == user_id).first()
        if row is None:
            row = UserStatistics(
                user_id=user_id,
                total_walks=0,
                total_distance_km=0.0,
                total_duration_minutes=0,
                total_steps=0,
                total_calories_burned=0,
                current_streak_days=0,
                longest_streak_days=0,
            )
            db.add(row)
        _apply_to_row(row, metrics, today)
        try:
            db.commit()
        except (StaleDataError, IntegrityError) as e:
            db.rollback()
            logger.info(
                "Concurrent statistics update for user %s (attempt %d/%d): %s",
                user_id, attempt, attempts, type(e).__name__,
            )
            continue
        db.refresh(row)
        logger.info(
            "Statistics for user %s: walks=%d streak=%d longest=%d",
            user_id, row.total_walks, row.current_streak_days, row.longest_streak_days,
        )
        return row

    raise ServerError(f"Could not update statistics for user {user_id} after {attempts} attempts")
