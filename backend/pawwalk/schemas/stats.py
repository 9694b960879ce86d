from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class StatsPeriod(str, Enum):
    day = "day"
    week = "week"
    month = "month"
    year = "year"


class UserStatisticsRead(BaseModel):
    user_id: str
    total_walks: int = 0
    total_distance_km: float = 0.0
    total_duration_minutes: int = 0
    total_steps: int = 0
    total_calories_burned: int = 0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    last_walk_date: Optional[date] = None
    model_config = ConfigDict(from_attributes=True)


class DailyStats(BaseModel):
    walks: int = 0
    distance: float = 0.0
    duration: int = 0
    steps: int = 0


class StatsReport(BaseModel):
    """Windowed totals plus a per-day breakdown for charts."""

    period: StatsPeriod
    start_date: datetime
    end_date: datetime

    total_walks: int
    total_distance: float
    total_duration: int
    total_steps: int
    total_calories: int

    avg_distance: float
    avg_duration: int
    avg_speed: float  # km/h

    # 'YYYY-MM-DD' -> totals for sessions starting that day
    daily_breakdown: dict[str, DailyStats]
