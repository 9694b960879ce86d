from sqlalchemy import Column, Date, DateTime, Float, Integer, String
from sqlalchemy.sql import func
from pawwalk.db import Base


class UserStatistics(Base):
    __tablename__ = "user_statistics"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, unique=True, index=True)

    total_walks = Column(Integer, nullable=False, default=0)
    total_distance_km = Column(Float, nullable=False, default=0.0)
    total_duration_minutes = Column(Integer, nullable=False, default=0)
    total_steps = Column(Integer, nullable=False, default=0)
    total_calories_burned = Column(Integer, nullable=False, default=0)

    current_streak_days = Column(Integer, nullable=False, default=0)
    longest_streak_days = Column(Integer, nullable=False, default=0)
    last_walk_date = Column(Date, nullable=True)

    # Bumped on every UPDATE; a concurrent writer makes the UPDATE match zero rows
    version = Column(Integer, nullable=False)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    __mapper_args__ = {"version_id_col": version}
