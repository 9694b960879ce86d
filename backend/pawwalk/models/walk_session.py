from sqlalchemy import Boolean, Column, DateTime, Float, Integer, JSON, String, ForeignKey
from sqlalchemy.sql import func
from pawwalk.db import Base


class WalkSession(Base):
    __tablename__ = "walk_sessions"

    id = Column(Integer, primary_key=True, index=True)

    # Users and dogs live outside this service; ids are opaque strings
    user_id = Column(String(64), nullable=False, index=True)
    dog_id = Column(String(64), nullable=True)
    scheduled_walk_id = Column(
        Integer, ForeignKey("walk_schedules.id", ondelete="SET NULL"), nullable=True
    )

    # Naive UTC
    start_time = Column(DateTime, nullable=False, index=True)
    end_time = Column(DateTime, nullable=True)

    duration_minutes = Column(Integer, nullable=False, default=0)
    distance_km = Column(Float, nullable=False, default=0.0)
    steps = Column(Integer, nullable=False, default=0)
    calories_burned = Column(Integer, nullable=False, default=0)

    # [{latitude, longitude, timestamp}] ordered by timestamp (ms)
    route_points = Column(JSON, nullable=True)
    # {latitude, longitude}
    start_location = Column(JSON, nullable=True)
    end_location = Column(JSON, nullable=True)

    notes = Column(String, nullable=True)
    is_completed = Column(Boolean, nullable=False, default=True)

    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
