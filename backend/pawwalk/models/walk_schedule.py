from sqlalchemy import Boolean, Column, Date, DateTime, Integer, JSON, String, Time
from sqlalchemy.sql import func
from pawwalk.db import Base
from pawwalk.core.constants import DEFAULT_MAX_PARTICIPANTS


class WalkSchedule(Base):
    __tablename__ = "walk_schedules"

    id = Column(Integer, primary_key=True, index=True)

    organizer_id = Column(String(64), nullable=False, index=True)
    partner_id = Column(String(64), nullable=True, index=True)

    title = Column(String(255), nullable=False)
    description = Column(String, nullable=True)

    scheduled_date = Column(Date, nullable=False)
    scheduled_time = Column(Time, nullable=False)
    duration_minutes = Column(Integer, nullable=True)

    location_name = Column(String(255), nullable=False)
    location_address = Column(String, nullable=True)
    location_coordinates = Column(JSON, nullable=True)  # {latitude, longitude}

    max_participants = Column(Integer, nullable=False, default=DEFAULT_MAX_PARTICIPANTS)
    is_group_walk = Column(Boolean, nullable=False, default=False)

    status = Column(
        String(20),
        nullable=False,
        server_default="scheduled",  # scheduled, completed, cancelled
    )
    reminder_sent = Column(Boolean, nullable=False, default=False)
    notes = Column(String, nullable=True)

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
