from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from pawwalk.db import Base


class WalkParticipant(Base):
    __tablename__ = "walk_participants"
    __table_args__ = (
        UniqueConstraint("walk_id", "user_id", name="uq_walk_participants_walk_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    walk_id = Column(
        Integer, ForeignKey("walk_schedules.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id = Column(String(64), nullable=False, index=True)
    dog_id = Column(String(64), nullable=True)

    status = Column(String(20), nullable=False, default="joined")  # joined, left
    joined_at = Column(DateTime(timezone=True), nullable=False)
    left_at = Column(DateTime(timezone=True), nullable=True)
