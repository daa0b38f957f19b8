import uuid

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, JSON, Text, Index
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        Index("ix_goals_user_status", "user_id", "status"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(32), nullable=False, default="general")

    target = Column(Float, nullable=False)
    target_type = Column(String(16), nullable=False, default="percentage")  # percentage | absolute
    baseline = Column(Float, nullable=True)
    current = Column(Float, nullable=False, default=0.0)

    deadline = Column(DateTime, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="active")  # active | completed | overdue | cancelled
    milestones = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    def __repr__(self):
        return f"<Goal id={self.id} title={self.title} status={self.status}>"
