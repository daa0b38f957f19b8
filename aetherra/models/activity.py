import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Index
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class Activity(Base):
    __tablename__ = "activities"
    __table_args__ = (
        Index("ix_activities_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    action = Column(String(255), nullable=False)
    category = Column(String(32), nullable=False)  # calculation | report | goal | ai_analysis | auth
    details = Column(JSON, nullable=False, default=dict)

    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Activity id={self.id} category={self.category} action={self.action}>"
