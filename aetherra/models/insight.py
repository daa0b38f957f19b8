import uuid

from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, JSON, Text, Index
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class Insight(Base):
    __tablename__ = "insights"
    __table_args__ = (
        Index("ix_insights_user_dismissed_priority", "user_id", "dismissed", "priority"),
        Index("ix_insights_user_category", "user_id", "category"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(32), nullable=False)  # analysis | trend | recommendation | info
    category = Column(String(32), nullable=False)  # emissions | analysis | optimization | data_quality
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    impact = Column(String(16), nullable=False, default="low")
    priority = Column(String(16), nullable=False, default="medium")
    actionable = Column(Boolean, nullable=False, default=False)
    related_data = Column(JSON, nullable=True)

    dismissed = Column(Boolean, nullable=False, default=False)
    dismissed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    def __repr__(self):
        return f"<Insight id={self.id} title={self.title!r} dismissed={self.dismissed}>"
