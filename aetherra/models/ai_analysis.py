import uuid

from sqlalchemy import Column, String, DateTime, ForeignKey, JSON, Text, Index
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class AIAnalysis(Base):
    __tablename__ = "ai_analyses"
    __table_args__ = (
        Index("ix_ai_analyses_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    summary = Column(Text, nullable=False)
    recommendations = Column(JSON, nullable=False, default=list)
    risk_flags = Column(JSON, nullable=False, default=list)
    innovative_idea = Column(JSON, nullable=False, default=dict)

    source = Column(String(16), nullable=False, default="ai")  # ai | fallback | empty
    engine_used = Column(String(50), nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<AIAnalysis id={self.id} source={self.source}>"
