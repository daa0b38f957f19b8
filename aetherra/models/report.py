import uuid

from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, JSON, Text
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    type = Column(String(8), nullable=False, default="pdf")  # pdf | csv
    summary = Column(Text, nullable=True)

    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)

    # Frozen copies, never recomputed from live calculations
    data_snapshot = Column(JSON, nullable=False)
    ai_insights_snapshot = Column(JSON, nullable=True)

    expires_at = Column(DateTime, nullable=False, index=True)
    download_count = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Report id={self.id} title={self.title} expires_at={self.expires_at}>"
