import uuid

from sqlalchemy import Column, String, Float, DateTime, ForeignKey, JSON, Index
from aetherra.core.database import Base
from aetherra.utils.time import utcnow


class Calculation(Base):
    __tablename__ = "calculations"
    __table_args__ = (
        Index("ix_calculations_user_type", "user_id", "type"),
        Index("ix_calculations_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    type = Column(String(32), nullable=False)  # electricity | vehicle | shipping | supply_chain
    inputs = Column(JSON, nullable=False, default=dict)
    emissions = Column(Float, nullable=False)  # tCO2e, full precision

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, onupdate=utcnow)

    def __repr__(self):
        return f"<Calculation id={self.id} type={self.type} emissions={self.emissions} tCO2e>"
