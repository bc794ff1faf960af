# galleria/db/models/webhook_event.py
from sqlalchemy import Column, String, Integer, DateTime
from galleria.db.base import Base, utcnow


class ProcessedWebhookEvent(Base):
    """Ledger of payment processor events already applied"""
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)
    processed_at = Column(DateTime, default=utcnow, nullable=False)
