"""
Receipts of processed provider webhook events, used for idempotency.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text
from app.db.base import Base, utcnow


class WebhookEventReceipt(Base):
    __tablename__ = "webhook_event_receipts"

    id = Column(Integer, primary_key=True, index=True)
    external_event_id = Column(String(255), nullable=False, unique=True, index=True)
    event_type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="PROCESSED")
    raw_payload = Column(Text, nullable=False)
    processed_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
