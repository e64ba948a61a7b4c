"""
Payment ledger. Append-only: rows are inserted by webhook handlers and never updated.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Text, Index, UniqueConstraint
from app.db.base import Base, utcnow


class PaymentStatus(str, enum.Enum):
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id", ondelete="SET NULL"), nullable=True)

    external_payment_id = Column(String(255), nullable=False)  # invoice or payment intent id
    provider = Column(String(20), nullable=False, default="STRIPE")
    amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="CAD")
    status = Column(String(30), nullable=False)
    description = Column(String(255), nullable=True)
    invoice_id = Column(String(255), nullable=True)
    receipt_url = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    # One row per (payment, outcome) so redelivered invoice events never duplicate
    __table_args__ = (
        UniqueConstraint("provider", "external_payment_id", "status", name="uq_payment_external_status"),
        Index("idx_payments_user", "user_id"),
    )
