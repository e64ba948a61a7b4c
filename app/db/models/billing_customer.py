"""
Mapping from users to their payment-provider customer record.
"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from app.db.base import Base, utcnow


class BillingCustomer(Base):
    __tablename__ = "billing_customers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    customer_id = Column(String(255), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
