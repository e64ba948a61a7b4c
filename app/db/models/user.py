from sqlalchemy import Column, Integer, String, DateTime
from app.db.base import Base, utcnow


class User(Base):
    """Minimal user identity; profile and auth data live with the account service."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
