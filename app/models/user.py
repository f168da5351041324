from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from app.core.clock import utcnow
from app.database import Base


class User(Base):
    """Office staff of a company; receives admin notifications."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    role = Column(String(50), nullable=False, default="admin")
    created_at = Column(DateTime, nullable=False, default=utcnow)
