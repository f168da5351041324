from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.core.clock import utcnow
from app.database import Base
from app.models.types import JSONType


class JobEvent(Base):
    """Timeline entry on a job (check-out comments, declines, completion)."""

    __tablename__ = "job_events"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    type = Column(String(100), nullable=False)
    message = Column(Text, nullable=True)
    meta = Column(JSONType, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
