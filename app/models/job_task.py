from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from app.core.clock import utcnow
from app.database import Base


class JobTask(Base):
    __tablename__ = "job_tasks"

    id = Column(Integer, primary_key=True, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), nullable=False, default="pending")
    sort_order = Column(Integer, nullable=False, default=0)
    completed_by = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
