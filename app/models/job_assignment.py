from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint

from app.core.clock import utcnow
from app.database import Base

ASSIGNMENT_STATUSES = ("assigned", "accepted", "declined", "completed")


class JobAssignment(Base):
    __tablename__ = "job_assignments"

    __table_args__ = (
        UniqueConstraint("job_id", "employee_id", name="uq_job_assignments_job_employee"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(String(50), nullable=False, default="assigned")
    pay_amount = Column(Numeric(10, 2), nullable=True)

    accepted_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
