from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint

from app.core.clock import utcnow
from app.database import Base

CHECK_IN = "check_in"
CHECK_OUT = "check_out"


class JobCheckIn(Base):
    """Immutable check-in/check-out event. One of each type per (job, employee)."""

    __tablename__ = "job_check_ins"

    __table_args__ = (
        UniqueConstraint("job_id", "employee_id", "type", name="uq_job_check_ins_once"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    type = Column(String(20), nullable=False)

    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    location_accuracy = Column(Float, nullable=True)
    captured_address = Column(Text, nullable=True)

    distance_from_job_site = Column(Float, nullable=True)
    is_within_range = Column(Boolean, nullable=False, default=False)

    device_type = Column(String(100), nullable=True)
    device_model = Column(String(255), nullable=True)
    user_agent = Column(Text, nullable=True)

    checked_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
