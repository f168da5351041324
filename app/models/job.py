from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Text

from app.core.clock import utcnow
from app.database import Base

JOB_STATUSES = (
    "scheduled",
    "in_progress",
    "paused",
    "completed",
    "cancelled",
    "rejected",
    "pending",
)


class Job(Base):
    __tablename__ = "jobs"

    __table_args__ = (
        CheckConstraint(
            "status IN ('scheduled','in_progress','paused','completed','cancelled','rejected','pending')",
            name="ck_jobs_status",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(Integer, ForeignKey("cleaning_plans.id", ondelete="SET NULL"), nullable=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    location = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    postcode = Column(String(50), nullable=True)
    site_latitude = Column(Float, nullable=True)
    site_longitude = Column(Float, nullable=True)

    scheduled_for = Column(DateTime, nullable=True, index=True)
    scheduled_end = Column(DateTime, nullable=True)
    duration_minutes = Column(Integer, nullable=True, default=60)

    status = Column(String(50), nullable=False, default="scheduled", index=True)
    assigned_to = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)

    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    rejected_at = Column(DateTime, nullable=True)

    estimated_price = Column(Numeric(10, 2), nullable=True)
    actual_price = Column(Numeric(10, 2), nullable=True)
    currency = Column(String(10), nullable=False, default="GBP")

    employee_accepted = Column(Boolean, nullable=False, default=False)
    employee_accepted_at = Column(DateTime, nullable=True)
    customer_confirmation_sent = Column(Boolean, nullable=False, default=False)
    customer_confirmation_sent_at = Column(DateTime, nullable=True)

    internal_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def full_location(self) -> str:
        parts = [p for p in (self.location, self.city, self.postcode) if p]
        return ", ".join(parts)
