from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text

from app.core.clock import utcnow
from app.database import Base

VERIFIED = "verified"
PENDING = "pending"


class JobPhoto(Base):
    """Verification photo taken on site, optionally tied to one checklist task."""

    __tablename__ = "job_photos"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False, index=True)
    task_id = Column(Integer, ForeignKey("job_tasks.id", ondelete="CASCADE"), nullable=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)

    file_name = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    storage_key = Column(String(500), nullable=False)
    mime_type = Column(String(100), nullable=False)
    size_bytes = Column(Integer, nullable=False)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    location_accuracy = Column(Float, nullable=True)
    captured_address = Column(Text, nullable=True)
    distance_from_job_site = Column(Float, nullable=True)

    device_type = Column(String(100), nullable=True)
    device_model = Column(String(255), nullable=True)
    user_agent = Column(Text, nullable=True)

    verification_status = Column(String(50), nullable=False, default=PENDING)
    caption = Column(Text, nullable=True)

    captured_at = Column(DateTime, nullable=False, index=True)
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)

    @property
    def url(self) -> str:
        return f"/jobs/{self.job_id}/photos/{self.id}/file"
