from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, SmallInteger, String, Text, UniqueConstraint

from app.core.clock import utcnow
from app.database import Base


class CustomerSignature(Base):
    """Customer sign-off for a finished job. At most one per job."""

    __tablename__ = "customer_signatures"

    __table_args__ = (
        UniqueConstraint("job_id", name="uq_customer_signatures_job"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="CASCADE"), nullable=False)

    # Base64 image as captured on the device
    signature_data = Column(Text, nullable=False)
    signer_name = Column(String(255), nullable=False)
    signer_email = Column(String(255), nullable=True)

    rating = Column(SmallInteger, nullable=True)
    feedback = Column(Text, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    signed_address = Column(Text, nullable=True)

    device_type = Column(String(100), nullable=True)
    ip_address = Column(String(50), nullable=True)

    signed_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
