from datetime import datetime
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import InvalidState
from app.models.customer_signature import CustomerSignature
from app.services import job_store


def get_signature(db: Session, company_id: int, job_id: int, employee_id: int) -> Optional[CustomerSignature]:
    job, _assignment = job_store.get_job_for_employee(
        db, company_id, job_id, employee_id, include_declined=True
    )
    return (
        db.query(CustomerSignature)
        .filter(CustomerSignature.company_id == job.company_id, CustomerSignature.job_id == job.id)
        .first()
    )


def record_signature(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    signature_data: str,
    signer_name: str,
    signer_email: Optional[str] = None,
    rating: Optional[int] = None,
    feedback: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    signed_address: Optional[str] = None,
    device_type: Optional[str] = None,
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CustomerSignature:
    """Store the customer's sign-off. A job is signed once; a second attempt is an InvalidState."""
    job, _assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)

    existing = (
        db.query(CustomerSignature.id)
        .filter(CustomerSignature.job_id == job.id)
        .first()
    )
    if existing is not None:
        raise InvalidState("Job already has a signature")

    signature = CustomerSignature(
        company_id=job.company_id,
        job_id=job.id,
        customer_id=job.customer_id,
        employee_id=int(employee_id),
        signature_data=signature_data,
        signer_name=signer_name,
        signer_email=signer_email,
        rating=rating,
        feedback=feedback,
        latitude=latitude,
        longitude=longitude,
        signed_address=signed_address,
        device_type=device_type,
        ip_address=ip_address,
        signed_at=now or utcnow(),
    )
    db.add(signature)
    try:
        db.flush()
    except IntegrityError as exc:
        raise InvalidState("Job already has a signature") from exc
    return signature
