"""
On-site verification photos.

Uploading is gated the same way as ticking off tasks: the employee must be
on the job (assignment not declined) and must already have checked in.
A photo with GPS coordinates is stored as verified, one without as pending.
"""
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import get_settings
from app.core.errors import InvalidState, NotFound
from app.models.job_photo import PENDING, VERIFIED, JobPhoto
from app.services import geo, job_store, photo_storage, task_gate
from app.services.check_in_recorder import CheckInReading

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp")


@dataclass
class PhotoUpload:
    original_name: str
    content_type: str
    data: bytes
    task_id: Optional[int] = None
    caption: Optional[str] = None
    reading: CheckInReading = field(default_factory=CheckInReading)


def _validate(upload: PhotoUpload, max_bytes: int) -> None:
    if not upload.data:
        raise InvalidState("No photo provided")
    if len(upload.data) > max_bytes:
        raise InvalidState(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")
    if (upload.content_type or "").lower() not in ALLOWED_CONTENT_TYPES:
        raise InvalidState("File type not allowed")


def _file_name(job_id: int, original_name: str, now: datetime) -> str:
    extension = os.path.splitext(original_name or "")[1].lstrip(".").lower() or "jpg"
    return f"job-{job_id}-{now.strftime('%Y%m%d%H%M%S%f')}.{extension}"


def list_photos(db: Session, company_id: int, job_id: int, employee_id: int) -> List[JobPhoto]:
    job, _assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id)
    return (
        db.query(JobPhoto)
        .filter(JobPhoto.company_id == job.company_id, JobPhoto.job_id == job.id)
        .order_by(JobPhoto.captured_at.desc(), JobPhoto.id.desc())
        .all()
    )


def get_photo(db: Session, company_id: int, job_id: int, photo_id: int, employee_id: int) -> JobPhoto:
    job, _assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id)
    photo = (
        db.query(JobPhoto)
        .filter(
            JobPhoto.id == int(photo_id),
            JobPhoto.company_id == job.company_id,
            JobPhoto.job_id == job.id,
        )
        .first()
    )
    if photo is None:
        raise NotFound("Photo not found")
    return photo


def record_photo(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    upload: PhotoUpload,
    *,
    now: Optional[datetime] = None,
) -> JobPhoto:
    now = now or utcnow()
    job, _assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id)
    task_gate.require_checked_in(db, job, employee_id, "You must check in before uploading photos.")
    _validate(upload, get_settings().photo_max_bytes)

    task_id = None
    if upload.task_id is not None:
        task_id = task_gate.get_task(db, job, upload.task_id).id

    reading = upload.reading
    location = geo.evaluate_location(reading.latitude, reading.longitude, job.site_latitude, job.site_longitude)

    file_name = _file_name(job.id, upload.original_name, now)
    storage_key = f"verification-photos/{job.company_id}/{file_name}"

    photo = JobPhoto(
        company_id=job.company_id,
        job_id=job.id,
        task_id=task_id,
        employee_id=int(employee_id),
        file_name=file_name,
        original_name=upload.original_name or file_name,
        storage_key=storage_key,
        mime_type=upload.content_type,
        size_bytes=len(upload.data),
        latitude=reading.latitude if location.has_location else None,
        longitude=reading.longitude if location.has_location else None,
        location_accuracy=reading.location_accuracy,
        captured_address=reading.captured_address,
        distance_from_job_site=location.distance_m,
        device_type=reading.device_type,
        device_model=reading.device_model,
        user_agent=reading.user_agent,
        verification_status=VERIFIED if location.has_location else PENDING,
        caption=(upload.caption or "").strip() or None,
        captured_at=now,
    )
    db.add(photo)
    db.flush()

    photo_storage.save(storage_key, upload.data)

    logger.info(
        "Job photo stored",
        extra={
            "company_id": job.company_id,
            "job_id": job.id,
            "employee_id": int(employee_id),
            "photo_id": photo.id,
            "size_bytes": photo.size_bytes,
        },
    )
    return photo
