"""
Check-in / check-out event log.

Each employee checks in to a job once and checks out once. Rows are never
updated. The lookup below gives callers a clear error; the
uq_job_check_ins_once constraint catches two requests racing past it.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import get_settings
from app.core.errors import AlreadyCheckedIn, AlreadyCheckedOut, NotCheckedIn
from app.models.job import Job
from app.models.job_check_in import CHECK_IN, CHECK_OUT, JobCheckIn
from app.services import geo, job_store

logger = logging.getLogger(__name__)

NOT_CHECKED_IN = "not_checked_in"
CHECKED_IN = "checked_in"
CHECKED_OUT = "checked_out"

AUTO_CHECK_OUT_ADDRESS = "Auto check-out on completion"


@dataclass
class CheckInReading:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    location_accuracy: Optional[float] = None
    captured_address: Optional[str] = None
    device_type: Optional[str] = None
    device_model: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class CheckInSummary:
    status: str
    last_check_in: Optional[JobCheckIn]
    last_check_out: Optional[JobCheckIn]
    total_time_on_site: int
    has_checked_in: bool
    has_checked_out: bool
    job_duration: Optional[int]
    check_ins: List[JobCheckIn] = field(default_factory=list)


def _latest(rows: Sequence[JobCheckIn], kind: str) -> Optional[JobCheckIn]:
    latest = None
    for row in rows:
        if row.type != kind:
            continue
        if latest is None or row.checked_at >= latest.checked_at:
            latest = row
    return latest


def check_in_status(rows: Sequence[JobCheckIn]) -> str:
    last_in = _latest(rows, CHECK_IN)
    last_out = _latest(rows, CHECK_OUT)
    if last_in is not None and (last_out is None or last_in.checked_at > last_out.checked_at):
        return CHECKED_IN
    if last_out is not None:
        return CHECKED_OUT
    return NOT_CHECKED_IN


def elapsed_on_site(rows: Sequence[JobCheckIn], now: Optional[datetime] = None) -> int:
    """Whole minutes on site: closed check-in/check-out pairs plus any open check-in up to now."""
    now = now or utcnow()
    ordered = sorted(rows, key=lambda r: (r.checked_at, r.id or 0))

    total_seconds = 0.0
    open_check_in: Optional[JobCheckIn] = None
    for row in ordered:
        if row.type == CHECK_IN:
            open_check_in = row
        elif row.type == CHECK_OUT and open_check_in is not None:
            total_seconds += (row.checked_at - open_check_in.checked_at).total_seconds()
            open_check_in = None

    if open_check_in is not None and check_in_status(rows) == CHECKED_IN:
        total_seconds += max(0.0, (now - open_check_in.checked_at).total_seconds())

    return int(total_seconds // 60)


def job_duration(rows: Sequence[JobCheckIn]) -> Optional[int]:
    last_in = _latest(rows, CHECK_IN)
    last_out = _latest(rows, CHECK_OUT)
    if last_in is None or last_out is None:
        return None
    return int((last_out.checked_at - last_in.checked_at).total_seconds() // 60)


def summarize(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
) -> CheckInSummary:
    rows = job_store.list_check_ins(db, company_id, job_id, employee_id)
    newest_first = sorted(rows, key=lambda r: (r.checked_at, r.id or 0), reverse=True)
    return CheckInSummary(
        status=check_in_status(rows),
        last_check_in=_latest(rows, CHECK_IN),
        last_check_out=_latest(rows, CHECK_OUT),
        total_time_on_site=elapsed_on_site(rows, now),
        has_checked_in=any(r.type == CHECK_IN for r in rows),
        has_checked_out=any(r.type == CHECK_OUT for r in rows),
        job_duration=job_duration(rows),
        check_ins=newest_first,
    )


def has_checked_in(db: Session, company_id: int, job_id: int, employee_id: int) -> bool:
    return _find(db, company_id, job_id, employee_id, CHECK_IN) is not None


def _find(db: Session, company_id: int, job_id: int, employee_id: int, kind: str) -> Optional[JobCheckIn]:
    return (
        db.query(JobCheckIn)
        .filter(
            JobCheckIn.company_id == int(company_id),
            JobCheckIn.job_id == int(job_id),
            JobCheckIn.employee_id == int(employee_id),
            JobCheckIn.type == kind,
        )
        .first()
    )


def _insert(
    db: Session,
    job: Job,
    employee_id: int,
    kind: str,
    reading: CheckInReading,
    checked_at: datetime,
) -> JobCheckIn:
    settings = get_settings()
    location = geo.evaluate_location(
        reading.latitude,
        reading.longitude,
        job.site_latitude,
        job.site_longitude,
        radius_m=settings.check_in_radius_m,
    )

    captured_address = reading.captured_address
    if not captured_address and not location.has_location:
        captured_address = geo.LOCATION_UNAVAILABLE

    row = JobCheckIn(
        company_id=job.company_id,
        job_id=job.id,
        employee_id=int(employee_id),
        type=kind,
        latitude=float(reading.latitude) if location.has_location else 0.0,
        longitude=float(reading.longitude) if location.has_location else 0.0,
        location_accuracy=reading.location_accuracy,
        captured_address=captured_address,
        distance_from_job_site=location.distance_m,
        is_within_range=location.is_within_range,
        device_type=reading.device_type,
        device_model=reading.device_model,
        user_agent=reading.user_agent,
        checked_at=checked_at,
    )
    db.add(row)
    try:
        db.flush()
    except IntegrityError as exc:
        if kind == CHECK_IN:
            raise AlreadyCheckedIn() from exc
        raise AlreadyCheckedOut() from exc

    logger.info(
        "Check-in event recorded",
        extra={
            "company_id": job.company_id,
            "job_id": job.id,
            "employee_id": int(employee_id),
            "type": kind,
            "within_range": location.is_within_range,
            "distance_m": location.distance_m,
        },
    )
    return row


def record_check_in(
    db: Session,
    job: Job,
    employee_id: int,
    reading: CheckInReading,
    *,
    now: Optional[datetime] = None,
) -> JobCheckIn:
    if _find(db, job.company_id, job.id, employee_id, CHECK_IN) is not None:
        raise AlreadyCheckedIn()
    if _find(db, job.company_id, job.id, employee_id, CHECK_OUT) is not None:
        raise AlreadyCheckedOut("You have already checked out from this job; it cannot be checked in to again.")

    row = _insert(db, job, employee_id, CHECK_IN, reading, now or utcnow())

    if job.status == "scheduled":
        job.status = "in_progress"
        db.flush()

    return row


def record_check_out(
    db: Session,
    job: Job,
    employee_id: int,
    reading: CheckInReading,
    *,
    now: Optional[datetime] = None,
) -> JobCheckIn:
    if _find(db, job.company_id, job.id, employee_id, CHECK_IN) is None:
        raise NotCheckedIn()
    if _find(db, job.company_id, job.id, employee_id, CHECK_OUT) is not None:
        raise AlreadyCheckedOut()

    return _insert(db, job, employee_id, CHECK_OUT, reading, now or utcnow())


def record_auto_check_out(
    db: Session,
    job: Job,
    employee_id: int,
    *,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Optional[JobCheckIn]:
    """Synthetic check-out written when a job is completed without one. None if already checked out."""
    if _find(db, job.company_id, job.id, employee_id, CHECK_OUT) is not None:
        return None

    row = JobCheckIn(
        company_id=job.company_id,
        job_id=job.id,
        employee_id=int(employee_id),
        type=CHECK_OUT,
        latitude=0.0,
        longitude=0.0,
        captured_address=AUTO_CHECK_OUT_ADDRESS,
        distance_from_job_site=None,
        is_within_range=False,
        device_type="system",
        user_agent=user_agent,
        checked_at=now or utcnow(),
    )
    db.add(row)
    db.flush()
    return row
