"""
Per-job assignment ledger.

A job may be worked by several employees at once. Each (job, employee) pair
has one JobAssignment row whose status moves:

    assigned -> accepted -> completed
    assigned/accepted -> declined

Declined rows are ignored by every aggregate check. Aggregates are computed
with a single COUNT query over the job's active rows so the caller's
read-decide-write happens inside one transaction on a locked job row.

Functions never commit; the caller owns the transaction.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import Conflict, InvalidState
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.services import job_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssignmentTally:
    active: int
    accepted: int
    completed: int

    @property
    def all_accepted(self) -> bool:
        return self.active > 0 and self.accepted == self.active

    @property
    def all_completed(self) -> bool:
        return self.active > 0 and self.completed == self.active


def tally(db: Session, job: Job) -> AssignmentTally:
    active, accepted, completed = (
        db.query(
            func.count(JobAssignment.id),
            func.coalesce(
                func.sum(case((JobAssignment.status.in_(("accepted", "completed")), 1), else_=0)),
                0,
            ),
            func.coalesce(func.sum(case((JobAssignment.status == "completed", 1), else_=0)), 0),
        )
        .filter(
            JobAssignment.company_id == job.company_id,
            JobAssignment.job_id == job.id,
            JobAssignment.status != "declined",
        )
        .one()
    )
    return AssignmentTally(active=int(active), accepted=int(accepted), completed=int(completed))


def all_accepted(db: Session, job: Job) -> bool:
    return tally(db, job).all_accepted


def all_completed(db: Session, job: Job) -> bool:
    return tally(db, job).all_completed


def active_assignments(db: Session, job: Job) -> List[JobAssignment]:
    return [a for a in job_store.list_assignments(db, job.company_id, job.id) if a.status != "declined"]


def assign(
    db: Session,
    job: Job,
    employee_id: int,
    *,
    pay_amount: Optional[Decimal] = None,
) -> JobAssignment:
    existing = job_store.find_assignment(db, job.company_id, job.id, employee_id)
    if existing is not None:
        raise Conflict("Employee is already assigned to this job")

    assignment = JobAssignment(
        company_id=job.company_id,
        job_id=job.id,
        employee_id=int(employee_id),
        pay_amount=pay_amount,
        status="assigned",
    )
    db.add(assignment)
    try:
        db.flush()
    except IntegrityError as exc:
        raise Conflict("Employee is already assigned to this job") from exc

    if job.assigned_to is None:
        job.assigned_to = int(employee_id)
        if job.status == "pending":
            job.status = "scheduled"

    # A new member means the team has not unanimously accepted any more.
    job.employee_accepted = False
    job.employee_accepted_at = None
    db.flush()

    logger.info(
        "Employee assigned to job",
        extra={"company_id": job.company_id, "job_id": job.id, "employee_id": int(employee_id)},
    )
    return assignment


def accept(db: Session, job: Job, employee_id: int) -> JobAssignment:
    assignment = job_store.get_assignment(
        db, job.company_id, job.id, employee_id, include_declined=True
    )
    if assignment.status in ("accepted", "completed"):
        raise InvalidState("You have already accepted this job")
    if job.status in ("completed", "cancelled", "rejected"):
        raise InvalidState(f"Job is {job.status} and can no longer be accepted")

    assignment.status = "accepted"
    assignment.accepted_at = utcnow()

    if job.assigned_to is None:
        job.assigned_to = int(employee_id)
        if job.status == "pending":
            job.status = "scheduled"

    db.flush()
    return assignment


def decline(
    db: Session,
    job: Job,
    employee_id: int,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> JobAssignment:
    if job.status == "completed":
        raise InvalidState("Completed jobs cannot be declined.")

    assignment = job_store.get_assignment(
        db, job.company_id, job.id, employee_id, include_declined=True
    )
    if assignment.status == "completed":
        raise InvalidState("Completed assignments cannot be declined.")
    if assignment.status == "declined":
        raise InvalidState("You have already declined this job")

    now = now or utcnow()

    assignment.status = "declined"
    assignment.accepted_at = None
    db.flush()

    remaining = active_assignments(db, job)
    job.assigned_to = remaining[0].employee_id if remaining else None
    if not remaining and job.status not in ("cancelled", "rejected"):
        job.status = "pending"

    job.employee_accepted = False
    job.employee_accepted_at = None

    note = f"[Job Declined by Employee - {now.isoformat()}]"
    if reason:
        note = f"{note}\nReason: {reason}"
    job.internal_notes = f"{job.internal_notes}\n\n{note}" if job.internal_notes else note

    db.flush()

    logger.info(
        "Assignment declined",
        extra={
            "company_id": job.company_id,
            "job_id": job.id,
            "employee_id": int(employee_id),
            "remaining_active": len(remaining),
        },
    )
    return assignment


def mark_completed(
    db: Session,
    job: Job,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
) -> JobAssignment:
    assignment = job_store.get_assignment(db, job.company_id, job.id, employee_id)
    if assignment.status == "completed":
        return assignment

    assignment.status = "completed"
    assignment.completed_at = now or utcnow()
    db.flush()
    return assignment
