from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.errors import NotFound
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.models.job_check_in import JobCheckIn
from app.models.job_task import JobTask


def get_job(
    db: Session,
    company_id: int,
    job_id: int,
    *,
    for_update: bool = False,
) -> Job:
    """
    Tenant-scoped job lookup. Raises NotFound for missing or foreign jobs.

    for_update takes a row lock (PostgreSQL) so that per-job mutations
    serialize; SQLite ignores it and serializes writers itself.
    """
    q = db.query(Job).filter(
        Job.id == int(job_id),
        Job.company_id == int(company_id),
    )
    if for_update:
        q = q.with_for_update()
    job = q.first()
    if job is None:
        raise NotFound("Job not found")
    return job


def find_assignment(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
) -> Optional[JobAssignment]:
    return (
        db.query(JobAssignment)
        .filter(
            JobAssignment.company_id == int(company_id),
            JobAssignment.job_id == int(job_id),
            JobAssignment.employee_id == int(employee_id),
        )
        .first()
    )


def get_assignment(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    include_declined: bool = False,
) -> JobAssignment:
    assignment = find_assignment(db, company_id, job_id, employee_id)
    if assignment is None:
        raise NotFound("Job not found or not assigned to you")
    if assignment.status == "declined" and not include_declined:
        raise NotFound("Job not found or not assigned to you")
    return assignment


def get_job_for_employee(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    include_declined: bool = False,
    for_update: bool = False,
) -> tuple[Job, JobAssignment]:
    """The job plus the caller's assignment; a job not assigned to the caller is not found."""
    job = get_job(db, company_id, job_id, for_update=for_update)
    assignment = get_assignment(
        db,
        company_id,
        job.id,
        employee_id,
        include_declined=include_declined,
    )
    return job, assignment


def list_assignments(db: Session, company_id: int, job_id: int) -> List[JobAssignment]:
    return (
        db.query(JobAssignment)
        .filter(
            JobAssignment.company_id == int(company_id),
            JobAssignment.job_id == int(job_id),
        )
        .order_by(JobAssignment.id.asc())
        .all()
    )


def list_tasks(db: Session, job_id: int) -> List[JobTask]:
    return (
        db.query(JobTask)
        .filter(JobTask.job_id == int(job_id))
        .order_by(JobTask.sort_order.asc(), JobTask.id.asc())
        .all()
    )


def list_check_ins(db: Session, company_id: int, job_id: int, employee_id: int) -> List[JobCheckIn]:
    return (
        db.query(JobCheckIn)
        .filter(
            JobCheckIn.company_id == int(company_id),
            JobCheckIn.job_id == int(job_id),
            JobCheckIn.employee_id == int(employee_id),
        )
        .order_by(JobCheckIn.checked_at.asc(), JobCheckIn.id.asc())
        .all()
    )
