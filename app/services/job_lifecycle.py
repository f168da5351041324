"""
Job lifecycle state machine.

    scheduled -> in_progress -> completed
    scheduled/in_progress -> paused
    any but completed/rejected -> rejected
    any but completed/cancelled -> cancelled

Every mutation locks the job row first, validates the transition before
writing anything, and enqueues its side effects as outbox rows in the same
transaction. Nothing here commits; routers commit and then hand
LifecycleResult.event_ids to event_dispatch.dispatch_events().

Whole-job completion is a conditional UPDATE on status; only the request
whose update changed the row enqueues JOB_COMPLETED, so the invoice and the
completion emails fire once however many employees finish at the same time.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import InvalidState, NotFound
from app.models.customer import Customer
from app.models.employee import Employee
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.models.job_check_in import JobCheckIn
from app.models.job_event import JobEvent
from app.models.job_task import JobTask
from app.services import assignment_ledger, check_in_recorder, event_dispatch, job_store, task_gate
from app.services.check_in_recorder import CheckInReading

logger = logging.getLogger(__name__)

START = "start"
COMPLETE = "complete"
PAUSE = "pause"
REJECT = "reject"

TERMINAL_STATUSES = ("completed", "cancelled", "rejected")


@dataclass
class LifecycleResult:
    job: Job
    assignment: Optional[JobAssignment] = None
    check_in: Optional[JobCheckIn] = None
    job_completed: bool = False
    all_accepted: bool = False
    event_ids: List[int] = field(default_factory=list)


def _enqueue(
    db: Session,
    result: LifecycleResult,
    event_type: str,
    idempotency_key: str,
    payload: Dict[str, Any],
) -> None:
    row = event_dispatch.enqueue_event(
        db,
        company_id=result.job.company_id,
        event_type=event_type,
        idempotency_key=idempotency_key,
        payload=payload,
    )
    if row is not None:
        result.event_ids.append(row.id)


def _record_event(
    db: Session,
    job: Job,
    event_type: str,
    *,
    actor_id: Optional[int] = None,
    message: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> JobEvent:
    event = JobEvent(
        company_id=job.company_id,
        job_id=job.id,
        actor_id=actor_id,
        type=event_type,
        message=message,
        meta=meta,
    )
    db.add(event)
    db.flush()
    return event


def _enqueue_job_started(db: Session, result: LifecycleResult, employee_id: int, started_at: datetime) -> None:
    # Keyed by job: check-in and the start action share one "job started" email.
    _enqueue(
        db,
        result,
        event_dispatch.JOB_STARTED,
        str(result.job.id),
        {"job_id": result.job.id, "employee_id": int(employee_id), "started_at": started_at.isoformat()},
    )


def _evaluate_completion(
    db: Session,
    result: LifecycleResult,
    employee_id: int,
    now: datetime,
) -> bool:
    job = result.job
    if not assignment_ledger.all_completed(db, job):
        return False

    db.flush()
    changed = (
        db.query(Job)
        .filter(
            Job.id == job.id,
            Job.company_id == job.company_id,
            Job.status.notin_(TERMINAL_STATUSES),
        )
        .update(
            {"status": "completed", "completed_at": now, "updated_at": now},
            synchronize_session=False,
        )
    )
    if changed != 1:
        return False

    db.refresh(job)
    result.job_completed = True

    _record_event(db, job, "completed", actor_id=int(employee_id))
    _enqueue(
        db,
        result,
        event_dispatch.JOB_COMPLETED,
        str(job.id),
        {"job_id": job.id, "employee_id": int(employee_id), "completed_at": now.isoformat()},
    )
    logger.info(
        "Job completed",
        extra={"company_id": job.company_id, "job_id": job.id, "employee_id": int(employee_id)},
    )
    return True


def check_in(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    reading: CheckInReading,
    *,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status in TERMINAL_STATUSES:
        raise InvalidState(f"Job is {job.status}; check-in is closed.")
    if assignment.status == "completed":
        raise InvalidState("You have already completed this job.")
    result = LifecycleResult(job=job, assignment=assignment)

    was_scheduled = job.status == "scheduled"

    result.check_in = check_in_recorder.record_check_in(db, job, employee_id, reading, now=now)

    if was_scheduled and job.started_at is None:
        job.started_at = now
        db.flush()

    if was_scheduled:
        _enqueue_job_started(db, result, employee_id, now)

    _enqueue(
        db,
        result,
        event_dispatch.EMPLOYEE_CHECKED_IN,
        f"{job.id}:{int(employee_id)}",
        {"job_id": job.id, "employee_id": int(employee_id), "checked_in_at": now.isoformat()},
    )
    return result


def check_out(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    reading: CheckInReading,
    *,
    comment: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status in ("cancelled", "rejected"):
        raise InvalidState(f"Job is {job.status}; check-out is closed.")
    result = LifecycleResult(job=job, assignment=assignment)

    result.check_in = check_in_recorder.record_check_out(db, job, employee_id, reading, now=now)
    result.assignment = assignment_ledger.mark_completed(db, job, employee_id, now=now)

    comment = (comment or "").strip() or None
    if comment:
        _record_event(db, job, "check_out_comment", actor_id=int(employee_id), message=comment)

    _evaluate_completion(db, result, employee_id, now)

    rows = job_store.list_check_ins(db, job.company_id, job.id, employee_id)
    _enqueue(
        db,
        result,
        event_dispatch.EMPLOYEE_CHECKED_OUT,
        f"{job.id}:{int(employee_id)}",
        {
            "job_id": job.id,
            "employee_id": int(employee_id),
            "checked_out_at": now.isoformat(),
            "duration_minutes": check_in_recorder.job_duration(rows),
            "comment": comment,
        },
    )
    return result


def complete_job(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status in ("cancelled", "rejected"):
        raise InvalidState(f"Job is {job.status} and cannot be completed.")
    task_gate.require_all_tasks_completed(db, job)

    result = LifecycleResult(job=job, assignment=assignment)
    was_scheduled = job.status == "scheduled"

    result.assignment = assignment_ledger.mark_completed(db, job, employee_id, now=now)
    result.check_in = check_in_recorder.record_auto_check_out(
        db, job, employee_id, user_agent=user_agent, now=now
    )

    if not _evaluate_completion(db, result, employee_id, now) and was_scheduled:
        job.status = "in_progress"
        db.flush()

    return result


def start_job(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status in TERMINAL_STATUSES:
        raise InvalidState(f"Job is {job.status} and cannot be started.")

    result = LifecycleResult(job=job, assignment=assignment)
    was_scheduled = job.status == "scheduled"

    job.status = "in_progress"
    job.started_at = now
    db.flush()

    if was_scheduled:
        _enqueue_job_started(db, result, employee_id, now)
    return result


def pause_job(db: Session, company_id: int, job_id: int, employee_id: int) -> LifecycleResult:
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status not in ("scheduled", "in_progress"):
        raise InvalidState("Only scheduled or in-progress jobs can be paused.")

    job.status = "paused"
    db.flush()
    return LifecycleResult(job=job, assignment=assignment)


def reject_job(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    if job.status in ("completed", "rejected"):
        raise InvalidState("Job is already completed or rejected.")

    job.status = "rejected"
    job.rejected_at = now or utcnow()
    db.flush()
    return LifecycleResult(job=job, assignment=assignment)


def update_notes(db: Session, company_id: int, job_id: int, employee_id: int, notes: Optional[str]) -> LifecycleResult:
    job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    job.internal_notes = notes
    db.flush()
    return LifecycleResult(job=job, assignment=assignment)


def apply_action(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    action: Optional[str],
    *,
    notes: Optional[str] = None,
    notes_given: bool = False,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    """PATCH /jobs/{id}: run the action, then replace internal notes when they were sent."""
    now = now or utcnow()
    if action == START:
        result = start_job(db, company_id, job_id, employee_id, now=now)
    elif action == COMPLETE:
        result = complete_job(db, company_id, job_id, employee_id, user_agent=user_agent, now=now)
    elif action == PAUSE:
        result = pause_job(db, company_id, job_id, employee_id)
    elif action == REJECT:
        result = reject_job(db, company_id, job_id, employee_id, now=now)
    elif action is None:
        result = update_notes(db, company_id, job_id, employee_id, notes)
        notes_given = False
    else:
        raise InvalidState(f"Unknown action: {action}")

    if notes_given:
        result.job.internal_notes = notes
        db.flush()
    return result


def accept_job(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job = job_store.get_job(db, company_id, job_id, for_update=True)
    assignment = assignment_ledger.accept(db, job, employee_id)
    result = LifecycleResult(job=job, assignment=assignment)

    if not assignment_ledger.all_accepted(db, job):
        return result

    result.all_accepted = True
    job.employee_accepted = True
    job.employee_accepted_at = now
    db.flush()

    confirmed = (
        db.query(Job)
        .filter(
            Job.id == job.id,
            Job.company_id == job.company_id,
            Job.customer_confirmation_sent.is_(False),
        )
        .update(
            {"customer_confirmation_sent": True, "customer_confirmation_sent_at": now},
            synchronize_session=False,
        )
    )
    if confirmed == 1:
        db.refresh(job)
        _enqueue(db, result, event_dispatch.JOB_CONFIRMED, str(job.id), {"job_id": job.id})

    _enqueue(
        db,
        result,
        event_dispatch.JOB_ACCEPTED,
        f"{job.id}:{assignment.id}",
        {"job_id": job.id, "employee_id": int(employee_id)},
    )
    return result


def decline_job(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> LifecycleResult:
    now = now or utcnow()
    job = job_store.get_job(db, company_id, job_id, for_update=True)
    reason = (reason or "").strip() or None

    assignment = assignment_ledger.decline(db, job, employee_id, reason=reason, now=now)
    result = LifecycleResult(job=job, assignment=assignment)

    _record_event(db, job, "declined", actor_id=int(employee_id), message=reason)
    _enqueue(
        db,
        result,
        event_dispatch.JOB_DECLINED,
        f"{job.id}:{assignment.id}:{now.isoformat()}",
        {"job_id": job.id, "employee_id": int(employee_id), "reason": reason},
    )
    return result


def set_task_status(
    db: Session,
    company_id: int,
    job_id: int,
    task_id: int,
    employee_id: int,
    completed: bool,
) -> JobTask:
    job, _assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id, for_update=True)
    return task_gate.set_task_status(db, job, task_id, employee_id, completed)


def _employee_in_company(db: Session, company_id: int, employee_id: int) -> Employee:
    employee = (
        db.query(Employee)
        .filter(
            Employee.id == int(employee_id),
            Employee.company_id == int(company_id),
            Employee.is_active.is_(True),
        )
        .first()
    )
    if employee is None:
        raise NotFound("Employee not found")
    return employee


def create_job(
    db: Session,
    company_id: int,
    *,
    customer_id: int,
    title: str,
    fields: Optional[Dict[str, Any]] = None,
    employee_ids: Iterable[int] = (),
    task_titles: Sequence[str] = (),
) -> Job:
    """Manager action: a job with its team and checklist in one transaction."""
    customer = (
        db.query(Customer)
        .filter(Customer.id == int(customer_id), Customer.company_id == int(company_id))
        .first()
    )
    if customer is None:
        raise NotFound("Customer not found")

    job = Job(company_id=int(company_id), customer_id=customer.id, title=title, **(fields or {}))
    if not job.status:
        job.status = "scheduled"
    db.add(job)
    db.flush()

    for employee_id in dict.fromkeys(int(e) for e in employee_ids):
        _employee_in_company(db, company_id, employee_id)
        assignment_ledger.assign(db, job, employee_id)

    if job.assigned_to is None:
        job.status = "pending"

    for idx, task_title in enumerate(task_titles):
        db.add(JobTask(job_id=job.id, title=task_title, sort_order=idx))
    db.flush()

    logger.info(
        "Job created",
        extra={"company_id": job.company_id, "job_id": job.id, "assignees": job.assigned_to},
    )
    return job


def assign_employee(
    db: Session,
    company_id: int,
    job_id: int,
    employee_id: int,
    *,
    pay_amount: Optional[Decimal] = None,
) -> JobAssignment:
    job = job_store.get_job(db, company_id, job_id, for_update=True)
    if job.status in TERMINAL_STATUSES:
        raise InvalidState(f"Job is {job.status}; no new assignments.")
    _employee_in_company(db, company_id, employee_id)
    return assignment_ledger.assign(db, job, employee_id, pay_amount=pay_amount)


def cancel_job(db: Session, company_id: int, job_id: int) -> Job:
    job = job_store.get_job(db, company_id, job_id, for_update=True)
    if job.status in ("completed", "cancelled"):
        raise InvalidState(f"Job is already {job.status}.")
    job.status = "cancelled"
    db.flush()
    return job
