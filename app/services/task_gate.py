from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.errors import Forbidden, IncompleteTasks, NotFound
from app.models.job import Job
from app.models.job_task import JobTask
from app.services import check_in_recorder, job_store


def require_checked_in(db: Session, job: Job, employee_id: int, message: str) -> None:
    """Task and photo changes are only open to employees who have checked in to the job."""
    if not check_in_recorder.has_checked_in(db, job.company_id, job.id, employee_id):
        raise Forbidden(message)


def get_task(db: Session, job: Job, task_id: int) -> JobTask:
    task: Optional[JobTask] = (
        db.query(JobTask)
        .filter(
            JobTask.id == int(task_id),
            JobTask.job_id == job.id,
        )
        .first()
    )
    if task is None:
        raise NotFound("Task not found")
    return task


def set_task_status(
    db: Session,
    job: Job,
    task_id: int,
    employee_id: int,
    completed: bool,
) -> JobTask:
    require_checked_in(db, job, employee_id, "You must check in before updating tasks.")
    task = get_task(db, job, task_id)

    if completed:
        task.status = "completed"
        task.completed_by = int(employee_id)
        task.completed_at = utcnow()
    else:
        task.status = "pending"
        task.completed_by = None
        task.completed_at = None

    db.flush()
    return task


def pending_tasks(db: Session, job: Job) -> List[JobTask]:
    return [t for t in job_store.list_tasks(db, job.id) if t.status != "completed"]


def require_all_tasks_completed(db: Session, job: Job) -> None:
    pending = pending_tasks(db, job)
    if pending:
        raise IncompleteTasks([t.title for t in pending])
