from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from app.core.authorization import Role, require_role
from app.core.errors import JobFlowError, to_http_exception
from app.database import SessionLocal
from app.models.job import JOB_STATUSES, Job
from app.schemas.job import AssignmentCreate, AssignmentResponse, JobCreate, JobDetailResponse, JobResponse
from app.services import job_lifecycle, job_store

router = APIRouter(prefix="/manage/jobs", tags=["Manage Jobs"])

_JOB_FIELDS = (
    "description",
    "plan_id",
    "location",
    "city",
    "postcode",
    "site_latitude",
    "site_longitude",
    "scheduled_for",
    "scheduled_end",
    "duration_minutes",
    "estimated_price",
    "actual_price",
    "currency",
)


@router.post("", response_model=JobDetailResponse)
def create_job(
    payload: JobCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    company_id = int(request.state.company_id)
    fields = {k: getattr(payload, k) for k in _JOB_FIELDS if getattr(payload, k) is not None}

    db = SessionLocal()
    try:
        job = job_lifecycle.create_job(
            db,
            company_id,
            customer_id=payload.customer_id,
            title=payload.title,
            fields=fields,
            employee_ids=payload.employee_ids,
            task_titles=payload.tasks,
        )
        db.commit()
        return {
            "job": job,
            "tasks": job_store.list_tasks(db, job.id),
            "assignments": job_store.list_assignments(db, company_id, job.id),
        }
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.get("", response_model=List[JobResponse])
def list_jobs(
    request: Request,
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=1_000_000),
    _role=Depends(require_role(Role.MANAGER)),
):
    if status is not None and status not in JOB_STATUSES:
        raise HTTPException(status_code=400, detail=f"Unknown job status: {status}")

    db = SessionLocal()
    try:
        q = db.query(Job).filter(Job.company_id == int(request.state.company_id))
        if status is not None:
            q = q.filter(Job.status == status)
        return q.order_by(Job.id.asc()).limit(int(limit)).offset(int(offset)).all()
    finally:
        db.close()


@router.get("/{job_id}", response_model=JobDetailResponse)
def get_job(
    job_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    company_id = int(request.state.company_id)

    db = SessionLocal()
    try:
        job = job_store.get_job(db, company_id, job_id)
        return {
            "job": job,
            "tasks": job_store.list_tasks(db, job.id),
            "assignments": job_store.list_assignments(db, company_id, job.id),
        }
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.post("/{job_id}/assignments", response_model=AssignmentResponse)
def assign_employee(
    job_id: int,
    payload: AssignmentCreate,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        assignment = job_lifecycle.assign_employee(
            db,
            int(request.state.company_id),
            job_id,
            payload.employee_id,
            pay_amount=payload.pay_amount,
        )
        db.commit()
        return assignment
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.post("/{job_id}/cancel", response_model=JobResponse)
def cancel_job(
    job_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        job = job_lifecycle.cancel_job(db, int(request.state.company_id), job_id)
        db.commit()
        return job
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()
