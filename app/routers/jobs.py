from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile
from fastapi.responses import Response

from app.core.errors import JobFlowError, to_http_exception
from app.database import SessionLocal
from app.deps.auth import require_employee
from app.models.job import Job
from app.models.job_assignment import JobAssignment
from app.schemas.check_in import CheckInRequest, CheckInResult, CheckInSummaryResponse
from app.schemas.job import (
    AcceptResponse,
    DeclineRequest,
    DeclineResponse,
    JobDetailResponse,
    JobResponse,
    TaskResponse,
)
from app.schemas.job_action import JobActionRequest
from app.schemas.photo import PhotoResponse, PhotoUploadResponse
from app.schemas.signature import SignatureCreate, SignatureLookupResponse, SignatureSavedResponse
from app.schemas.task import TaskUpdate
from app.services import check_in_recorder, job_lifecycle, job_photos, job_signatures, job_store, photo_storage
from app.services.check_in_recorder import CheckInReading
from app.services.event_dispatch import dispatch_events
from app.services.job_photos import PhotoUpload

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _check_company(request: Request, x_company_id: int) -> int:
    if int(x_company_id) != int(request.state.company_id):
        raise HTTPException(status_code=403, detail="Company mismatch")
    return int(request.state.company_id)


@router.get("", response_model=List[JobResponse])
def list_my_jobs(
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        rows = (
            db.query(Job)
            .join(JobAssignment, JobAssignment.job_id == Job.id)
            .filter(
                Job.company_id == company_id,
                JobAssignment.company_id == company_id,
                JobAssignment.employee_id == employee_id,
                JobAssignment.status != "declined",
            )
            .order_by(Job.scheduled_for.asc(), Job.id.asc())
            .all()
        )
        return rows
    finally:
        db.close()


@router.get("/{job_id}", response_model=JobDetailResponse)
def get_my_job(
    job_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        job, assignment = job_store.get_job_for_employee(db, company_id, job_id, employee_id)
        return {
            "job": job,
            "tasks": job_store.list_tasks(db, job.id),
            "assignment": assignment,
        }
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.post("/{job_id}/check-in", response_model=CheckInResult)
def record_check_in(
    job_id: int,
    payload: CheckInRequest,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)
    reading = CheckInReading(
        latitude=payload.latitude,
        longitude=payload.longitude,
        location_accuracy=payload.location_accuracy,
        captured_address=payload.captured_address,
        device_type=payload.device_type,
        device_model=payload.device_model,
        user_agent=request.headers.get("user-agent"),
    )

    db = SessionLocal()
    try:
        if payload.type == "check_in":
            result = job_lifecycle.check_in(db, company_id, job_id, employee_id, reading)
        else:
            result = job_lifecycle.check_out(
                db, company_id, job_id, employee_id, reading, comment=payload.comment
            )
        db.commit()
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()

    dispatch_events(result.event_ids)

    return {
        "check_in": result.check_in,
        "job": result.job,
        "assignment": result.assignment,
        "job_completed": result.job_completed,
    }


@router.get("/{job_id}/check-in", response_model=CheckInSummaryResponse)
def get_check_in_status(
    job_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        job, _assignment = job_store.get_job_for_employee(
            db, company_id, job_id, employee_id, include_declined=True
        )
        summary = check_in_recorder.summarize(db, company_id, job.id, employee_id)
        return {
            "status": summary.status,
            "last_check_in": summary.last_check_in,
            "last_check_out": summary.last_check_out,
            "total_time_on_site": summary.total_time_on_site,
            "has_checked_in": summary.has_checked_in,
            "has_checked_out": summary.has_checked_out,
            "job_duration": summary.job_duration,
            "check_ins": summary.check_ins,
        }
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.patch("/{job_id}", response_model=JobResponse)
def update_job(
    job_id: int,
    payload: JobActionRequest,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)
    body = payload.root

    db = SessionLocal()
    try:
        result = job_lifecycle.apply_action(
            db,
            company_id,
            job_id,
            employee_id,
            body.action,
            notes=body.notes,
            notes_given=body.notes_given,
            user_agent=request.headers.get("user-agent"),
        )
        db.commit()
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()

    dispatch_events(result.event_ids)
    return result.job


@router.post("/{job_id}/accept", response_model=AcceptResponse)
def accept_job(
    job_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        result = job_lifecycle.accept_job(db, company_id, job_id, employee_id)
        db.commit()
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()

    dispatch_events(result.event_ids)

    return {
        "success": True,
        "message": (
            "Job accepted successfully! Customer has been notified."
            if result.all_accepted
            else "Job accepted. Waiting for the rest of the team to confirm."
        ),
        "job": result.job,
        "assignment": result.assignment,
        "awaiting_others": not result.all_accepted,
    }


@router.delete("/{job_id}/accept", response_model=DeclineResponse)
def decline_job(
    job_id: int,
    request: Request,
    payload: Optional[DeclineRequest] = None,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)
    reason = payload.reason if payload is not None else None

    db = SessionLocal()
    try:
        result = job_lifecycle.decline_job(db, company_id, job_id, employee_id, reason=reason)
        db.commit()
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()

    dispatch_events(result.event_ids)

    return {
        "success": True,
        "message": "Job declined",
        "job": result.job,
        "assignment": result.assignment,
    }


@router.patch("/{job_id}/tasks/{task_id}", response_model=TaskResponse)
def update_task(
    job_id: int,
    task_id: int,
    payload: TaskUpdate,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        task = job_lifecycle.set_task_status(
            db, company_id, job_id, task_id, employee_id, payload.is_completed
        )
        db.commit()
        return task
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()



@router.get("/{job_id}/photos", response_model=List[PhotoResponse])
def list_photos(
    job_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        return job_photos.list_photos(db, company_id, job_id, employee_id)
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()


@router.post("/{job_id}/photos", response_model=PhotoUploadResponse)
def upload_photo(
    job_id: int,
    request: Request,
    photo: UploadFile = File(...),
    task_id: Optional[int] = Form(None, alias="taskId"),
    latitude: Optional[float] = Form(None, ge=-90, le=90),
    longitude: Optional[float] = Form(None, ge=-180, le=180),
    location_accuracy: Optional[float] = Form(None, alias="locationAccuracy", ge=0),
    captured_address: Optional[str] = Form(None, alias="capturedAddress", max_length=1000),
    device_type: Optional[str] = Form(None, alias="deviceType", max_length=100),
    device_model: Optional[str] = Form(None, alias="deviceModel", max_length=255),
    caption: Optional[str] = Form(None, max_length=5000),
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)
    upload = PhotoUpload(
        original_name=photo.filename or "",
        content_type=photo.content_type or "",
        data=photo.file.read(),
        task_id=task_id,
        caption=caption,
        reading=CheckInReading(
            latitude=latitude,
            longitude=longitude,
            location_accuracy=location_accuracy,
            captured_address=captured_address,
            device_type=device_type,
            device_model=device_model,
            user_agent=request.headers.get("user-agent"),
        ),
    )

    db = SessionLocal()
    stored_key = None
    try:
        row = job_photos.record_photo(db, company_id, job_id, employee_id, upload)
        stored_key = row.storage_key
        db.commit()
        db.refresh(row)
        return {"success": True, "photo": row}
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except Exception:
        db.rollback()
        if stored_key is not None:
            photo_storage.delete(stored_key)
        raise
    finally:
        db.close()


@router.get("/{job_id}/photos/{photo_id}/file")
def get_photo_file(
    job_id: int,
    photo_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        row = job_photos.get_photo(db, company_id, job_id, photo_id, employee_id)
        storage_key, mime_type, file_name = row.storage_key, row.mime_type, row.file_name
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()

    if not photo_storage.exists(storage_key):
        raise HTTPException(status_code=404, detail="Photo file not found")

    return Response(
        content=photo_storage.read(storage_key),
        media_type=mime_type,
        headers={"Content-Disposition": f'inline; filename="{file_name}"'},
    )


@router.get("/{job_id}/signature", response_model=SignatureLookupResponse)
def get_signature(
    job_id: int,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        return {"signature": job_signatures.get_signature(db, company_id, job_id, employee_id)}
    except JobFlowError as exc:
        raise to_http_exception(exc) from exc
    finally:
        db.close()


def _client_ip(request: Request) -> Optional[str]:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.headers.get("x-real-ip"):
        return request.headers["x-real-ip"]
    return request.client.host if request.client else None


@router.post("/{job_id}/signature", response_model=SignatureSavedResponse)
def save_signature(
    job_id: int,
    payload: SignatureCreate,
    request: Request,
    x_company_id: int = Header(..., alias="X-Company-Id"),
    employee_id: int = Depends(require_employee),
):
    company_id = _check_company(request, x_company_id)

    db = SessionLocal()
    try:
        signature = job_signatures.record_signature(
            db,
            company_id,
            job_id,
            employee_id,
            signature_data=payload.signature_data,
            signer_name=payload.signer_name,
            signer_email=payload.signer_email,
            rating=payload.rating,
            feedback=payload.feedback,
            latitude=payload.latitude,
            longitude=payload.longitude,
            signed_address=payload.signed_address,
            device_type=payload.device_type,
            ip_address=_client_ip(request),
        )
        db.commit()
        db.refresh(signature)
        return {"success": True, "signature": signature, "message": "Signature saved successfully!"}
    except JobFlowError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    finally:
        db.close()
