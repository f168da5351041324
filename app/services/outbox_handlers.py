import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.models.company import Company
from app.models.customer import Customer
from app.models.employee import Employee
from app.models.event_outbox import EventOutbox
from app.models.job import Job
from app.models.user import User
from app.services import check_in_recorder, invoicing, job_store, notifications
from app.services.invoice_pdf import render_invoice_pdf

logger = logging.getLogger(__name__)


def _payload(row: EventOutbox) -> Dict[str, Any]:
    payload: Any = row.payload or {}
    return payload if isinstance(payload, dict) else {}


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _timestamp(value: Any) -> datetime:
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            pass
    return utcnow()


def _best_effort(row: EventOutbox, what: str, send: Callable[[], Any]) -> None:
    """Run one send; a failure is logged and does not stop the other sends."""
    try:
        send()
    except Exception:
        logger.exception(
            "Notification failed",
            extra={
                "event_outbox_id": row.id,
                "event_type": row.event_type,
                "company_id": row.company_id,
                "notification": what,
            },
        )


class _Context:
    def __init__(self, db: Session, row: EventOutbox, job: Job):
        self.db = db
        self.row = row
        self.job = job
        self.company: Optional[Company] = db.query(Company).filter(Company.id == job.company_id).first()
        self.customer: Optional[Customer] = (
            db.query(Customer)
            .filter(Customer.id == job.customer_id, Customer.company_id == job.company_id)
            .first()
        )

    def employee(self, employee_id: Optional[int]) -> Optional[Employee]:
        if employee_id is None:
            return None
        return (
            self.db.query(Employee)
            .filter(Employee.id == int(employee_id), Employee.company_id == self.job.company_id)
            .first()
        )

    def employee_name(self, employee_id: Optional[int]) -> Optional[str]:
        emp = self.employee(employee_id)
        return emp.full_name if emp is not None else None

    def team_names(self) -> List[str]:
        names = []
        for assignment in job_store.list_assignments(self.db, self.job.company_id, self.job.id):
            if assignment.status == "declined":
                continue
            name = self.employee_name(assignment.employee_id)
            if name:
                names.append(name)
        return names

    def admins(self) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.company_id == self.job.company_id)
            .order_by(User.id.asc())
            .all()
        )

    def notify_enabled(self, key: str) -> bool:
        return self.company is not None and self.company.notification_enabled(key)


def _load(row: EventOutbox, db: Session) -> Optional[_Context]:
    job_id = _int_or_none(_payload(row).get("job_id"))
    if job_id is None:
        logger.info(
            "%s missing job_id; skipping",
            row.event_type,
            extra={"event_outbox_id": row.id},
        )
        return None

    job = (
        db.query(Job)
        .filter(Job.id == job_id, Job.company_id == int(row.company_id))
        .first()
    )
    if job is None:
        logger.info(
            "%s job no longer exists; skipping",
            row.event_type,
            extra={"event_outbox_id": row.id, "job_id": job_id},
        )
        return None
    return _Context(db, row, job)


def handle_job_started(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or ctx.customer is None:
        return

    payload = _payload(row)
    employee_id = _int_or_none(payload.get("employee_id"))
    _best_effort(
        row,
        "customer_job_started",
        lambda: notifications.send_job_started_email(
            ctx.job,
            ctx.customer,
            ctx.company,
            employee_name=ctx.employee_name(employee_id),
            started_at=_timestamp(payload.get("started_at")),
        ),
    )


def handle_job_confirmed(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or ctx.customer is None:
        return

    _best_effort(
        row,
        "customer_job_confirmed",
        lambda: notifications.send_job_confirmed_email(
            ctx.job,
            ctx.customer,
            ctx.company,
            employee_names=ctx.team_names(),
            estimated_price=invoicing.resolve_job_price(db, ctx.job),
        ),
    )


def handle_job_accepted(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or not ctx.notify_enabled("employee_updates"):
        return

    names = ctx.team_names()
    for user in ctx.admins():
        _best_effort(
            row,
            "admin_job_accepted",
            lambda user=user: notifications.send_job_accepted_notification(
                user, ctx.job, ctx.customer, ctx.company, employee_names=names
            ),
        )


def handle_job_completed(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None:
        return

    payload = _payload(row)
    employee_id = _int_or_none(payload.get("employee_id"))
    completed_at = _timestamp(payload.get("completed_at"))
    employee_name = ctx.employee_name(employee_id)
    price = invoicing.resolve_job_price(db, ctx.job)

    # Invoice failures propagate so the worker retries the event.
    invoice = None
    if ctx.job.customer_id is not None:
        invoice = invoicing.generate_job_invoice(db, ctx.job.company_id, ctx.job.id, now=completed_at)

    pdf_bytes = None
    if invoice is not None:
        try:
            pdf_bytes = render_invoice_pdf(
                invoice,
                invoicing.invoice_items(db, invoice.id),
                company=ctx.company,
                customer=ctx.customer,
            )
        except Exception:
            logger.exception(
                "Invoice PDF rendering failed; sending without attachment",
                extra={"event_outbox_id": row.id, "invoice_id": invoice.id},
            )

    duration = None
    if employee_id is not None:
        rows = job_store.list_check_ins(db, ctx.job.company_id, ctx.job.id, employee_id)
        duration = check_in_recorder.job_duration(rows)

    if ctx.customer is not None:
        _best_effort(
            row,
            "customer_job_completed",
            lambda: notifications.send_job_completed_email(
                ctx.job,
                ctx.customer,
                ctx.company,
                employee_name=employee_name,
                completed_at=completed_at,
                duration_minutes=duration,
                price=price,
                invoice=invoice,
                pdf_bytes=pdf_bytes,
            ),
        )

    if ctx.notify_enabled("job_updates"):
        _best_effort(
            row,
            "company_job_completed",
            lambda: notifications.send_job_completed_to_company_email(
                ctx.job,
                ctx.customer,
                ctx.company,
                employee_name=employee_name,
                completed_at=completed_at,
                price=price,
            ),
        )


def handle_employee_checked_in(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or not ctx.notify_enabled("employee_updates"):
        return

    payload = _payload(row)
    name = ctx.employee_name(_int_or_none(payload.get("employee_id"))) or "An employee"
    checked_in_at = _timestamp(payload.get("checked_in_at"))
    for user in ctx.admins():
        _best_effort(
            row,
            "admin_check_in",
            lambda user=user: notifications.send_employer_check_in_notification(
                user,
                ctx.job,
                ctx.customer,
                ctx.company,
                employee_name=name,
                checked_in_at=checked_in_at,
            ),
        )


def handle_employee_checked_out(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or not ctx.notify_enabled("employee_updates"):
        return

    payload = _payload(row)
    name = ctx.employee_name(_int_or_none(payload.get("employee_id"))) or "An employee"
    checked_out_at = _timestamp(payload.get("checked_out_at"))
    duration = _int_or_none(payload.get("duration_minutes"))
    comment = payload.get("comment") or None
    for user in ctx.admins():
        _best_effort(
            row,
            "admin_check_out",
            lambda user=user: notifications.send_employer_check_out_notification(
                user,
                ctx.job,
                ctx.customer,
                ctx.company,
                employee_name=name,
                checked_out_at=checked_out_at,
                duration_minutes=duration,
                comment=comment,
            ),
        )


def handle_job_declined(row: EventOutbox, db: Session) -> None:
    ctx = _load(row, db)
    if ctx is None or not ctx.notify_enabled("employee_updates"):
        return

    payload = _payload(row)
    name = ctx.employee_name(_int_or_none(payload.get("employee_id"))) or "An employee"
    reason = payload.get("reason") or None
    for user in ctx.admins():
        _best_effort(
            row,
            "admin_job_declined",
            lambda user=user: notifications.send_job_declined_notification(
                user,
                ctx.job,
                ctx.customer,
                ctx.company,
                employee_name=name,
                reason=reason,
            ),
        )


HANDLERS = {
    "JOB_STARTED": handle_job_started,
    "JOB_CONFIRMED": handle_job_confirmed,
    "JOB_ACCEPTED": handle_job_accepted,
    "JOB_COMPLETED": handle_job_completed,
    "EMPLOYEE_CHECKED_IN": handle_employee_checked_in,
    "EMPLOYEE_CHECKED_OUT": handle_employee_checked_out,
    "JOB_DECLINED": handle_job_declined,
}
