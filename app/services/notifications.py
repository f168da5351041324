"""
Email notifications for job lifecycle events.

Every sender returns what mailer.send_email returns and lets SMTP errors
propagate; the outbox handlers decide what is best-effort.
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from app.core.config import get_settings
from app.models.company import Company
from app.models.customer import Customer
from app.models.invoice import Invoice
from app.models.job import Job
from app.models.user import User
from app.services import mailer

DEFAULT_CLEANER_NAME = "Your cleaner"
DEFAULT_COMPANY_NAME = "Our cleaning team"


def _fmt_dt(value: Optional[datetime]) -> str:
    if value is None:
        return "TBC"
    return value.strftime("%d %B %Y, %H:%M")


def _fmt_money(amount: Optional[Decimal], currency: str) -> str:
    return f"{currency} {Decimal(amount or 0):.2f}"


def _company_name(company: Optional[Company]) -> str:
    return company.name if company is not None else DEFAULT_COMPANY_NAME


def _portal_url() -> str:
    return f"{get_settings().app_base_url}/portal/dashboard"


def _job_url(job: Job) -> str:
    return f"{get_settings().app_base_url}/job/{job.id}"


def send_job_started_email(
    job: Job,
    customer: Customer,
    company: Optional[Company],
    *,
    employee_name: Optional[str],
    started_at: datetime,
) -> bool:
    body = "\n".join(
        [
            f"Hi {customer.full_name},",
            "",
            f"{employee_name or DEFAULT_CLEANER_NAME} has started work on \"{job.title}\".",
            f"Started at: {_fmt_dt(started_at)}",
            f"Estimated duration: {job.duration_minutes or 120} minutes",
            f"Location: {job.full_location or '-'}",
            "",
            f"Track progress: {_portal_url()}",
            "",
            _company_name(company),
        ]
    )
    return mailer.send_email(customer.email, f"Your cleaning has started: {job.title}", body)


def send_job_confirmed_email(
    job: Job,
    customer: Customer,
    company: Optional[Company],
    *,
    employee_names: Iterable[str],
    estimated_price: Decimal,
) -> bool:
    team = ", ".join(n for n in employee_names if n) or DEFAULT_CLEANER_NAME
    body = "\n".join(
        [
            f"Hi {customer.full_name},",
            "",
            f"Your booking \"{job.title}\" is confirmed.",
            f"When: {_fmt_dt(job.scheduled_for)}",
            f"Duration: {job.duration_minutes or 120} minutes",
            f"Where: {job.full_location or '-'}",
            f"Team: {team}",
            f"Estimated price: {_fmt_money(estimated_price, job.currency)}",
            "",
            f"Manage your booking: {_portal_url()}",
            "",
            _company_name(company),
        ]
    )
    return mailer.send_email(customer.email, f"Booking confirmed: {job.title}", body)


def send_job_completed_email(
    job: Job,
    customer: Customer,
    company: Optional[Company],
    *,
    employee_name: Optional[str],
    completed_at: datetime,
    duration_minutes: Optional[int],
    price: Decimal,
    invoice: Optional[Invoice] = None,
    pdf_bytes: Optional[bytes] = None,
) -> bool:
    lines = [
        f"Hi {customer.full_name},",
        "",
        f"\"{job.title}\" was completed by {employee_name or DEFAULT_CLEANER_NAME}.",
        f"Completed: {_fmt_dt(completed_at)}",
        f"Duration: {duration_minutes if duration_minutes is not None else job.duration_minutes or 120} minutes",
        f"Price: {_fmt_money(price, job.currency)}",
    ]
    if invoice is not None:
        lines.append(f"Invoice: {invoice.invoice_number} (due {_fmt_dt(invoice.due_at)})")
    # Only offer payment when the invoice is attached.
    if pdf_bytes:
        lines.append(f"Pay online: {_portal_url()}")
    lines += ["", f"Leave feedback: {_portal_url()}", "", _company_name(company)]

    attachments = []
    if pdf_bytes and invoice is not None:
        attachments.append(mailer.Attachment(filename=f"{invoice.invoice_number}.pdf", content=pdf_bytes))

    return mailer.send_email(
        customer.email,
        f"Job completed: {job.title}",
        "\n".join(lines),
        attachments=attachments,
    )


def send_job_completed_to_company_email(
    job: Job,
    customer: Optional[Customer],
    company: Company,
    *,
    employee_name: Optional[str],
    completed_at: datetime,
    price: Decimal,
) -> bool:
    body = "\n".join(
        [
            f"Job #{job.id} \"{job.title}\" has been completed.",
            f"Customer: {customer.full_name if customer else 'Customer'}",
            f"Cleaner: {employee_name or 'Cleaner'}",
            f"Completed: {_fmt_dt(completed_at)}",
            f"Price: {_fmt_money(price, job.currency)}",
            f"Location: {job.full_location or '-'}",
            "",
            _job_url(job),
        ]
    )
    return mailer.send_email(company.email, f"Job completed: {job.title}", body)


def send_employer_check_in_notification(
    user: User,
    job: Job,
    customer: Optional[Customer],
    company: Company,
    *,
    employee_name: str,
    checked_in_at: datetime,
) -> bool:
    body = "\n".join(
        [
            f"Hi {user.first_name},",
            "",
            f"{employee_name} checked in to \"{job.title}\" at {_fmt_dt(checked_in_at)}.",
            f"Customer: {customer.full_name if customer else 'Customer'}",
            f"Location: {job.full_location or '-'}",
            "",
            _job_url(job),
        ]
    )
    return mailer.send_email(user.email, f"{employee_name} checked in: {job.title}", body)


def send_employer_check_out_notification(
    user: User,
    job: Job,
    customer: Optional[Customer],
    company: Company,
    *,
    employee_name: str,
    checked_out_at: datetime,
    duration_minutes: Optional[int],
    comment: Optional[str] = None,
) -> bool:
    lines = [
        f"Hi {user.first_name},",
        "",
        f"{employee_name} checked out of \"{job.title}\" at {_fmt_dt(checked_out_at)}.",
        f"Customer: {customer.full_name if customer else 'Customer'}",
        f"Time on site: {duration_minutes if duration_minutes is not None else '-'} minutes",
    ]
    if comment:
        lines += ["", "Comment from the cleaner:", comment]
    lines += ["", _job_url(job)]
    return mailer.send_email(user.email, f"{employee_name} checked out: {job.title}", "\n".join(lines))


def send_job_declined_notification(
    user: User,
    job: Job,
    customer: Optional[Customer],
    company: Company,
    *,
    employee_name: str,
    reason: Optional[str],
) -> bool:
    lines = [
        f"Hi {user.first_name},",
        "",
        f"{employee_name} declined \"{job.title}\" scheduled for {_fmt_dt(job.scheduled_for)}.",
        f"Customer: {customer.full_name if customer else 'Customer'}",
    ]
    if reason:
        lines.append(f"Reason: {reason}")
    if job.assigned_to is None:
        lines.append("Nobody is assigned to this job any more.")
    lines += ["", _job_url(job)]
    return mailer.send_email(user.email, f"Job declined: {job.title}", "\n".join(lines))


def send_job_accepted_notification(
    user: User,
    job: Job,
    customer: Optional[Customer],
    company: Company,
    *,
    employee_names: Iterable[str],
) -> bool:
    team = ", ".join(n for n in employee_names if n) or "The team"
    body = "\n".join(
        [
            f"Hi {user.first_name},",
            "",
            f"{team} accepted \"{job.title}\" scheduled for {_fmt_dt(job.scheduled_for)}.",
            f"Customer: {customer.full_name if customer else 'Customer'}",
            "",
            _job_url(job),
        ]
    )
    return mailer.send_email(user.email, f"Job accepted: {job.title}", body)
