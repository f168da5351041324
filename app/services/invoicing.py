import logging
import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from app.core.clock import utcnow
from app.core.config import get_settings
from app.core.errors import InvalidState, NotFound
from app.models.cleaning_plan import CleaningPlan
from app.models.invoice import Invoice, InvoiceItem
from app.models.job import Job

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^INV-(\d+)")

TWO_PLACES = Decimal("0.01")


def resolve_job_price(db: Session, job: Job) -> Decimal:
    """actual price, else estimated price, else the plan price, else zero."""
    if job.actual_price is not None:
        return Decimal(job.actual_price)
    if job.estimated_price is not None:
        return Decimal(job.estimated_price)
    if job.plan_id is not None:
        plan = db.query(CleaningPlan).filter(CleaningPlan.id == job.plan_id).first()
        if plan is not None and plan.price is not None:
            return Decimal(plan.price)
    return Decimal("0")


def next_invoice_number(db: Session, company_id: int) -> str:
    numbers = (
        db.query(Invoice.invoice_number)
        .filter(Invoice.company_id == int(company_id))
        .all()
    )
    highest = 0
    for (number,) in numbers:
        m = _NUMBER_RE.match(number or "")
        if m:
            highest = max(highest, int(m.group(1)))
    return f"INV-{highest + 1:04d}"


def find_job_invoice(db: Session, company_id: int, job_id: int) -> Optional[Invoice]:
    return (
        db.query(Invoice)
        .filter(
            Invoice.company_id == int(company_id),
            Invoice.job_id == int(job_id),
        )
        .first()
    )


def invoice_items(db: Session, invoice_id: int) -> List[InvoiceItem]:
    return (
        db.query(InvoiceItem)
        .filter(InvoiceItem.invoice_id == int(invoice_id))
        .order_by(InvoiceItem.sort_order.asc(), InvoiceItem.id.asc())
        .all()
    )


def generate_job_invoice(
    db: Session,
    company_id: int,
    job_id: int,
    *,
    now: Optional[datetime] = None,
) -> Invoice:
    """
    Create the invoice for a completed job, or return the one that already exists.

    Does not commit. The (company_id, invoice_number) and job_id unique
    constraints reject a concurrent duplicate at flush time.
    """
    existing = find_job_invoice(db, company_id, job_id)
    if existing is not None:
        return existing

    job = (
        db.query(Job)
        .filter(Job.id == int(job_id), Job.company_id == int(company_id))
        .first()
    )
    if job is None:
        raise NotFound("Job not found")
    if job.customer_id is None:
        raise InvalidState("Job must have a customer")

    settings = get_settings()
    now = now or utcnow()

    price = resolve_job_price(db, job).quantize(TWO_PLACES)
    tax_rate = Decimal("0")
    tax_amount = (price * tax_rate / Decimal("100")).quantize(TWO_PLACES)
    total = price + tax_amount

    invoice = Invoice(
        company_id=job.company_id,
        invoice_number=next_invoice_number(db, job.company_id),
        customer_id=job.customer_id,
        job_id=job.id,
        currency=job.currency or settings.default_currency,
        subtotal=price,
        tax_rate=tax_rate,
        tax_amount=tax_amount,
        discount_amount=Decimal("0"),
        total=total,
        amount_due=total,
        status="sent",
        issued_at=now,
        due_at=now + timedelta(days=settings.invoice_due_days),
        notes=f"Service completed on {now.strftime('%d/%m/%Y')}",
        terms=f"Payment is due within {settings.invoice_due_days} days of the invoice date.",
    )
    db.add(invoice)
    db.flush()

    db.add(
        InvoiceItem(
            invoice_id=invoice.id,
            title=job.title or "Cleaning Service",
            description=job.description,
            quantity=Decimal("1"),
            unit_price=price,
            amount=price,
            sort_order=0,
        )
    )
    db.flush()

    logger.info(
        "Invoice generated for job",
        extra={
            "company_id": job.company_id,
            "job_id": job.id,
            "invoice_id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "total": str(total),
        },
    )
    return invoice
