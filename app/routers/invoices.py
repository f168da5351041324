from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response

from app.core.authorization import Role, require_role
from app.database import SessionLocal
from app.models.company import Company
from app.models.customer import Customer
from app.models.invoice import Invoice
from app.schemas.invoice import InvoiceResponse
from app.services.invoice_pdf import render_invoice_pdf
from app.services.invoicing import invoice_items

router = APIRouter(prefix="/invoices", tags=["Invoices"])


def _with_items(db, invoice: Invoice) -> dict:
    data = InvoiceResponse.model_validate(invoice).model_dump()
    data["items"] = invoice_items(db, invoice.id)
    return data


@router.get("", response_model=List[InvoiceResponse])
def list_invoices(
    request: Request,
    job_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=1_000_000),
    _role=Depends(require_role(Role.MANAGER)),
):
    db = SessionLocal()
    try:
        q = db.query(Invoice).filter(Invoice.company_id == int(request.state.company_id))
        if job_id is not None:
            q = q.filter(Invoice.job_id == int(job_id))
        rows = q.order_by(Invoice.id.asc()).limit(int(limit)).offset(int(offset)).all()
        return [_with_items(db, r) for r in rows]
    finally:
        db.close()


@router.get("/{invoice_id}/pdf")
def get_invoice_pdf(
    invoice_id: int,
    request: Request,
    _role=Depends(require_role(Role.MANAGER)),
):
    company_id = int(request.state.company_id)

    db = SessionLocal()
    try:
        invoice = (
            db.query(Invoice)
            .filter(Invoice.id == int(invoice_id), Invoice.company_id == company_id)
            .first()
        )
        if invoice is None:
            raise HTTPException(status_code=404, detail="Invoice not found")

        company = db.query(Company).filter(Company.id == company_id).first()
        customer = (
            db.query(Customer)
            .filter(Customer.id == invoice.customer_id, Customer.company_id == company_id)
            .first()
        )
        pdf = render_invoice_pdf(invoice, invoice_items(db, invoice.id), company=company, customer=customer)
    finally:
        db.close()

    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{invoice.invoice_number}.pdf"'},
    )
