from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint

from app.core.clock import utcnow
from app.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),
        UniqueConstraint("job_id", name="uq_invoices_job"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    invoice_number = Column(String(100), nullable=False)
    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="CASCADE"), nullable=False, index=True)
    job_id = Column(Integer, ForeignKey("jobs.id", ondelete="SET NULL"), nullable=True)

    currency = Column(String(10), nullable=False, default="GBP")
    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_rate = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    tax_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    amount_paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    amount_due = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))

    status = Column(String(50), nullable=False, default="draft", index=True)
    issued_at = Column(DateTime, nullable=True)
    due_at = Column(DateTime, nullable=True)

    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    quantity = Column(Numeric(10, 2), nullable=False, default=Decimal("1"))
    unit_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    sort_order = Column(Integer, nullable=False, default=0)
