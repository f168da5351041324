from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class InvoiceItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    invoice_number: str
    customer_id: int
    job_id: Optional[int]
    currency: str
    subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    status: str
    issued_at: Optional[datetime]
    due_at: Optional[datetime]
    notes: Optional[str]
    terms: Optional[str]
    items: List[InvoiceItemResponse] = []
