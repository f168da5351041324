from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobCreate(BaseModel):
    customer_id: int
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    plan_id: Optional[int] = None

    location: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    site_latitude: Optional[float] = Field(None, ge=-90, le=90)
    site_longitude: Optional[float] = Field(None, ge=-180, le=180)

    scheduled_for: Optional[datetime] = None
    scheduled_end: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, ge=0)

    estimated_price: Optional[Decimal] = Field(None, ge=0)
    actual_price: Optional[Decimal] = Field(None, ge=0)
    currency: Optional[str] = Field(None, max_length=10)

    employee_ids: List[int] = Field(default_factory=list)
    tasks: List[str] = Field(default_factory=list)


class AssignmentCreate(BaseModel):
    employee_id: int
    pay_amount: Optional[Decimal] = Field(None, ge=0)


class AssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    employee_id: int
    status: str
    pay_amount: Optional[Decimal]
    accepted_at: Optional[datetime]
    completed_at: Optional[datetime]


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    title: str
    description: Optional[str]
    status: str
    sort_order: int
    completed_by: Optional[int]
    completed_at: Optional[datetime]


class JobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    customer_id: int
    plan_id: Optional[int]
    title: str
    description: Optional[str]

    location: Optional[str]
    city: Optional[str]
    postcode: Optional[str]
    site_latitude: Optional[float]
    site_longitude: Optional[float]

    scheduled_for: Optional[datetime]
    scheduled_end: Optional[datetime]
    duration_minutes: Optional[int]

    status: str
    assigned_to: Optional[int]
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    rejected_at: Optional[datetime]

    estimated_price: Optional[Decimal]
    actual_price: Optional[Decimal]
    currency: str

    employee_accepted: bool
    employee_accepted_at: Optional[datetime]
    customer_confirmation_sent: bool
    customer_confirmation_sent_at: Optional[datetime]

    internal_notes: Optional[str]
    created_at: datetime
    updated_at: datetime


class JobDetailResponse(BaseModel):
    job: JobResponse
    tasks: List[TaskResponse]
    assignment: Optional[AssignmentResponse] = None
    assignments: List[AssignmentResponse] = Field(default_factory=list)


class AcceptResponse(BaseModel):
    success: bool
    message: str
    job: JobResponse
    assignment: AssignmentResponse
    awaiting_others: bool


class DeclineRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=2000)


class DeclineResponse(BaseModel):
    success: bool
    message: str
    job: JobResponse
    assignment: AssignmentResponse
