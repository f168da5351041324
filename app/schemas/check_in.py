from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.job import AssignmentResponse, JobResponse


class CheckInRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["check_in", "check_out"]
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    location_accuracy: Optional[float] = Field(None, alias="locationAccuracy", ge=0)
    captured_address: Optional[str] = Field(None, alias="capturedAddress", max_length=1000)
    device_type: Optional[str] = Field(None, alias="deviceType", max_length=100)
    device_model: Optional[str] = Field(None, alias="deviceModel", max_length=255)
    comment: Optional[str] = Field(None, max_length=5000)


class CheckInResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    employee_id: int
    type: str
    latitude: float
    longitude: float
    location_accuracy: Optional[float]
    captured_address: Optional[str]
    distance_from_job_site: Optional[float]
    is_within_range: bool
    device_type: Optional[str]
    device_model: Optional[str]
    checked_at: datetime


class CheckInResult(BaseModel):
    check_in: CheckInResponse
    job: JobResponse
    assignment: Optional[AssignmentResponse] = None
    job_completed: bool


class CheckInSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: Literal["not_checked_in", "checked_in", "checked_out"]
    last_check_in: Optional[CheckInResponse]
    last_check_out: Optional[CheckInResponse]
    total_time_on_site: int
    has_checked_in: bool
    has_checked_out: bool
    job_duration: Optional[int]
    check_ins: List[CheckInResponse]
