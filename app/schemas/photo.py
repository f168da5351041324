from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class PhotoResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    task_id: Optional[int]
    employee_id: int
    file_name: str
    original_name: str
    url: str
    mime_type: str
    size_bytes: int
    latitude: Optional[float]
    longitude: Optional[float]
    location_accuracy: Optional[float]
    captured_address: Optional[str]
    distance_from_job_site: Optional[float]
    device_type: Optional[str]
    device_model: Optional[str]
    verification_status: str
    caption: Optional[str]
    captured_at: datetime
    uploaded_at: datetime


class PhotoUploadResponse(BaseModel):
    success: bool
    photo: PhotoResponse
