from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SignatureCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    signature_data: str = Field(..., alias="signatureData", min_length=1)
    signer_name: str = Field(..., alias="signerName", max_length=255)
    signer_email: Optional[str] = Field(None, alias="signerEmail", max_length=255)
    rating: Optional[int] = Field(None, ge=1, le=5)
    feedback: Optional[str] = Field(None, max_length=5000)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    signed_address: Optional[str] = Field(None, alias="signedAddress", max_length=1000)
    device_type: Optional[str] = Field(None, alias="deviceType", max_length=100)

    @field_validator("signer_name")
    @classmethod
    def _signer_name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Signer name is required")
        return v


class SignatureResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    customer_id: Optional[int]
    employee_id: int
    signature_data: str
    signer_name: str
    signer_email: Optional[str]
    rating: Optional[int]
    feedback: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    signed_address: Optional[str]
    device_type: Optional[str]
    signed_at: datetime


class SignatureLookupResponse(BaseModel):
    signature: Optional[SignatureResponse]


class SignatureSavedResponse(BaseModel):
    success: bool
    signature: SignatureResponse
    message: str
