from typing import Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from app.core.config import get_settings
from app.services.auth_service import create_access_token

router = APIRouter(prefix="/auth", tags=["auth"])


class TokenRequest(BaseModel):
    subject_id: str
    company_id: int
    role: Literal["EMPLOYEE", "MANAGER", "ADMIN"] = "EMPLOYEE"


@router.post("/token")
def issue_token(payload: TokenRequest):
    if not get_settings().is_dev:
        raise HTTPException(status_code=404, detail="Not Found")
    try:
        token = create_access_token(
            subject_id=str(payload.subject_id),
            company_id=int(payload.company_id),
            role=payload.role,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    return {
        "access_token": token,
        "token_type": "bearer",
    }
