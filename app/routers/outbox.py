from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.core.authorization import Role, require_role
from app.database import SessionLocal
from app.models.event_outbox import EventOutbox

router = APIRouter(prefix="/outbox", tags=["Outbox"])


class OutboxRow(BaseModel):
    id: int
    company_id: int
    event_type: str
    idempotency_key: str
    payload: Any
    processed: bool
    retry_count: int
    created_at: Optional[str]
    processed_at: Optional[str]


class OutboxListResponse(BaseModel):
    limit: int
    offset: int
    rows: list[OutboxRow]


def _iso(value) -> Optional[str]:
    return None if value is None else value.isoformat()


@router.get("", response_model=OutboxListResponse)
def list_outbox(
    request: Request,
    processed: Optional[bool] = None,
    event_type: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0, le=1_000_000),
    _role=Depends(require_role(Role.MANAGER)),
):
    """Side-effect delivery state per company: what is pending, what failed and how often."""
    db: Session = SessionLocal()
    try:
        q = db.query(EventOutbox).filter(
            EventOutbox.company_id == int(request.state.company_id)
        )

        if processed is not None:
            q = q.filter(EventOutbox.processed == bool(processed))
        if event_type:
            q = q.filter(EventOutbox.event_type == event_type)

        rows = (
            q.order_by(EventOutbox.id.asc())
            .limit(int(limit))
            .offset(int(offset))
            .all()
        )

        return {
            "limit": int(limit),
            "offset": int(offset),
            "rows": [
                {
                    "id": r.id,
                    "company_id": r.company_id,
                    "event_type": r.event_type,
                    "idempotency_key": r.idempotency_key,
                    "payload": r.payload,
                    "processed": r.processed,
                    "retry_count": r.retry_count,
                    "created_at": _iso(r.created_at),
                    "processed_at": _iso(r.processed_at),
                }
                for r in rows
            ],
        }
    finally:
        db.close()
