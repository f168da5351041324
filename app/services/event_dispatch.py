"""
Side-effect dispatch for job state transitions.

State transitions call enqueue_event() inside their own transaction, so an
event exists iff the transition committed. After the commit the request
calls dispatch_events() to run the handlers right away; anything that fails
there stays in the outbox for the background worker and is never reported
to the caller.
"""
import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.database import SessionLocal
from app.models.event_outbox import EventOutbox
from app.services.outbox_processor import OutboxHandler, process_outbox_batch

logger = logging.getLogger(__name__)

JOB_STARTED = "JOB_STARTED"
JOB_CONFIRMED = "JOB_CONFIRMED"
JOB_ACCEPTED = "JOB_ACCEPTED"
JOB_COMPLETED = "JOB_COMPLETED"
JOB_DECLINED = "JOB_DECLINED"
EMPLOYEE_CHECKED_IN = "EMPLOYEE_CHECKED_IN"
EMPLOYEE_CHECKED_OUT = "EMPLOYEE_CHECKED_OUT"


def enqueue_event(
    db: Session,
    *,
    company_id: int,
    event_type: str,
    idempotency_key: str,
    payload: Dict[str, Any],
) -> Optional[EventOutbox]:
    """Add an outbox row. Returns None when an event with the same key already exists."""
    existing = (
        db.query(EventOutbox.id)
        .filter(
            EventOutbox.company_id == int(company_id),
            EventOutbox.event_type == event_type,
            EventOutbox.idempotency_key == str(idempotency_key),
        )
        .first()
    )
    if existing is not None:
        return None

    row = EventOutbox(
        company_id=int(company_id),
        event_type=event_type,
        idempotency_key=str(idempotency_key),
        payload=payload,
    )
    try:
        with db.begin_nested():
            db.add(row)
            db.flush()
    except IntegrityError:
        logger.info(
            "Outbox event already enqueued",
            extra={"company_id": company_id, "event_type": event_type, "idempotency_key": idempotency_key},
        )
        return None
    return row


def dispatch_events(
    event_ids: Sequence[int],
    *,
    handlers: Optional[Dict[str, OutboxHandler]] = None,
) -> None:
    """Run handlers for committed events in a fresh session. Never raises."""
    ids: List[int] = [int(i) for i in event_ids if i is not None]
    if not ids:
        return

    db = SessionLocal()
    try:
        result = process_outbox_batch(db=db, event_ids=ids, batch_size=len(ids), handlers=handlers)
        db.commit()
        if result.failed:
            logger.warning(
                "Some side effects failed; left for retry",
                extra={"event_ids": ids, "failed": result.failed},
            )
    except Exception:
        db.rollback()
        logger.exception("Side-effect dispatch failed", extra={"event_ids": ids})
    finally:
        db.close()
