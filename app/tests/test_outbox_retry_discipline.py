from datetime import timedelta

from app.database import SessionLocal
from app.models.event_outbox import EventOutbox
from app.services.outbox_processor import process_outbox_batch


def test_outbox_retry_increments_and_then_processes():
    db = SessionLocal()
    try:
        # Fails first: no handler registered for this type.
        row = EventOutbox(
            company_id=1,
            event_type="JOB_ARCHIVED",
            idempotency_key="k-retry-1",
            payload={"job_id": 1},
            processed=False,
            retry_count=0,
        )
        db.add(row)
        db.commit()
        db.refresh(row)

        # 'now' must be >= row.created_at or the row is never due.
        now0 = row.created_at + timedelta(seconds=1)

        r1 = process_outbox_batch(db=db, now=now0, batch_size=10, max_retries=10, handlers={})
        db.refresh(row)
        assert r1.processed == 0
        assert r1.failed == 1
        assert row.processed is False
        assert row.retry_count == 1

        # retry_count=1 => 2s backoff; now0 is only +1s
        r2 = process_outbox_batch(db=db, now=now0, batch_size=10, max_retries=10, handlers={})
        db.refresh(row)
        assert r2.processed == 0
        assert r2.failed == 0
        assert row.retry_count == 1

        now2 = row.created_at + timedelta(seconds=3)
        r3 = process_outbox_batch(db=db, now=now2, batch_size=10, max_retries=10, handlers={})
        db.refresh(row)
        assert r3.processed == 0
        assert r3.failed == 1
        assert row.retry_count == 2

        # Handler deployed: the next due pass succeeds.
        now3 = row.created_at + timedelta(seconds=10)
        r4 = process_outbox_batch(
            db=db,
            now=now3,
            batch_size=10,
            max_retries=10,
            handlers={"JOB_ARCHIVED": lambda _row, _db: None},
        )
        db.refresh(row)
        assert r4.processed == 1
        assert row.processed is True
        assert row.retry_count == 2

    finally:
        db.rollback()
        db.close()
