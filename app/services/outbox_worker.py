import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.database import SessionLocal, is_postgres
from app.services.outbox_processor import (
    process_outbox_batch,
    release_outbox_lock,
    try_acquire_outbox_lock,
)

logger = logging.getLogger(__name__)


def outbox_worker_enabled() -> bool:
    # Request-time dispatch covers tests; the retry loop stays off under pytest.
    if os.getenv("PYTEST_CURRENT_TEST"):
        return False
    return get_settings().outbox_worker_enabled


def _tag_connection(db: Session, name: str) -> None:
    if not is_postgres(db):
        return
    db.execute(text(f"set application_name = '{name}'"))


def _dispose_engine(db: Session) -> None:
    engine = db.get_bind()
    if engine is not None and hasattr(engine, "dispose"):
        engine.dispose()


async def _run_ticks(*, poll_seconds: float, batch_size: int, max_retries: int) -> None:
    while True:
        work_db: Session = SessionLocal()
        try:
            _tag_connection(work_db, "jobflow_outbox_worker_tick")
            result = process_outbox_batch(
                db=work_db,
                now=datetime.now(timezone.utc),
                batch_size=batch_size,
                max_retries=max_retries,
            )
            work_db.commit()
            if result.processed or result.failed:
                logger.info(
                    "Outbox batch processed",
                    extra={"processed": result.processed, "failed": result.failed},
                )

        except asyncio.CancelledError:
            work_db.rollback()
            raise

        except (OperationalError, DBAPIError):
            # Database restarted or the connection was killed; start over with fresh connections.
            work_db.rollback()
            _dispose_engine(work_db)
            logger.exception(
                "Outbox worker tick failed",
                extra={"component": "outbox_worker", "reason": "dbapi_error"},
            )

        except Exception:
            work_db.rollback()
            logger.exception(
                "Outbox worker tick failed",
                extra={"component": "outbox_worker", "reason": "unexpected"},
            )

        finally:
            work_db.close()

        await asyncio.sleep(poll_seconds)


async def outbox_worker_loop(
    *,
    poll_seconds: float = 1.0,
    batch_size: int = 50,
    max_retries: Optional[int] = None,
) -> None:
    """
    Retry loop for side effects that failed during the request.

    Only one process works the outbox at a time (PostgreSQL advisory lock),
    so uvicorn --reload or several replicas do not double-send emails.
    """
    if max_retries is None:
        max_retries = get_settings().outbox_max_retries

    logger.info(
        "Outbox worker started",
        extra={"poll_seconds": float(poll_seconds), "batch_size": int(batch_size)},
    )

    while True:
        lock_db: Session = SessionLocal()
        have_lock = False

        try:
            _tag_connection(lock_db, "jobflow_outbox_worker_lock")

            have_lock = try_acquire_outbox_lock(lock_db)
            if not have_lock:
                lock_db.close()
                await asyncio.sleep(poll_seconds)
                continue

            await _run_ticks(poll_seconds=poll_seconds, batch_size=batch_size, max_retries=max_retries)

        except asyncio.CancelledError:
            logger.info("Outbox worker cancelled; shutting down")
            raise

        except (OperationalError, DBAPIError):
            logger.exception(
                "Outbox worker lock connection failed",
                extra={"component": "outbox_worker", "reason": "lock_dbapi_error"},
            )
            _dispose_engine(lock_db)
            await asyncio.sleep(poll_seconds)

        except Exception:
            logger.exception(
                "Outbox worker crashed",
                extra={"component": "outbox_worker", "reason": "outer_unexpected"},
            )
            await asyncio.sleep(poll_seconds)

        finally:
            if have_lock:
                try:
                    release_outbox_lock(lock_db)
                except (OperationalError, DBAPIError):
                    logger.warning("Could not release outbox lock; connection already gone")
            lock_db.close()


def start_outbox_worker_task() -> Optional[asyncio.Task]:
    if not outbox_worker_enabled():
        logger.info("Outbox worker disabled")
        return None

    settings = get_settings()
    return asyncio.create_task(
        outbox_worker_loop(
            poll_seconds=settings.outbox_poll_seconds,
            batch_size=settings.outbox_batch_size,
            max_retries=settings.outbox_max_retries,
        )
    )
