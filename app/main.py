from contextlib import asynccontextmanager
import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.core.config import get_settings
from app.core.logging import RequestIdMiddleware, configure_logging
from app.services.outbox_worker import start_outbox_worker_task
from app import models  # noqa: F401
from app.routers.auth import router as auth_router
from app.routers.employees import router as employees_router
from app.routers.invoices import router as invoices_router
from app.routers.jobs import router as jobs_router
from app.routers.manage_jobs import router as manage_jobs_router
from app.routers.outbox import router as outbox_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()

    task = start_outbox_worker_task()
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("Outbox worker failed during shutdown")


app = FastAPI(
    title="JobFlow",
    lifespan=lifespan,
)


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception as exc:
        logger.exception("Unhandled exception", extra={"path": request.url.path, "method": request.method})
        detail = "Internal Server Error"
        if get_settings().is_dev:
            detail = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content={"detail": detail})


app.add_middleware(RequestIdMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


app.include_router(auth_router)
app.include_router(jobs_router)
app.include_router(manage_jobs_router)
app.include_router(invoices_router)
app.include_router(employees_router)
app.include_router(outbox_router)


@app.get("/")
def root():
    return {"status": "JobFlow running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }
