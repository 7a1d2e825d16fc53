"""
FastAPI app assembly: logging, middleware, error mapping and router wiring.
"""
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from starlette.requests import Request
from starlette.responses import JSONResponse

from collector import __version__
from collector.api.admin import router as admin_router
from collector.api.submissions import router as submissions_router
from collector.api.support import router as support_router
from collector.config import get_settings
from collector.db.database import dispose_engine, get_engine
from collector.db.provisioning import provision
from collector.db.registry import get_table_registry
from collector.errors import CollectorError, TransientUnavailable
from collector.utils.runtime import diagnostics_active

# Configure logging
LOG_LEVEL_NAME = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_NAME, logging.INFO)
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)
logger.setLevel(LOG_LEVEL)
logger.info("app_startup: log_level=%s", LOG_LEVEL_NAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    if settings.provision_on_startup:
        # Fail fast: a ProvisioningError aborts startup.
        provision(get_engine(), settings, get_table_registry())
    else:
        logger.info("provisioning skipped (PROVISION_ON_STARTUP=false)")
    yield
    dispose_engine()


app = FastAPI(
    title="Form Collector Service",
    description="Contact form intake with gap-filling submission ids and a table browser.",
    version=__version__,
    lifespan=lifespan,
)

origins = [o.strip() for o in os.getenv("CORS_ALLOWED_ORIGINS", "*").split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type"],
)


def _error_body(reason: str, detail=None) -> dict:
    body = {"error": reason}
    if detail is not None and diagnostics_active():
        body["detail"] = detail
    return body


@app.exception_handler(CollectorError)
async def handle_collector_error(request: Request, exc: CollectorError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.reason, exc.detail)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.reason)
    headers = None
    if isinstance(exc, TransientUnavailable):
        headers = {"Retry-After": str(exc.retry_after_seconds)}
    return JSONResponse(_error_body(exc.reason, exc.detail), status_code=exc.status_code, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(_error_body("invalid_request", jsonable_encoder(exc.errors())), status_code=400)


@app.exception_handler(SQLAlchemyError)
async def handle_storage_error(request: Request, exc: SQLAlchemyError):
    logger.exception("storage error on %s %s", request.method, request.url.path)
    if isinstance(exc, OperationalError):
        return JSONResponse(
            _error_body("storage_unavailable", str(exc)),
            status_code=503,
            headers={"Retry-After": "1"},
        )
    return JSONResponse(_error_body("storage_error", str(exc)), status_code=500)


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(_error_body("internal_error", repr(exc)), status_code=500)


app.include_router(submissions_router)
app.include_router(admin_router)
app.include_router(support_router)
