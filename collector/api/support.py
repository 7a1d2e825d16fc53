"""
Health and build information endpoints.
"""
from __future__ import annotations

import logging
import os

from fastapi import APIRouter, Depends, status
from starlette.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from collector import __version__
from collector.db.database import get_db
from collector.db.models import now_utc
from collector.utils.runtime import diagnostics_active

logger = logging.getLogger(__name__)

router = APIRouter(tags=["support"])

SERVICE_NAME = "form-collector"


@router.get("/build-info")
def get_build_info():
    """Return build and deployment information for the running service."""
    build_sha = os.getenv("BUILD_SHA")
    build_timestamp = os.getenv("BUILD_TIMESTAMP")
    image_tag = os.getenv("IMAGE_TAG")
    version = os.getenv("VERSION", __version__)

    return {
        "build_sha": build_sha if build_sha else None,
        "build_timestamp": build_timestamp if build_timestamp else None,
        "image_tag": image_tag if image_tag else None,
        "service_name": SERVICE_NAME,
        "version": version,
    }


@router.get("/api/health")
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "error": str(e) if diagnostics_active() else "database_unreachable",
            },
        )
    return {"status": "healthy", "timestamp": now_utc().isoformat()}
