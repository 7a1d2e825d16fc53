"""
Form submission endpoint.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends
from starlette.requests import Request

from collector.api.deps import get_submission_service
from collector.db import schemas
from collector.services.submissions import SubmissionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["submissions"])


@router.post("/submit", response_model=schemas.SubmissionAck)
def submit_form(
    request: Request,
    submission: Optional[schemas.SubmissionCreate] = Body(default=None),
    service: SubmissionService = Depends(get_submission_service),
):
    """Store a contact form submission.

    The allocated id is logged but intentionally not returned to the client.
    """
    remote_ip = request.client.host if request.client else None
    submission_id = service.submit(submission or schemas.SubmissionCreate(), remote_ip=remote_ip)
    logger.info("submission stored: id=%s", submission_id)
    return schemas.SubmissionAck(ok=True)
