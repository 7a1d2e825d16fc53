"""
Form submission workflow.

Validates the payload, runs the CAPTCHA gate and stores the submission
through the gap-filling allocator, retrying allocation conflicts from a
fresh scan.
"""
from __future__ import annotations

import logging
import re
import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from collector.config import Settings
from collector.db import schemas
from collector.db.allocator import GapFillingAllocator
from collector.db.repositories import submissions as repo_submissions
from collector.errors import AllocationConflict, CaptchaRejected, ConfigurationError, ValidationError
from collector.services.captcha import CaptchaVerifier

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email))


def validate_submission(submission: schemas.SubmissionCreate) -> None:
    if not submission.name or not submission.name.strip():
        raise ValidationError("name_required", "name is required")
    if submission.email and not is_valid_email(submission.email):
        raise ValidationError("invalid_email", "invalid email")


class SubmissionService:
    def __init__(
        self,
        db: Session,
        settings: Settings,
        captcha_verifier: Optional[CaptchaVerifier] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db = db
        self.settings = settings
        self.captcha_verifier = captcha_verifier
        self._sleep = sleep

    def verify_captcha(self, token: Optional[str], remote_ip: Optional[str] = None) -> None:
        if not self.settings.captcha_enabled:
            return
        if self.captcha_verifier is None:
            raise ConfigurationError(
                "captcha_misconfigured",
                f"captcha provider {self.settings.captcha_provider} has no verifier",
            )
        if not token:
            raise ValidationError("captcha_token_required", "captchaToken required")
        result = self.captcha_verifier.verify(token, remote_ip=remote_ip)
        if not result.success:
            raise CaptchaRejected(detail=f"{self.captcha_verifier.provider} failed: {result.error_codes}")

    def submit(
        self,
        submission: schemas.SubmissionCreate,
        *,
        remote_ip: Optional[str] = None,
        on_locked: Optional[Callable[[], None]] = None,
    ) -> int:
        """Validate, verify and store ``submission``; return its allocated id."""
        validate_submission(submission)
        self.verify_captcha(submission.captcha_token, remote_ip=remote_ip)

        attempts = self.settings.allocation_max_attempts
        for attempt in range(1, attempts + 1):
            allocator = GapFillingAllocator(lock_timeout_seconds=self.settings.lock_timeout_seconds)
            try:
                return repo_submissions.create_submission(
                    self.db, submission, allocator=allocator, on_locked=on_locked
                )
            except AllocationConflict:
                if attempt >= attempts:
                    logger.error("allocation conflict persisted after %d attempts", attempts)
                    raise
                logger.warning("allocation conflict, retrying (attempt %d/%d)", attempt, attempts)
                self._sleep(self.settings.allocation_retry_backoff_seconds * attempt)
        raise AllocationConflict()  # pragma: no cover - loop always returns or raises
