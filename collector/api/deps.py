"""
Shared FastAPI dependencies.

Request handlers receive their session, settings, table registry and
services through these providers so tests can override any of them via
``app.dependency_overrides``.
"""
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from collector.config import Settings, get_settings
from collector.db.database import get_db
from collector.errors import NotFoundError, PermissionDenied
from collector.services.captcha import CaptchaVerifier, build_captcha_verifier
from collector.services.submissions import SubmissionService
from collector.utils.feature_flags import admin_feature_enabled, admin_schema_changes_enabled


@lru_cache(maxsize=8)
def _verifier_for(settings: Settings) -> Optional[CaptchaVerifier]:
    return build_captcha_verifier(settings)


def get_captcha_verifier(settings: Settings = Depends(get_settings)) -> Optional[CaptchaVerifier]:
    return _verifier_for(settings)


def get_submission_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    captcha_verifier: Optional[CaptchaVerifier] = Depends(get_captcha_verifier),
) -> SubmissionService:
    return SubmissionService(db, settings, captcha_verifier)


def require_admin_enabled() -> None:
    if not admin_feature_enabled():
        raise NotFoundError("not_found")


def require_schema_changes_enabled() -> None:
    if not admin_schema_changes_enabled():
        raise PermissionDenied("schema_changes_disabled", "Table create/drop is disabled")
