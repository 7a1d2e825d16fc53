"""
Error taxonomy shared by services, repositories and the HTTP layer.

Every error carries a short machine-usable ``reason`` and an HTTP status so
the API can render it without knowing where it was raised. ``retriable``
tells callers whether re-running the whole operation may succeed.
"""
from __future__ import annotations

from typing import Optional


class CollectorError(Exception):
    """Base class for all service errors."""

    status_code: int = 500
    default_reason: str = "internal_error"
    retriable: bool = False

    def __init__(self, reason: Optional[str] = None, detail: Optional[str] = None):
        self.reason = reason or self.default_reason
        self.detail = detail
        super().__init__(detail or self.reason)


# Validation: rejected before any lock is taken, never retried.
class ValidationError(CollectorError):
    status_code = 400
    default_reason = "invalid_request"


class CaptchaRejected(CollectorError):
    status_code = 403
    default_reason = "captcha_failed"


class PermissionDenied(CollectorError):
    status_code = 403
    default_reason = "forbidden"


class NotFoundError(CollectorError):
    status_code = 404
    default_reason = "not_found"


class ProtectedResourceError(CollectorError):
    status_code = 409
    default_reason = "protected_table"


# Transient: safe to retry from scratch.
class AllocationConflict(CollectorError):
    status_code = 409
    default_reason = "allocation_conflict"
    retriable = True


class TransientUnavailable(CollectorError):
    status_code = 503
    default_reason = "unavailable"
    retriable = True
    retry_after_seconds: int = 1


class LockTimeout(TransientUnavailable):
    default_reason = "lock_timeout"


class StorageUnavailable(TransientUnavailable):
    default_reason = "storage_unavailable"


# Fatal: surfaced to the operator.
class ConfigurationError(CollectorError):
    status_code = 500
    default_reason = "configuration_error"


class ProvisioningError(ConfigurationError):
    default_reason = "provisioning_failed"


class StorageError(CollectorError):
    status_code = 500
    default_reason = "storage_error"
