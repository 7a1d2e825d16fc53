"""Runtime environment helpers for guarding diagnostic output."""

import logging
import os
from urllib.parse import urlparse
from typing import Optional, Set

logger = logging.getLogger(__name__)

_LOCAL_HOSTS: Set[str] = {"localhost", "127.0.0.1", "::1"}
_PRODUCTION_NAMES: Set[str] = {"production", "prod"}


def _extract_hostname(url_value: str) -> Optional[str]:
    """Return hostname from a URL or bare host string."""
    if not url_value:
        return None
    url_value = url_value.strip()
    if not url_value:
        return None
    candidate = url_value if "://" in url_value else f"http://{url_value}"
    parsed = urlparse(candidate)
    return parsed.hostname


def _allowed_diagnostic_hosts() -> Set[str]:
    """Hosts that are allowed to receive diagnostic error detail."""
    extra = os.getenv("DIAGNOSTICS_ALLOWED_HOSTS", "")
    allowed = set(_LOCAL_HOSTS)
    if extra:
        allowed.update({host.strip().lower() for host in extra.split(",") if host.strip()})
    return allowed


def environment_name() -> str:
    return (os.getenv("ENVIRONMENT", "production").strip().lower() or "production")


def is_production() -> bool:
    return environment_name() in _PRODUCTION_NAMES


def diagnostics_active() -> bool:
    """Return True when error responses may carry diagnostic detail.

    Detail is only exposed outside production. When APP_BASE_URL is set it
    must point at localhost (or a host listed in DIAGNOSTICS_ALLOWED_HOSTS);
    a non-production ENVIRONMENT deployed behind a public hostname keeps
    responses terse.
    """
    if is_production():
        return False

    hostname = _extract_hostname(os.getenv("APP_BASE_URL", ""))
    if hostname and hostname.lower() not in _allowed_diagnostic_hosts():
        logger.warning(
            "diagnostics disabled: ENVIRONMENT=%s but APP_BASE_URL host %r is not allowed",
            environment_name(),
            hostname,
        )
        return False
    return True
