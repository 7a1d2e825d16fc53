"""
CAPTCHA verification clients.

Both supported providers expose the same ``siteverify`` contract: POST the
secret and the client token as form fields, read ``success`` from the JSON
answer. The service only needs the boolean.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import requests

from collector.config import Settings
from collector.errors import ConfigurationError, TransientUnavailable

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
TURNSTILE_VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


@dataclass
class CaptchaResult:
    success: bool
    error_codes: List[str] = field(default_factory=list)


class CaptchaVerifier:
    """Base siteverify client; subclasses pin the provider and URL."""

    provider: str = ""
    verify_url: str = ""

    def __init__(self, secret: str, timeout_seconds: float = 5.0, session: Optional[requests.Session] = None):
        if not secret:
            raise ConfigurationError("captcha_misconfigured", f"{self.provider} secret is not set")
        self._secret = secret
        self.timeout_seconds = timeout_seconds
        self._http = session or requests.Session()

    def verify(self, token: str, remote_ip: Optional[str] = None) -> CaptchaResult:
        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            response = self._http.post(self.verify_url, data=data, timeout=self.timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning("%s verification request failed: %s", self.provider, e)
            raise TransientUnavailable("captcha_unavailable", f"{self.provider} verification failed: {e}") from e

        result = CaptchaResult(
            success=bool(payload.get("success")),
            error_codes=list(payload.get("error-codes") or []),
        )
        if not result.success:
            logger.info("%s rejected token: %s", self.provider, result.error_codes)
        return result


class RecaptchaVerifier(CaptchaVerifier):
    provider = "recaptcha"
    verify_url = RECAPTCHA_VERIFY_URL


class TurnstileVerifier(CaptchaVerifier):
    provider = "turnstile"
    verify_url = TURNSTILE_VERIFY_URL


_VERIFIERS = {
    RecaptchaVerifier.provider: RecaptchaVerifier,
    TurnstileVerifier.provider: TurnstileVerifier,
}


def build_captcha_verifier(settings: Settings) -> Optional[CaptchaVerifier]:
    """Return the configured verifier, or None when CAPTCHA is disabled."""
    if not settings.captcha_enabled:
        return None
    verifier_cls = _VERIFIERS.get(settings.captcha_provider)
    if verifier_cls is None:
        raise ConfigurationError("captcha_misconfigured", f"Unknown captcha provider: {settings.captcha_provider}")
    return verifier_cls(settings.captcha_secret, timeout_seconds=settings.captcha_timeout_seconds)
