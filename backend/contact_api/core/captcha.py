import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable

import httpx

from contact_api.core.errors import CaptchaRejected, CaptchaServiceUnavailable

log = logging.getLogger("uvicorn.error")

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
UNKNOWN_IP = "unknown"

# Checked in order; first code present wins
REJECTION_MESSAGES = (
    ("timeout-or-duplicate", "reCAPTCHA has expired or was already used. Please refresh the page and try again."),
    ("missing-input-response", "Please complete the reCAPTCHA verification."),
    ("invalid-input-response", "Invalid reCAPTCHA response. Please try again."),
)
GENERIC_REJECTION = CaptchaRejected.public_message


@dataclass(frozen=True)
class VerificationOutcome:
    verified: bool
    error_codes: FrozenSet[str] = field(default_factory=frozenset)


def rejection_message(error_codes: Iterable[str]) -> str:
    codes = set(error_codes)
    for code, message in REJECTION_MESSAGES:
        if code in codes:
            return message
    return GENERIC_REJECTION


class RecaptchaVerifier:
    """Checks reCAPTCHA tokens against Google's siteverify endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        verify_url: str = RECAPTCHA_VERIFY_URL,
        timeout: float = 10.0,
    ):
        self.client = client
        self.verify_url = verify_url
        self.timeout = httpx.Timeout(timeout)

    async def verify(self, secret: str, token: str, remote_ip: str | None = None) -> VerificationOutcome:
        """
        POSTs the token once and returns the outcome.
        Raises CaptchaServiceUnavailable when the service can't be reached or
        answers with something that isn't a verification result.
        """
        form = {
            "secret": secret,
            "response": token,
            "remoteip": remote_ip or UNKNOWN_IP,
        }
        try:
            resp = await self.client.post(self.verify_url, data=form, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPError as exc:
            raise CaptchaServiceUnavailable(f"reCAPTCHA request failed: {exc!r}") from exc
        except ValueError as exc:
            raise CaptchaServiceUnavailable(f"reCAPTCHA returned invalid JSON: {exc}") from exc

        if not isinstance(payload, dict):
            raise CaptchaServiceUnavailable(f"reCAPTCHA returned unexpected payload: {payload!r}")

        codes = payload.get("error-codes") or []
        if isinstance(codes, str):
            codes = [codes]
        return VerificationOutcome(
            verified=bool(payload.get("success")),
            error_codes=frozenset(str(c) for c in codes),
        )

    async def check(self, secret: str, token: str, remote_ip: str | None = None) -> VerificationOutcome:
        """verify() that raises CaptchaRejected on a failed outcome."""
        outcome = await self.verify(secret, token, remote_ip)
        if not outcome.verified:
            log.warning(f"[captcha] verification failed: {sorted(outcome.error_codes)}")
            raise CaptchaRejected(rejection_message(outcome.error_codes), outcome.error_codes)
        log.info("[captcha] verification passed")
        return outcome
