import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from contact_api.core.captcha import RecaptchaVerifier
from contact_api.core.errors import (
    INTERNAL_ERROR_MESSAGE,
    CaptchaMissing,
    ClientInputError,
    ContactError,
    InternalError,
    MalformedInput,
    MissingRequiredField,
)
from contact_api.core.mail import SmtpMailer, compose_inquiry

log = logging.getLogger("uvicorn.error")

CAPTCHA_FIELD = "g-recaptcha-response"
SUCCESS_MESSAGE = "Message sent successfully!"


@dataclass(frozen=True)
class SubmissionRequest:
    name: str
    email: str
    message: str
    company: Optional[str] = None
    project: Optional[str] = None
    captcha_token: Optional[str] = None


@dataclass(frozen=True)
class SubmissionResult:
    success: bool
    message: str
    http_status: int

    def body(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message}


@dataclass(frozen=True)
class ContactConfig:
    recipient: str
    sender_display: str
    captcha_secret: Optional[str] = None
    mail_credential: Optional[str] = None
    deadline_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls, s) -> "ContactConfig":
        return cls(
            recipient=s.contact_recipient,
            sender_display=s.contact_sender,
            captcha_secret=s.recaptcha_secret or None,
            mail_credential=s.mail_password or None,
            deadline_seconds=s.contact_deadline_seconds,
        )


def _text_field(data: Dict[str, Any], key: str, strip: bool = True) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedInput()
    if not value.strip():
        return None
    return value.strip() if strip else value


def parse_submission(raw: Union[bytes, str, None]) -> SubmissionRequest:
    """
    Parse a raw JSON body into a SubmissionRequest.
    Email addresses are not format-checked; any non-empty string is accepted.
    """
    try:
        data = json.loads(raw) if raw else None
    except (ValueError, TypeError):
        raise MalformedInput()
    if not isinstance(data, dict):
        raise MalformedInput()

    name = _text_field(data, "name")
    email = _text_field(data, "email")
    # message is relayed verbatim; blank-only still counts as missing
    message = _text_field(data, "message", strip=False)
    if not (name and email and message):
        raise MissingRequiredField()

    return SubmissionRequest(
        name=name,
        email=email,
        message=message,
        company=_text_field(data, "company"),
        project=_text_field(data, "project"),
        captcha_token=_text_field(data, CAPTCHA_FIELD),
    )


def _log_submission(sub: SubmissionRequest) -> None:
    log.info(
        "[contact] new submission\n"
        f"  Name: {sub.name}\n"
        f"  Email: {sub.email}\n"
        f"  Company: {sub.company or 'Not provided'}\n"
        f"  Project Type: {sub.project or 'Not selected'}\n"
        f"  Message: {sub.message}"
    )


class ContactHandler:
    """Runs one contact submission end to end and always returns a result.

    With a deadline set, verification is cancelled when the budget runs out.
    Dispatch is never cancelled; whatever budget is left becomes its SMTP
    timeout.
    """

    def __init__(
        self,
        config: ContactConfig,
        verifier: Optional[RecaptchaVerifier] = None,
        mailer: Optional[SmtpMailer] = None,
    ):
        self.config = config
        self.verifier = verifier
        self.mailer = mailer

    async def handle(self, raw_body: Union[bytes, str, None], source_ip: Optional[str] = None) -> SubmissionResult:
        deadline = self.config.deadline_seconds
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            sub = parse_submission(raw_body)
            if deadline:
                await asyncio.wait_for(self._verify(sub, source_ip), timeout=deadline)
            else:
                await self._verify(sub, source_ip)
            _log_submission(sub)
            remaining = deadline - (loop.time() - started) if deadline else None
            await self._dispatch(sub, remaining)
        except ClientInputError as exc:
            log.info(f"[contact] rejected ({exc.status_code}): {exc.public_message}")
            return SubmissionResult(False, exc.public_message, exc.status_code)
        except ContactError as exc:
            log.error(f"[contact] {type(exc).__name__}: {exc}")
            return SubmissionResult(False, INTERNAL_ERROR_MESSAGE, exc.status_code)
        except asyncio.TimeoutError:
            log.error(f"[contact] deadline of {deadline}s exceeded during verification")
            return SubmissionResult(False, INTERNAL_ERROR_MESSAGE, InternalError.status_code)
        except Exception:
            log.exception("[contact] unexpected error while processing submission")
            return SubmissionResult(False, INTERNAL_ERROR_MESSAGE, InternalError.status_code)

        return SubmissionResult(True, SUCCESS_MESSAGE, 200)

    async def _verify(self, sub: SubmissionRequest, source_ip: Optional[str]) -> None:
        secret = self.config.captcha_secret
        if not secret:
            log.warning("[contact] reCAPTCHA not configured - skipping verification")
            return
        if not sub.captcha_token:
            raise CaptchaMissing()
        if self.verifier is None:
            raise InternalError("reCAPTCHA secret is set but no verifier was provided")
        await self.verifier.check(secret, sub.captcha_token, source_ip)

    async def _dispatch(self, sub: SubmissionRequest, remaining: Optional[float]) -> None:
        if not self.config.mail_credential:
            log.warning("[contact] email not configured - form data logged only")
            return
        if self.mailer is None:
            raise InternalError("mail credential is set but no mailer was provided")
        msg = compose_inquiry(sub, self.config.recipient)
        if remaining is None:
            await self.mailer.send(msg)
            return
        if remaining <= 0:
            raise InternalError(f"deadline of {self.config.deadline_seconds}s used up before dispatch")
        await self.mailer.send(msg, timeout=remaining)
