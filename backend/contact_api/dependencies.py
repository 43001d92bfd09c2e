# backend/contact_api/dependencies.py
import logging
from typing import Optional

import httpx
from fastapi import Request

from contact_api.core.captcha import RecaptchaVerifier
from contact_api.core.mail import SmtpMailer
from contact_api.core.settings import Settings
from contact_api.lib.submission import ContactConfig, ContactHandler

log = logging.getLogger("uvicorn.error")


def build_contact_handler(s: Settings, http_client: httpx.AsyncClient) -> ContactHandler:
    """Wire the handler and its collaborators once, at process startup."""
    config = ContactConfig.from_settings(s)

    verifier: Optional[RecaptchaVerifier] = None
    if config.captcha_secret:
        verifier = RecaptchaVerifier(
            http_client,
            verify_url=s.recaptcha_verify_url,
            timeout=s.recaptcha_timeout_seconds,
        )
    else:
        log.warning("reCAPTCHA secret not set; submissions will not be verified in this process.")

    mailer: Optional[SmtpMailer] = None
    if config.mail_credential:
        mailer = SmtpMailer(
            config.sender_display,
            config.mail_credential,
            host=s.smtp_host,
            port=s.smtp_port,
            timeout=s.smtp_timeout_seconds,
        )
    else:
        log.warning("Mail credential not set; submissions will only be logged in this process.")

    return ContactHandler(config, verifier=verifier, mailer=mailer)


def get_contact_handler(request: Request) -> ContactHandler:
    return request.app.state.contact_handler


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client is not None:
        return request.client.host
    return None
