import html
import logging
import re
from email.errors import MessageError
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from contact_api.core.errors import DeliveryFailed

log = logging.getLogger("uvicorn.error")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def header_value(value: str) -> str:
    """Collapse CR/LF and other control characters so a value fits on one header line."""
    return _CONTROL_CHARS.sub(" ", value).strip()


def inquiry_subject(name: str, company: Optional[str] = None) -> str:
    subject = f"Project Inquiry from {name}"
    if company:
        subject += f" ({company})"
    return header_value(subject)


def inquiry_html(
    name: str,
    email: str,
    message: str,
    company: Optional[str] = None,
    project: Optional[str] = None,
) -> str:
    esc = html.escape
    parts = [
        "<h3>New Contact Form Submission</h3>",
        f"<p><strong>Name:</strong> {esc(name)}</p>",
        f"<p><strong>Email:</strong> {esc(email)}</p>",
    ]
    if company:
        parts.append(f"<p><strong>Company:</strong> {esc(company)}</p>")
    if project:
        parts.append(f"<p><strong>Project Type:</strong> {esc(project)}</p>")
    body = esc(message).replace("\r\n", "\n").replace("\n", "<br>")
    parts.append("<p><strong>Message:</strong></p>")
    parts.append(f"<p>{body}</p>")
    return "\n".join(parts)


def compose_inquiry(submission, recipient: str) -> MIMEText:
    """Build the operator notification for one submission.

    From and Reply-To are the submitter so the operator can answer directly.
    """
    msg = MIMEText(
        inquiry_html(
            submission.name,
            submission.email,
            submission.message,
            company=submission.company,
            project=submission.project,
        ),
        "html",
        "utf-8",
    )
    sender = header_value(submission.email)
    msg["Subject"] = inquiry_subject(submission.name, submission.company)
    msg["From"] = sender
    msg["Reply-To"] = sender
    msg["To"] = header_value(recipient)
    return msg


class SmtpMailer:
    """Authenticated SMTP-over-TLS transport, built once per process."""

    def __init__(
        self,
        username: str,
        password: str,
        host: str = "smtp.gmail.com",
        port: int = 465,
        timeout: float = 10.0,
    ):
        self.username = username
        self.password = password
        self.host = host
        self.port = port
        self.timeout = timeout

    async def send(self, msg: MIMEText, timeout: Optional[float] = None) -> None:
        """
        Deliver one message. ``timeout`` caps this send below the configured
        SMTP timeout, e.g. to what is left of a request budget.
        """
        limit = self.timeout if timeout is None else min(self.timeout, timeout)
        try:
            await aiosmtplib.send(
                msg,
                sender=self.username,
                recipients=[msg["To"]],
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                use_tls=True,
                timeout=limit,
            )
        except (aiosmtplib.SMTPException, OSError, MessageError) as exc:
            raise DeliveryFailed(f"SMTP send to {msg['To']} failed: {exc!r}") from exc
        log.info(f"[mail] sent '{msg['Subject']}' to {msg['To']}")
