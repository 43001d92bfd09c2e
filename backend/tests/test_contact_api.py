# backend/tests/test_contact_api.py
import json
from urllib.parse import parse_qs

import httpx
import pytest
from fastapi.testclient import TestClient

from contact_api.core.captcha import RecaptchaVerifier
from contact_api.core.errors import DeliveryFailed
from contact_api.dependencies import get_contact_handler
from contact_api.lib.submission import ContactConfig, ContactHandler
from contact_api.main import app

client = TestClient(app)

VALID = {
    "name": "Ada Lovelace",
    "email": "ada@example.com",
    "company": "Analytical Engines",
    "project": "Web application",
    "message": "Hello\nworld",
}


class FakeMailer:
    def __init__(self, exc=None):
        self.sent = []
        self.exc = exc

    async def send(self, msg, timeout=None):
        self.sent.append(msg)
        if self.exc is not None:
            raise self.exc


class FakeSiteverify:
    """Stands in for the reCAPTCHA service behind httpx.MockTransport."""

    def __init__(self, payload=None, status_code=200):
        self.payload = payload if payload is not None else {"success": True}
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    def form(self, i=0):
        return {k: v[0] for k, v in parse_qs(self.requests[i].content.decode()).items()}


def make_handler(captcha_secret=None, mail_credential=None, siteverify=None, mailer=None):
    siteverify = siteverify or FakeSiteverify()
    verifier = RecaptchaVerifier(httpx.AsyncClient(transport=httpx.MockTransport(siteverify)))
    config = ContactConfig(
        recipient="owner@example.com",
        sender_display="relay@example.com",
        captcha_secret=captcha_secret,
        mail_credential=mail_credential,
    )
    return ContactHandler(config, verifier=verifier, mailer=mailer)


@pytest.fixture
def use_handler():
    def _install(handler):
        app.dependency_overrides[get_contact_handler] = lambda: handler
        return handler

    yield _install
    app.dependency_overrides.clear()


def post(payload, headers=None):
    body = payload if isinstance(payload, (str, bytes)) else json.dumps(payload)
    return client.post(
        "/api/contact",
        content=body,
        headers={"Content-Type": "application/json", **(headers or {})},
    )


@pytest.mark.parametrize("missing", ["name", "email", "message"])
@pytest.mark.parametrize("blank", [None, "", "   \n\t"])
def test_missing_required_field_rejected_without_outbound_calls(use_handler, missing, blank):
    siteverify, mailer = FakeSiteverify(), FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))
    payload = dict(VALID, **{"g-recaptcha-response": "tok"})
    if blank is None:
        payload.pop(missing)
    else:
        payload[missing] = blank

    resp = post(payload)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Name, email, and message are required"}
    assert siteverify.requests == []
    assert mailer.sent == []


def test_no_captcha_secret_skips_verification_and_dispatches(use_handler):
    siteverify, mailer = FakeSiteverify(), FakeMailer()
    use_handler(make_handler(None, "app-password", siteverify, mailer))

    resp = post(VALID)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert siteverify.requests == []
    assert len(mailer.sent) == 1


def test_captcha_secret_without_token_is_rejected_before_contacting_service(use_handler):
    siteverify, mailer = FakeSiteverify(), FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))

    resp = post(VALID)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Please complete the reCAPTCHA verification."}
    assert siteverify.requests == []
    assert mailer.sent == []


def test_expired_token_returns_exact_message(use_handler):
    siteverify = FakeSiteverify({"success": False, "error-codes": ["timeout-or-duplicate"]})
    mailer = FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))

    resp = post(dict(VALID, **{"g-recaptcha-response": "used-token"}))

    assert resp.status_code == 400
    assert resp.json()["message"] == (
        "reCAPTCHA has expired or was already used. Please refresh the page and try again."
    )
    assert mailer.sent == []


def test_verified_submission_sends_exactly_one_email(use_handler):
    siteverify, mailer = FakeSiteverify({"success": True}), FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))

    resp = post(
        dict(VALID, **{"g-recaptcha-response": "good-token"}),
        headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Message sent successfully!"}
    assert resp.headers["access-control-allow-origin"] == "*"
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["To"] == "owner@example.com"
    assert siteverify.form() == {"secret": "secret", "response": "good-token", "remoteip": "203.0.113.9"}


def test_no_mail_credential_accepts_and_logs_only(use_handler):
    mailer = FakeMailer()
    use_handler(make_handler(None, None, mailer=mailer))

    resp = post(VALID)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert mailer.sent == []


def test_options_preflight_has_empty_body_and_cors_headers():
    # no handler installed: preflight never touches configuration
    resp = client.options("/api/contact")

    assert resp.status_code == 200
    assert resp.content == b""
    assert resp.headers["access-control-allow-origin"] == "*"
    assert resp.headers["access-control-allow-headers"] == "Content-Type"
    assert resp.headers["access-control-allow-methods"] == "POST, OPTIONS"


@pytest.mark.parametrize("body", ["{not json", "", "[1, 2]", '"just a string"'])
def test_malformed_body_is_rejected_first(use_handler, body):
    siteverify, mailer = FakeSiteverify(), FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))

    resp = post(body)

    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Invalid request format"}
    assert siteverify.requests == []


def test_delivery_failure_is_generic_500(use_handler):
    mailer = FakeMailer(DeliveryFailed("535 bad credentials for relay@example.com"))
    use_handler(make_handler(None, "app-password", mailer=mailer))

    resp = post(VALID)

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Internal server error"}
    assert "535" not in resp.text
    assert "relay@example.com" not in resp.text


def test_unexpected_mailer_exception_is_generic_500(use_handler):
    mailer = FakeMailer(RuntimeError("socket exploded: internal detail"))
    use_handler(make_handler(None, "app-password", mailer=mailer))

    resp = post(VALID)

    assert resp.status_code == 500
    assert "internal detail" not in resp.text


def test_verification_service_error_is_generic_500(use_handler):
    siteverify = FakeSiteverify({"oops": True}, status_code=503)
    mailer = FakeMailer()
    use_handler(make_handler("secret", "app-password", siteverify, mailer))

    resp = post(dict(VALID, **{"g-recaptcha-response": "tok"}))

    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Internal server error"}
    assert mailer.sent == []
