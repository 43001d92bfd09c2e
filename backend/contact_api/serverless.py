"""
Serverless entry point for the contact relay.

Accepts API Gateway REST (payload v1) and HTTP API / function URL (payload v2)
events and answers with the same contract as ``POST /api/contact``.
"""
import asyncio
import base64
import json
import logging
from typing import Any, Dict, Optional

import httpx

from contact_api.core.errors import INTERNAL_ERROR_MESSAGE, MalformedInput
from contact_api.core.settings import settings
from contact_api.dependencies import build_contact_handler
from contact_api.lib.submission import ContactHandler, SubmissionResult
from contact_api.routers.contact import CORS_ALLOW_ORIGIN, PREFLIGHT_HEADERS

log = logging.getLogger("uvicorn.error")
logging.basicConfig(level=settings.log_level.upper())

_loop: Optional[asyncio.AbstractEventLoop] = None
_handler: Optional[ContactHandler] = None


def _get_loop() -> asyncio.AbstractEventLoop:
    # One loop per container so the pooled http client survives warm invocations
    global _loop
    if _loop is None or _loop.is_closed():
        _loop = asyncio.new_event_loop()
    return _loop


def get_handler() -> ContactHandler:
    global _handler
    if _handler is None:
        _handler = build_contact_handler(settings, httpx.AsyncClient())
    return _handler


def set_handler(handler: Optional[ContactHandler]) -> None:
    """Swap the process-wide handler (tests, custom bootstraps)."""
    global _handler
    _handler = handler


def event_method(event: Dict[str, Any]) -> str:
    method = event.get("httpMethod")
    if not method:
        method = ((event.get("requestContext") or {}).get("http") or {}).get("method")
    return (method or "").upper()


def event_source_ip(event: Dict[str, Any]) -> Optional[str]:
    ctx = event.get("requestContext") or {}
    ip = (ctx.get("identity") or {}).get("sourceIp")
    if not ip:
        ip = (ctx.get("http") or {}).get("sourceIp")
    return ip or None


def event_body(event: Dict[str, Any]) -> Optional[bytes]:
    body = event.get("body")
    if body is None:
        return None
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except ValueError:
            raise MalformedInput()
    return body.encode("utf-8")


def _json_response(status: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "statusCode": status,
        "headers": {**CORS_ALLOW_ORIGIN, "Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def to_response(result: SubmissionResult) -> Dict[str, Any]:
    return _json_response(result.http_status, result.body())


def handler(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    method = event_method(event)
    log.info(f"[serverless] contact handler invoked ({method or 'no method'})")

    if method == "OPTIONS":
        return {"statusCode": 200, "headers": dict(PREFLIGHT_HEADERS), "body": ""}
    if method and method != "POST":
        return _json_response(405, {"success": False, "message": "Method not allowed"})

    try:
        body = event_body(event)
        result = _get_loop().run_until_complete(
            get_handler().handle(body, source_ip=event_source_ip(event))
        )
    except MalformedInput as exc:
        return to_response(SubmissionResult(False, exc.public_message, exc.status_code))
    except Exception:
        log.exception("[serverless] contact handler failed outside request processing")
        return _json_response(500, {"success": False, "message": INTERNAL_ERROR_MESSAGE})
    return to_response(result)
