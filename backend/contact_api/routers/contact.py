from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response

from contact_api.dependencies import client_ip, get_contact_handler
from contact_api.lib.submission import ContactHandler, SubmissionResult

router = APIRouter(prefix="/api", tags=["contact"])

CORS_ALLOW_ORIGIN = {"Access-Control-Allow-Origin": "*"}
PREFLIGHT_HEADERS = {
    **CORS_ALLOW_ORIGIN,
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
}


def preflight_response() -> Response:
    return Response(status_code=200, content=b"", headers=PREFLIGHT_HEADERS)


def result_response(result: SubmissionResult) -> JSONResponse:
    return JSONResponse(
        status_code=result.http_status,
        content=result.body(),
        headers=CORS_ALLOW_ORIGIN,
    )


@router.options("/contact")
async def contact_preflight():
    return preflight_response()


@router.post("/contact")
async def contact(
    request: Request,
    handler: ContactHandler = Depends(get_contact_handler),
):
    # Read raw: malformed JSON answers 400 here, never a 422
    raw = await request.body()
    ip: Optional[str] = client_ip(request)
    result = await handler.handle(raw, source_ip=ip)
    return result_response(result)
