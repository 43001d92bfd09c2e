# contact_api/routers/health.py
from fastapi import APIRouter
from contact_api.core.settings import settings

router = APIRouter(prefix="/health", tags=["health"])

@router.get("")
async def health_root():
    return {"status": "ok"}

@router.get("/config")
async def health_config():
    # Only reports which optional features are on; never the values
    return {
        "ok": True,
        "captcha_enabled": bool(settings.recaptcha_secret),
        "mail_enabled": bool(settings.mail_password),
        "deadline_seconds": settings.contact_deadline_seconds,
    }
