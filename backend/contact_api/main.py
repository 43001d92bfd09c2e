# contact_api/main.py
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from fastapi.routing import APIRoute
import httpx
import logging

from contact_api.core.settings import settings
from contact_api.dependencies import build_contact_handler
from contact_api.routers.contact import router as contact_router
from contact_api.routers.health import router as health_router

log = logging.getLogger("uvicorn.error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with httpx.AsyncClient() as http_client:
        app.state.contact_handler = build_contact_handler(settings, http_client)
        log.info(f"[main] contact relay ready, recipient = {settings.contact_recipient}")
        yield


app = FastAPI(title=settings.api_title, lifespan=lifespan)

# Routers
app.include_router(contact_router)
app.include_router(health_router)

@app.get("/__routes")
async def __routes():
    return [
        {"methods": sorted(list(r.methods)), "path": r.path}
        for r in app.routes
        if isinstance(r, APIRoute)
    ]

# static site; mounted last so the API routes above win
backend_dir = Path(__file__).resolve().parents[1]
proj_root = backend_dir.parent
site_dir = Path(settings.site_root).resolve() if settings.site_root else (proj_root / "site")
if site_dir.is_dir():
    app.mount("/", StaticFiles(directory=str(site_dir), html=True), name="site")
    log.info(f"[main] site_root = {site_dir}")
else:
    log.warning(f"[main] site_root {site_dir} not found; static site disabled")
