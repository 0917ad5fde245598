"""FastAPI application entrypoint. Serve with: python run_api.py (or uvicorn robochat.main:app)."""
import logging
import os
from pathlib import Path

# Project root (parent of robochat/)
_ROOT = Path(__file__).resolve().parent.parent

# Load .env FIRST so DEEPSEEK_*, EMAIL_*, etc. are set before any app code reads them.
# override=True so .env wins (important when uvicorn reload spawns a worker that may not inherit env).
from dotenv import load_dotenv
load_dotenv(_ROOT / ".env", override=True)

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from robochat.api.routes import router
from robochat.core.config import get_settings
from robochat.core.services import Services, build_services

logging.basicConfig(
    level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)-24s | %(message)s",
)
_log = logging.getLogger(__name__)

# Prevent third-party HTTP libs from logging at DEBUG (avoids leaking API keys/headers into logs)
for _name in ("httpx", "httpcore", "hpack", "urllib3"):
    logging.getLogger(_name).setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services: Services = app.state.services
    if services.reaper is not None:
        services.reaper.start()
        _log.info("Contact form session reaper started (every %ss)", services.reaper.interval)
    yield
    if services.reaper is not None:
        services.reaper.stop()


def create_app(services: Services | None = None) -> FastAPI:
    settings = get_settings()
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
    )
    app.state.services = services or build_services(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["POST", "OPTIONS", "GET"],
        allow_headers=["Content-Type", "Authorization", "X-Session-Id"],
    )
    app.include_router(router)
    return app


app = create_app()

if get_settings().email_enabled:
    _log.info("Email enabled: contact submissions are sent to the operator.")
else:
    _log.info("Email disabled (EMAIL_SMTP_* / SENDGRID_API_KEY not set). Submissions are stored only.")
