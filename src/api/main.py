"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import analyze, bookmarks, health, image_proxy, metadata
from core.config import get_settings
from services.classifier import close_llm_clients
from services.thumbnails import LOGO_URL_PREFIX

logger = logging.getLogger(__name__)

LOGO_DIR = Path(__file__).parent / "static" / "logos"


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if app_settings.dev_mode:
        logger.warning("DEV_MODE is enabled: authentication is bypassed")
    if not app_settings.llm_enabled:
        logger.info("OPENAI_API_KEY not set: bookmarks are classified by keyword rules")

    yield

    await close_llm_clients()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Logos and proxied images are embedded by the frontend; everything else is JSON
        if not request.url.path.startswith((LOGO_URL_PREFIX, "/image-proxy")):
            response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="Smart Bookmarks API",
    description="Save links with scraped previews and automatic categorization.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(analyze.router)
app.include_router(metadata.router)
app.include_router(bookmarks.router)
app.include_router(image_proxy.router)

app.mount(LOGO_URL_PREFIX, StaticFiles(directory=LOGO_DIR), name="logos")
