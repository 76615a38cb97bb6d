"""FastAPI application entry point."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from happytail.api import router as api_router
from happytail.config import get_settings
from happytail.db.session import close_db, init_db
from happytail.exceptions import AppError
from happytail.logging import setup_logging
from happytail.middleware.logging import LoggingMiddleware
from happytail.middleware.request_id import RequestIDMiddleware
from happytail.services.telegram import TelegramError, get_telegram_client

logger = structlog.get_logger()
settings = get_settings()


async def register_webhook() -> None:
    """Point the Telegram bot at our webhook endpoint, if the bot is set up."""
    bot = get_telegram_client()
    if not (settings.base_url and bot.configured):
        logger.info("telegram_webhook_skipped")
        return

    url = f"{settings.base_url.rstrip('/')}{settings.api_prefix}/bot/{bot.token}"
    try:
        await bot.set_webhook(url)
        logger.info("telegram_webhook_registered")
    except TelegramError as e:
        logger.warning("telegram_webhook_failed", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    setup_logging()
    logger.info("Starting Happy Tail API", version=settings.app_version)
    await init_db()
    logger.info("Database connection initialized")
    await register_webhook()

    yield

    logger.info("Shutting down Happy Tail API")
    await close_db()
    logger.info("Database connection closed")


def error_body(status_code: int, message: str, errors: list[dict[str, Any]] | None = None) -> dict:
    return {"code": status_code, "message": message, "errors": errors or []}


async def app_error_handler(request: Request, exc: AppError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.error("app_error", error=exc.message, status_code=exc.status_code)
    return ORJSONResponse(
        error_body(exc.status_code, exc.message, exc.errors),
        status_code=exc.status_code,
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> ORJSONResponse:
    return ORJSONResponse(
        error_body(exc.status_code, str(exc.detail)),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> ORJSONResponse:
    """Group pydantic errors by field as ``{field, location, messages}``."""
    grouped: dict[tuple[str, str], list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ())]
        location = loc[0] if loc else "body"
        field = ".".join(loc[1:]) or location
        grouped.setdefault((field, location), []).append(error.get("msg", "Invalid value"))

    errors = [
        {"field": field, "location": location, "messages": messages}
        for (field, location), messages in grouped.items()
    ]
    return ORJSONResponse(
        error_body(status.HTTP_400_BAD_REQUEST, "Validation Error", errors),
        status_code=status.HTTP_400_BAD_REQUEST,
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception("unhandled_error", error=str(exc))
    return ORJSONResponse(
        error_body(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error"),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Volunteer coordination for animal shelters",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Add middleware (order matters - last added is first executed)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    # Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the reverse proxy
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

    app.include_router(api_router, prefix=settings.api_prefix)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint for load balancers."""
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
