"""
Module: main.py
Description: FastAPI application entry point for the ClawTell delivery service.

Hosts the webhook receivers of every configured account behind one HTTP
entry point, runs each account's poll loop for the lifetime of the app,
and exposes health and status endpoints.
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from clawtell.config.settings import Settings, settings as default_settings
from clawtell.delivery.account import AccountContext, AccountRuntime
from clawtell.delivery.errors import ClawTellError, RateLimitError
from clawtell.delivery.push import LogSink, MessageSink, PushDeliveryClient
from clawtell.handlers.status import router as status_router
from clawtell.handlers.webhook import WebhookReceiver, WebhookRouter, install_webhook_dispatch
from clawtell.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


def build_sink(settings: Settings) -> MessageSink:
    """Pick the application sink: downstream push if configured, else log."""
    if settings.forward_url:
        return PushDeliveryClient(settings.forward_url, timeout_seconds=settings.forward_timeout_seconds)
    logger.warning("No CLAWTELL_FORWARD_URL configured; inbound messages are only logged")
    return LogSink()


def create_app(
    settings: Optional[Settings] = None,
    sink: Optional[MessageSink] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Optional Settings instance (defaults to the environment)
        sink: Optional application sink (defaults to build_sink(settings))

    Returns:
        Configured FastAPI application
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)
    webhook_router = WebhookRouter()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_sink = sink or build_sink(settings)
        runtimes: Dict[str, AccountRuntime] = {}
        for account in settings.resolve_accounts():
            if not account.enabled:
                logger.info("Account disabled", account_id=account.account_id)
                continue
            if not account.configured:
                logger.warning("Account has no api_key; skipping", account_id=account.account_id)
                continue
            runtime = AccountRuntime(AccountContext.create(account, app_sink))
            webhook_router.register(WebhookReceiver(runtime.context))
            runtimes[account.account_id] = runtime

        app.state.runtimes = runtimes
        for runtime in runtimes.values():
            await runtime.start()
        logger.info(
            "Starting ClawTell delivery service",
            version=settings.app_version,
            accounts=list(runtimes),
        )

        yield

        for runtime in runtimes.values():
            await runtime.stop()
        for receiver in webhook_router.receivers:
            webhook_router.unregister(receiver)
        if isinstance(app_sink, PushDeliveryClient):
            await app_sink.aclose()
        logger.info("ClawTell delivery service stopped")

    app = FastAPI(
        title=settings.app_name,
        description="Agent-to-agent message delivery over the ClawTell relay",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.runtimes = {}

    install_webhook_dispatch(app, webhook_router)
    app.include_router(status_router)

    @app.get("/health")
    async def health_check():
        """Basic liveness information."""
        return {
            "status": "ok",
            "version": settings.app_version,
            "accounts": len(app.state.runtimes),
        }

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Log HTTP exceptions and return structured error responses."""
        logger.warning(
            "HTTP exception occurred",
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
            method=request.method
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.status_code, "message": exc.detail, "type": "http_exception"}},
        )

    @app.exception_handler(ClawTellError)
    async def relay_exception_handler(request: Request, exc: ClawTellError):
        """Map relay errors that escape a handler to a 502 (or 429)."""
        logger.error(
            "Relay error occurred",
            error=exc.message,
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method
        )
        status_code = 429 if isinstance(exc, RateLimitError) else 502
        return JSONResponse(
            status_code=status_code,
            content={"error": {"code": status_code, "message": exc.message, "type": "relay_error"}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Log unexpected exceptions and return a generic error response."""
        logger.error(
            "Unhandled exception occurred",
            error=str(exc),
            error_type=type(exc).__name__,
            path=request.url.path,
            method=request.method
        )
        return JSONResponse(
            status_code=500,
            content={"error": {"code": 500, "message": "Internal server error", "type": "internal_error"}},
        )

    return app


app = create_app()
