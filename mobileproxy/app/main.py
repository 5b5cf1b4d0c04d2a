from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from mobileproxy.app.api.chat import router as chat_router
from mobileproxy.app.api.notifications import router as notifications_router
from mobileproxy.app.api.passthrough import router as passthrough_router
from mobileproxy.app.core.config import settings
from mobileproxy.app.core.http_client import init_http_client
from mobileproxy.app.core.logging import get_logger, setup_logging
from mobileproxy.app.exceptions import ProxyException, RateLimitError
from mobileproxy.app.middleware.request_id import RequestIdMiddleware, get_request_id
from mobileproxy.app.services.state import StateSweeper, build_state


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Opens the shared HTTP connection pool, builds the process state and
        runs the idle-state sweeper until shutdown.
        """
        async with init_http_client() as http_client:
            state = build_state(settings, http_client=http_client)
            app.state.proxy = state

            sweeper = StateSweeper(
                state.limiter, state.cache, interval=settings.sweep_interval_seconds
            )
            await sweeper.start()

            logger.info(
                "Application startup complete",
                extra={
                    "max_per_minute": settings.max_per_minute,
                    "cache_ttl_seconds": settings.cache_ttl_seconds,
                    "mock_upstreams": settings.mock_upstreams,
                },
            )
            try:
                yield
            finally:
                await sweeper.stop()
                app.state.proxy = None

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Mobile Proxy",
        description="Backend proxy for the mobile app: rate-limited cached chat, push fan-out and API pass-through",
        version="1.0.0",
        lifespan=lifespan,
    )

    # Middleware order: last added = first executed
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-RateLimit-Limit", "Retry-After"],
        max_age=600,
    )

    app.include_router(chat_router)
    app.include_router(notifications_router)
    app.include_router(passthrough_router)

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        """Liveness plus a snapshot of in-memory state sizes."""
        state = getattr(request.app.state, "proxy", None)
        if state is None:
            return {"status": "starting", "components": {}}
        return {
            "status": "ok",
            "components": {
                "rate_limiter": {
                    "tracked_keys": state.limiter.tracked_keys,
                    "max_per_window": state.limiter.max_per_window,
                },
                "cache": {"entries": len(state.cache)},
                "generative": {"configured": state.chat.provider.is_configured},
            },
        }

    @app.exception_handler(RateLimitError)
    async def rate_limit_handler(request: Request, exc: RateLimitError) -> JSONResponse:
        """Handle RateLimitError and return HTTP 429 with retry hints."""
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
            headers={
                "X-RateLimit-Limit": str(exc.limit),
                "Retry-After": str(exc.retry_after or 60),
            },
        )

    @app.exception_handler(ProxyException)
    async def proxy_exception_handler(request: Request, exc: ProxyException) -> JSONResponse:
        """Convert any ProxyException into its JSON error body."""
        if exc.status_code >= 500:
            logger.error(
                f"{type(exc).__name__}: {exc.message}",
                extra={"request_id": get_request_id(request), "path": request.url.path},
            )
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Malformed JSON bodies are a client fault like any missing field."""
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_request", "detail": str(exc.errors())[:300]},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        error = "not_found" if exc.status_code == 404 else "http_error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": error, "detail": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback to the client; the full details are logged.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {"error": "internal_error", "request_id": request_id}
        if settings.debug:
            content["detail"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
