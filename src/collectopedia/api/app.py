"""FastAPI application factory."""

from __future__ import annotations

from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from collectopedia.api.deps import AppState, api_key_middleware
from collectopedia.api.ratelimit import SlidingWindowLimiter, rate_limit_middleware
from collectopedia.api.routes import router
from collectopedia.batch.refresh import BatchRefresher
from collectopedia.core.config import CollectopediaConfig, load_config
from collectopedia.core.exceptions import (
    CollectopediaError,
    ConfigError,
    RegionError,
    UpstreamError,
)
from collectopedia.pricing.aggregator import create_aggregator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config
    if config is None:
        config = load_config()
    client = httpx.AsyncClient(timeout=httpx.Timeout(config.http.request_timeout))
    aggregator = create_aggregator(config, client)

    limiter = None
    if config.rate_limit.enabled:
        limiter = SlidingWindowLimiter(
            max_requests=config.rate_limit.max_requests,
            window_seconds=config.rate_limit.window_seconds,
        )

    app.state.app_state = AppState(
        config=config,
        client=client,
        aggregator=aggregator,
        refresher=BatchRefresher(aggregator, config.refresh),
        limiter=limiter,
    )

    yield

    await app.state.app_state.client.aclose()


def create_app(config: CollectopediaConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import collectopedia

    app = FastAPI(
        title="Collectopedia Price API",
        description="Marketplace price estimates for collectible items",
        version=collectopedia.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "Retry-After"],
    )

    app.middleware("http")(rate_limit_middleware)
    # Registered last so it runs first; passes through when no key is configured.
    app.middleware("http")(api_key_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(CollectopediaError)
    async def collectopedia_exception_handler(request: Request, exc: CollectopediaError):
        status_map = {
            ConfigError: 500,
            RegionError: 400,
            UpstreamError: 502,
        }
        status = status_map.get(type(exc), 500)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request parameters",
                "detail": "; ".join(
                    f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
                    for err in exc.errors()
                ),
            },
        )

    return app
