"""Shared application state, route dependencies and the API key gate."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from collectopedia.api.ratelimit import SlidingWindowLimiter, client_key
from collectopedia.batch.refresh import BatchRefresher
from collectopedia.core.config import CollectopediaConfig
from collectopedia.pricing.aggregator import PriceAggregator

logger = logging.getLogger(__name__)


@dataclass
class AppState:
    """Everything the lifespan builds, attached to app.state.app_state."""

    config: CollectopediaConfig
    client: httpx.AsyncClient
    aggregator: PriceAggregator
    refresher: BatchRefresher
    limiter: SlidingWindowLimiter | None = None


def get_config(request: Request) -> CollectopediaConfig:
    return request.app.state.app_state.config


def get_aggregator(request: Request) -> PriceAggregator:
    return request.app.state.app_state.aggregator


def get_refresher(request: Request) -> BatchRefresher:
    return request.app.state.app_state.refresher


# Health checks stay reachable without a key.
OPEN_PATHS = frozenset({"/api/health"})


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Require a matching X-API-Key header once ``api.api_key`` is configured.

    The key is read from the loaded config on every request, so a key that
    only arrives through the environment or a config file still applies.
    """
    expected = request.app.state.app_state.config.api.api_key
    if not expected or request.url.path in OPEN_PATHS:
        return await call_next(request)

    supplied = request.headers.get("X-API-Key", "")
    if secrets.compare_digest(supplied.encode(), expected.encode()):
        return await call_next(request)

    config = request.app.state.app_state.config
    logger.warning(
        "Rejected %s %s from %s: %s API key",
        request.method,
        request.url.path,
        client_key(request, trust_forwarded=config.rate_limit.trust_forwarded),
        "wrong" if supplied else "missing",
    )
    return JSONResponse(
        status_code=401,
        content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
    )
