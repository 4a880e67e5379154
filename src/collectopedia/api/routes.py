"""FastAPI route definitions for the Collectopedia price API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

import collectopedia
from collectopedia.api.deps import get_aggregator, get_config, get_refresher
from collectopedia.api.schemas import (
    BulkRefreshRequest,
    BulkRefreshResponse,
    EnhancedPricesRequest,
    EnhancedPricesResponse,
    ErrorResponse,
    HealthResponse,
    ImageSearchRequest,
    PriceResponse,
    RegionResponse,
)
from collectopedia.batch.refresh import BatchRefresher
from collectopedia.core.config import CollectopediaConfig
from collectopedia.core.models import Condition, ListingType, PriceQuery
from collectopedia.pricing.aggregator import PriceAggregator

logger = logging.getLogger(__name__)

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    aggregator: PriceAggregator = Depends(get_aggregator),
    config: CollectopediaConfig = Depends(get_config),
):
    """Service health and credential presence."""
    return HealthResponse(
        status="ok",
        version=collectopedia.__version__,
        default_region=config.regions.default.upper(),
        credentials=aggregator.credentials_status(),
    )


# -- Regions --


@router.get("/regions", response_model=list[RegionResponse])
async def list_regions(config: CollectopediaConfig = Depends(get_config)):
    """Configured marketplace regions."""
    default = config.regions.default.upper()
    return [
        RegionResponse(
            code=code,
            label=region.label,
            marketplace_id=region.marketplace_id,
            currency_code=region.currency_code,
            currency_symbol=region.currency_symbol,
            is_default=code == default,
        )
        for code, region in sorted(config.regions.table.items())
    ]


# -- Prices --


@router.get(
    "/ebay",
    response_model=PriceResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def get_ebay_prices(
    search_term: str = Query(..., alias="searchTerm", min_length=1, max_length=200),
    listing_type: ListingType = Query(..., alias="listingType"),
    condition: Condition | None = Query(None),
    region: str | None = Query(None, max_length=10),
    include_items: bool = Query(False, alias="includeItems"),
    aggregator: PriceAggregator = Depends(get_aggregator),
    config: CollectopediaConfig = Depends(get_config),
):
    """Lowest/median/highest listing prices for a search term.

    Degraded outcomes (missing credentials, nothing found, upstream
    failure) still answer 200 with zeroed numbers and a message or error.
    """
    if config.regions.strict and region is not None:
        aggregator.resolve_region(region, strict=True)

    query = PriceQuery(
        search_term=search_term,
        listing_type=listing_type,
        condition=condition,
        region=region,
        include_items=include_items,
    )
    try:
        stats = await aggregator.get_prices(query)
    except Exception as e:
        logger.exception("Unexpected error fetching eBay prices for %r", search_term)
        return _unexpected_error(e)
    return JSONResponse(content=stats.to_response())


def _unexpected_error(e: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=500,
        content={"error": "Failed to fetch eBay prices", "details": str(e)},
    )


@router.post(
    "/ebay/search-by-image",
    response_model=PriceResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def search_by_image(
    request: ImageSearchRequest,
    aggregator: PriceAggregator = Depends(get_aggregator),
    config: CollectopediaConfig = Depends(get_config),
):
    """Lowest/median/highest prices of active listings resembling an image."""
    if config.regions.strict and request.region is not None:
        aggregator.resolve_region(request.region, strict=True)

    logger.info(
        "Image search: %d base64 chars, title %r, condition %s",
        len(request.image_base64),
        request.title,
        request.condition,
    )
    try:
        stats = await aggregator.get_image_prices(
            request.image_base64,
            condition=request.condition,
            region=request.region,
            include_items=request.include_items,
        )
    except Exception as e:
        logger.exception("Unexpected error in eBay image search")
        return _unexpected_error(e)
    return JSONResponse(content=stats.to_response())


@router.post(
    "/ebay/enhanced",
    response_model=EnhancedPricesResponse,
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def enhanced_prices(
    request: EnhancedPricesRequest,
    aggregator: PriceAggregator = Depends(get_aggregator),
    config: CollectopediaConfig = Depends(get_config),
):
    """Keyword and image prices for one item, with the image result preferred."""
    if config.regions.strict and request.region is not None:
        aggregator.resolve_region(request.region, strict=True)

    query = PriceQuery(
        search_term=request.search_term,
        listing_type=ListingType.LISTED,
        condition=request.condition,
        region=request.region,
        include_items=request.include_items,
    )
    try:
        result = await aggregator.get_enhanced_prices(query, request.image_base64)
    except Exception as e:
        logger.exception("Unexpected error fetching enhanced prices for %r", request.search_term)
        return _unexpected_error(e)
    return JSONResponse(content=result.to_response())


# -- Batch refresh --


@router.post("/ebay-updates/bulk-refresh", response_model=BulkRefreshResponse)
async def bulk_refresh(
    request: BulkRefreshRequest,
    refresher: BatchRefresher = Depends(get_refresher),
):
    """Refresh valuations for one batch of the supplied catalog items."""
    results = await refresher.refresh_batch(
        request.items,
        offset=request.offset,
        batch_size=request.batch_size,
        listing_type=request.listing_type,
        region=request.region,
    )
    if results.total_items == 0:
        message = "No items found that need updating"
    else:
        message = results.summary
    return BulkRefreshResponse(success=True, message=message, results=results)
