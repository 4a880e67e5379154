"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

import base64
import binascii

from pydantic import BaseModel, ConfigDict, Field, field_validator

from collectopedia.core.models import BatchResult, CatalogItem, Condition, ListingType


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Prices --


class PriceResponse(BaseModel):
    """Outbound price statistics, documented for OpenAPI.

    The route serializes ``PriceStats.to_response()`` directly so that
    absent optional keys (notably ``items``) are omitted, not null.
    """

    lowest: float
    median: float
    highest: float
    listingType: ListingType | None = None
    message: str | None = None
    error: str | None = None
    details: str | None = None
    items: list[dict] | None = None


# -- Image search --


def _strip_data_url(v: str) -> str:
    """Accept both bare base64 and ``data:image/...;base64,`` URLs."""
    v = v.strip()
    if v.startswith("data:") and "," in v:
        v = v.split(",", 1)[1]
    try:
        base64.b64decode(v, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 image data: {e}") from e
    return v


class ImageSearchRequest(BaseModel):
    """Body of ``POST /api/ebay/search-by-image``."""

    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64", min_length=1)
    title: str | None = Field(default=None, max_length=200)
    condition: Condition | None = None
    region: str | None = Field(default=None, max_length=10)
    include_items: bool = Field(default=False, alias="includeItems")

    @field_validator("image_base64")
    @classmethod
    def check_image(cls, v: str) -> str:
        return _strip_data_url(v)


class EnhancedPricesRequest(BaseModel):
    """Body of ``POST /api/ebay/enhanced``."""

    model_config = ConfigDict(populate_by_name=True)

    search_term: str = Field(..., alias="searchTerm", min_length=1, max_length=200)
    image_base64: str | None = Field(default=None, alias="imageBase64")
    condition: Condition | None = None
    region: str | None = Field(default=None, max_length=10)
    include_items: bool = Field(default=False, alias="includeItems")

    @field_validator("image_base64")
    @classmethod
    def check_image(cls, v: str | None) -> str | None:
        return _strip_data_url(v) if v else None


class EnhancedPricesResponse(BaseModel):
    """Keyword and image results plus the figure to display."""

    textBased: PriceResponse
    imageBased: PriceResponse | None = None
    combined: PriceResponse


# -- Regions --


class RegionResponse(BaseModel):
    """One configured marketplace region."""

    code: str
    label: str
    marketplace_id: str
    currency_code: str
    currency_symbol: str
    is_default: bool


# -- Batch refresh --


class BulkRefreshRequest(BaseModel):
    """Body of ``POST /api/ebay-updates/bulk-refresh``."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[CatalogItem]
    batch_size: int | None = Field(default=None, alias="batchSize", ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    listing_type: ListingType = Field(default=ListingType.LISTED, alias="listingType")
    region: str | None = Field(default=None, max_length=10)


class BulkRefreshResponse(BaseModel):
    """Outcome of one refresh batch."""

    success: bool
    message: str
    results: BatchResult


# -- Health --


class HealthResponse(BaseModel):
    """System health check response."""

    status: str
    version: str
    default_region: str
    credentials: dict[str, bool]
