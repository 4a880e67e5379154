"""Pydantic models for queries, price results and catalog refreshes."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Type Aliases ---

ItemId = str
RawListing = dict[str, Any]

# --- Enumerations ---


class ListingType(StrEnum):
    """Which marketplace population a price query targets."""

    LISTED = "listed"
    SOLD = "sold"


class Condition(StrEnum):
    """Item conditions understood by both listing sources."""

    NEW = "New"
    USED = "Used"


class RegionCode(StrEnum):
    """Supported marketplace regions."""

    US = "US"
    UK = "UK"


# --- Region Models ---


class RegionConfig(BaseModel):
    """Marketplace/country/site identifiers scoping a query to one market."""

    model_config = ConfigDict(frozen=True)

    code: str
    marketplace_id: str
    location_country: str
    delivery_country: str
    site_id: str
    currency_code: str
    currency_symbol: str
    label: str

    @field_validator("location_country", "delivery_country")
    @classmethod
    def country_is_iso_alpha2(cls, v: str) -> str:
        if len(v) != 2 or not v.isalpha():
            raise ValueError(f"country code must be ISO alpha-2, got: {v!r}")
        return v.upper()


DEFAULT_REGIONS: Mapping[str, RegionConfig] = MappingProxyType(
    {
        RegionCode.US.value: RegionConfig(
            code="US",
            marketplace_id="EBAY-US",
            location_country="US",
            delivery_country="US",
            site_id="0",
            currency_code="USD",
            currency_symbol="$",
            label="United States",
        ),
        RegionCode.UK.value: RegionConfig(
            code="UK",
            marketplace_id="EBAY-GB",
            location_country="GB",
            delivery_country="GB",
            site_id="3",
            currency_code="GBP",
            currency_symbol="£",
            label="United Kingdom",
        ),
    }
)

DEFAULT_REGION_CODE = RegionCode.UK.value


# --- Query / Result Models ---


class PriceQuery(BaseModel):
    """Parameters for a single price aggregation call.

    The HTTP layer validates its own request shape before building one of
    these, so nothing here rejects a blank term; the aggregator answers
    that case with a "Missing required parameters" result instead.
    """

    model_config = ConfigDict(frozen=True)

    search_term: str = ""
    listing_type: ListingType | None = None
    condition: Condition | None = None
    region: str | None = None
    include_items: bool = False

    @field_validator("search_term")
    @classmethod
    def strip_term(cls, v: str) -> str:
        return v.strip()

    @field_validator("region")
    @classmethod
    def normalize_region(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip().upper()
        return v or None


class Listing(BaseModel):
    """A raw upstream listing plus the price its adapter extracted.

    `raw` is the upstream record exactly as received; `price` is None when
    the record has no usable numeric price.
    """

    model_config = ConfigDict(frozen=True)

    price: float | None = None
    raw: RawListing = Field(default_factory=dict)


class PriceStats(BaseModel):
    """Aggregated {lowest, median, highest} for one query.

    Degenerate outcomes keep all three numbers at 0 and explain themselves
    through `message` (normal "nothing found" cases) or `error` (failures).
    """

    lowest: float = 0.0
    median: float = 0.0
    highest: float = 0.0
    listing_type: ListingType | None = None
    message: str | None = None
    error: str | None = None
    details: str | None = None
    items: list[RawListing] | None = None

    @model_validator(mode="after")
    def ordered(self) -> PriceStats:
        if not (self.lowest <= self.median <= self.highest):
            raise ValueError(
                f"expected lowest <= median <= highest, got "
                f"{self.lowest}, {self.median}, {self.highest}"
            )
        return self

    @property
    def has_prices(self) -> bool:
        return self.message is None and self.error is None

    def to_response(self) -> dict[str, Any]:
        """Serialize to the outbound JSON shape, omitting absent keys."""
        data = self.model_dump(mode="json", exclude_none=True)
        if "listing_type" in data:
            data["listingType"] = data.pop("listing_type")
        return data


class EnhancedPrices(BaseModel):
    """Text and image search results for one item, plus the figure to use.

    `combined` is the image result when it found anything, else the text
    result. `image_based` is None when no image was supplied.
    """

    text_based: PriceStats
    image_based: PriceStats | None = None
    combined: PriceStats

    def to_response(self) -> dict[str, Any]:
        data = {"textBased": self.text_based.to_response()}
        if self.image_based is not None:
            data["imageBased"] = self.image_based.to_response()
        data["combined"] = self.combined.to_response()
        return data


# --- Batch Refresh Models ---


class CatalogItem(BaseModel):
    """A collection item whose market value should be refreshed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: ItemId
    name: str = ""
    condition: Condition | None = None
    is_sold: bool = Field(default=False, alias="isSold")
    last_updated: datetime | None = Field(default=None, alias="ebayLastUpdated")

    @field_validator("last_updated")
    @classmethod
    def as_utc(cls, v: datetime | None) -> datetime | None:
        # Naive timestamps are taken to be UTC already.
        if v is None:
            return None
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)


class ItemValuation(BaseModel):
    """The refreshed value of one catalog item."""

    model_config = ConfigDict(frozen=True)

    item_id: ItemId
    name: str
    value: int
    lowest: float
    highest: float


class BatchResult(BaseModel):
    """Outcome of one or more batch refresh passes."""

    total_processed: int = 0
    successful_updates: int = 0
    failed_updates: int = 0
    total_value: int = 0
    remaining_items: int = 0
    next_offset: int = 0
    total_items: int = 0
    updates: list[ItemValuation] = Field(default_factory=list)
    failures: dict[ItemId, str] = Field(default_factory=dict)

    @property
    def summary(self) -> str:
        return (
            f"Processed {self.total_processed} items: "
            f"{self.successful_updates} updated, {self.failed_updates} failed"
        )
