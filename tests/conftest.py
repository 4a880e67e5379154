"""Shared pytest fixtures for collectopedia."""

from __future__ import annotations

from types import MappingProxyType

import pytest

from collectopedia.core.config import (
    CollectopediaConfig,
    EbayConfig,
    RateLimitConfig,
    RefreshConfig,
    SoldListingsConfig,
)
from collectopedia.core.exceptions import UpstreamError
from collectopedia.core.models import (
    DEFAULT_REGIONS,
    CatalogItem,
    Condition,
    Listing,
    PriceQuery,
    RegionConfig,
)
from collectopedia.pricing.aggregator import PriceAggregator
from collectopedia.pricing.stats import parse_price


class StubSource:
    """In-memory ListingSource that records every fetch."""

    def __init__(
        self,
        prices: list[object] | None = None,
        *,
        name: str = "stub",
        has_credentials: bool = True,
        error: Exception | None = None,
    ) -> None:
        self._name = name
        self._has_credentials = has_credentials
        self._error = error
        self.raw_items = [{"price": p} for p in (prices or [])]
        self.calls: list[tuple[PriceQuery, RegionConfig]] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def has_credentials(self) -> bool:
        return self._has_credentials

    async def fetch(self, query: PriceQuery, region: RegionConfig) -> list[Listing]:
        self.calls.append((query, region))
        if self._error is not None:
            raise self._error
        return [Listing(price=parse_price(item["price"]), raw=item) for item in self.raw_items]


class StubImageSource:
    """In-memory ImageSource that records every fetch."""

    def __init__(
        self,
        prices: list[object] | None = None,
        *,
        has_credentials: bool = True,
        error: Exception | None = None,
    ) -> None:
        self._has_credentials = has_credentials
        self._error = error
        self.raw_items = [{"price": p} for p in (prices or [])]
        self.calls: list[tuple[str, RegionConfig, Condition | None]] = []

    @property
    def name(self) -> str:
        return "stub_image"

    @property
    def has_credentials(self) -> bool:
        return self._has_credentials

    async def fetch(
        self, image_base64: str, region: RegionConfig, condition: Condition | None = None
    ) -> list[Listing]:
        self.calls.append((image_base64, region, condition))
        if self._error is not None:
            raise self._error
        return [Listing(price=parse_price(item["price"]), raw=item) for item in self.raw_items]


@pytest.fixture
def stub_source() -> type[StubSource]:
    """The StubSource class, for tests that build their own sources."""
    return StubSource


@pytest.fixture
def image_source() -> type[StubImageSource]:
    return StubImageSource


@pytest.fixture
def regions() -> MappingProxyType:
    return DEFAULT_REGIONS


@pytest.fixture
def uk_region(regions) -> RegionConfig:
    return regions["UK"]


@pytest.fixture
def us_region(regions) -> RegionConfig:
    return regions["US"]


@pytest.fixture
def make_aggregator(regions):
    """Factory: PriceAggregator over stub sources."""

    def _make(
        active: StubSource | None = None,
        sold: StubSource | None = None,
        **kwargs,
    ) -> PriceAggregator:
        return PriceAggregator(
            regions=regions,
            active_source=active or StubSource(name="active"),
            sold_source=sold or StubSource(name="sold"),
            **kwargs,
        )

    return _make


@pytest.fixture
def failing_source() -> StubSource:
    return StubSource(
        name="broken",
        error=UpstreamError("HTTP 503 from upstream", context={"status_code": 503}),
    )


@pytest.fixture
def test_config() -> CollectopediaConfig:
    """Config with credentials set and fast pacing for tests."""
    return CollectopediaConfig(
        ebay=EbayConfig(app_id="test-app-id", cert_id="test-cert-id"),
        sold=SoldListingsConfig(api_key="test-rapidapi-key"),
        rate_limit=RateLimitConfig(max_requests=100, window_seconds=60),
        refresh=RefreshConfig(batch_size=2, item_timeout=5, requests_per_second=1000),
    )


@pytest.fixture
def catalog_items() -> list[CatalogItem]:
    return [
        CatalogItem(id="item-1", name="Optimus Prime G1", condition=Condition.USED),
        CatalogItem(id="item-2", name="Megatron G1"),
        CatalogItem(id="item-3", name="Soundwave G1", is_sold=True),
        CatalogItem(id="item-4", name="Starscream G1", condition=Condition.NEW),
    ]
