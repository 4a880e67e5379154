"""Price aggregation: source dispatch, price extraction and statistics.

The aggregator is the error boundary for everything below it. Missing
credentials, empty results, unusable prices and upstream failures all come
back as a zeroed ``PriceStats`` that explains itself; only programming
errors escape ``get_prices``.
"""

from __future__ import annotations

import logging
from typing import Mapping

import httpx

from collectopedia.core.config import CollectopediaConfig
from collectopedia.core.exceptions import CredentialsError, RegionError, UpstreamError
from collectopedia.core.models import (
    DEFAULT_REGION_CODE,
    Condition,
    EnhancedPrices,
    Listing,
    ListingType,
    PriceQuery,
    PriceStats,
    RegionConfig,
)
from collectopedia.pricing.browse import EbayBrowseSource
from collectopedia.pricing.image import EbayImageSearchSource
from collectopedia.pricing.provider import ImageSource, ListingSource
from collectopedia.pricing.sold import SoldItemsSource
from collectopedia.pricing.stats import summarize_prices
from collectopedia.pricing.token import EbayTokenProvider

logger = logging.getLogger(__name__)

MISSING_PARAMETERS = "Missing required parameters"
MISSING_CREDENTIALS = "Missing API credentials"
CONFIGURATION_ERROR = "API configuration error"
NO_VALID_PRICES = "No valid prices found"
NO_IMAGE_RESULTS = "No results found for this image"
IMAGE_FAILURE = "Failed to fetch image search prices"

_EMPTY_MESSAGES: dict[ListingType, str] = {
    ListingType.SOLD: "No sold items data",
    ListingType.LISTED: "No active items found",
}
_FAILURE_MESSAGES: dict[ListingType, str] = {
    ListingType.SOLD: "Failed to fetch sold item prices",
    ListingType.LISTED: "Failed to fetch active listing prices",
}


class PriceAggregator:
    """Computes {lowest, median, highest} for a keyword query.

    Parameters
    ----------
    regions : Mapping[str, RegionConfig]
        Region table keyed by upper-case region code.
    active_source : ListingSource
        Source for ``listed`` queries.
    sold_source : ListingSource
        Source for ``sold`` queries.
    default_region : str
        Code used when a query's region is absent or unknown.
    strict_regions : bool
        Raise RegionError from ``resolve_region`` instead of falling back.
        The HTTP layer uses this to reject unknown codes up front;
        ``get_prices`` itself always falls back.
    image_source : ImageSource | None
        Source for image searches. Without one, image lookups answer with
        the missing-credentials result.
    """

    def __init__(
        self,
        regions: Mapping[str, RegionConfig],
        active_source: ListingSource,
        sold_source: ListingSource,
        default_region: str = DEFAULT_REGION_CODE,
        strict_regions: bool = False,
        image_source: ImageSource | None = None,
    ) -> None:
        if default_region not in regions:
            raise ValueError(f"default region {default_region!r} missing from region table")
        self._regions = regions
        self._sources: dict[ListingType, ListingSource] = {
            ListingType.LISTED: active_source,
            ListingType.SOLD: sold_source,
        }
        self._default_region = default_region
        self._strict = strict_regions
        self._image_source = image_source

    @property
    def regions(self) -> Mapping[str, RegionConfig]:
        return self._regions

    def credentials_status(self) -> dict[str, bool]:
        """Credential presence per listing type, for health reporting."""
        return {lt.value: src.has_credentials for lt, src in self._sources.items()}

    def resolve_region(self, code: str | None, *, strict: bool | None = None) -> RegionConfig:
        """Look up a region, falling back to the default for unknown codes.

        Raises:
            RegionError: The code is unknown and strict validation is on.
        """
        strict = self._strict if strict is None else strict
        if code is None:
            return self._regions[self._default_region]

        normalized = code.strip().upper()
        region = self._regions.get(normalized)
        if region is not None:
            return region

        if strict:
            raise RegionError(
                f"Unsupported region: {code!r}",
                context={"region": code, "supported": sorted(self._regions)},
            )
        logger.warning(
            "Unknown region %r, falling back to %s", code, self._default_region
        )
        return self._regions[self._default_region]

    async def get_prices(self, query: PriceQuery) -> PriceStats:
        """Fetch listings for the query and summarize their prices."""
        listing_type = query.listing_type
        if not query.search_term or listing_type is None:
            return PriceStats(listing_type=listing_type, message=MISSING_PARAMETERS)

        region = self.resolve_region(query.region, strict=False)
        source = self._sources[listing_type]

        if not source.has_credentials:
            logger.error(
                "%s credentials not set, skipping %s lookup for %r",
                source.name,
                listing_type.value,
                query.search_term,
            )
            return PriceStats(
                listing_type=listing_type,
                message=MISSING_CREDENTIALS,
                error=CONFIGURATION_ERROR,
            )

        try:
            listings = await source.fetch(query, region)
        except (UpstreamError, CredentialsError) as e:
            logger.error(
                "%s lookup failed for %r: %s (context=%s)",
                listing_type.value,
                query.search_term,
                e,
                e.context,
            )
            return PriceStats(
                listing_type=listing_type,
                error=_FAILURE_MESSAGES[listing_type],
                details=str(e),
            )

        stats = self._summarize(listings, listing_type, query.include_items)
        logger.info(
            "eBay %s prices for %r (%s): lowest=%s median=%s highest=%s%s",
            listing_type.value,
            query.search_term,
            region.code,
            stats.lowest,
            stats.median,
            stats.highest,
            f" [{stats.message}]" if stats.message else "",
        )
        return stats

    async def get_image_prices(
        self,
        image_base64: str,
        *,
        condition: Condition | None = None,
        region: str | None = None,
        include_items: bool = False,
    ) -> PriceStats:
        """Summarize prices of active listings that resemble an image."""
        if not image_base64:
            return PriceStats(listing_type=ListingType.LISTED, message=MISSING_PARAMETERS)

        source = self._image_source
        if source is None or not source.has_credentials:
            logger.error("Image search credentials not set, skipping image lookup")
            return PriceStats(
                listing_type=ListingType.LISTED,
                message=MISSING_CREDENTIALS,
                error=CONFIGURATION_ERROR,
            )

        resolved = self.resolve_region(region, strict=False)
        try:
            listings = await source.fetch(image_base64, resolved, condition)
        except (UpstreamError, CredentialsError) as e:
            logger.error("Image lookup failed: %s (context=%s)", e, e.context)
            return PriceStats(
                listing_type=ListingType.LISTED, error=IMAGE_FAILURE, details=str(e)
            )

        stats = self._summarize(
            listings, ListingType.LISTED, include_items, empty_message=NO_IMAGE_RESULTS
        )
        logger.info(
            "eBay image prices (%s): lowest=%s median=%s highest=%s",
            resolved.code,
            stats.lowest,
            stats.median,
            stats.highest,
        )
        return stats

    async def get_enhanced_prices(
        self, query: PriceQuery, image_base64: str | None = None
    ) -> EnhancedPrices:
        """Active-listing prices by keyword and, when given, by image.

        The keyword search always targets listed items whatever the query's
        listing type says.
        """
        text = await self.get_prices(query.model_copy(update={"listing_type": ListingType.LISTED}))
        image = None
        if image_base64:
            image = await self.get_image_prices(
                image_base64,
                condition=query.condition,
                region=query.region,
                include_items=query.include_items,
            )
        return EnhancedPrices(
            text_based=text, image_based=image, combined=combine_prices(text, image)
        )

    def _summarize(
        self,
        listings: list[Listing],
        listing_type: ListingType,
        include_items: bool,
        empty_message: str | None = None,
    ) -> PriceStats:
        if not listings:
            return PriceStats(
                listing_type=listing_type,
                message=empty_message or _EMPTY_MESSAGES[listing_type],
            )

        items = [listing.raw for listing in listings] if include_items else None
        prices = [listing.price for listing in listings if listing.price is not None]
        if not prices:
            return PriceStats(listing_type=listing_type, message=NO_VALID_PRICES, items=items)

        summary = summarize_prices(prices)
        return PriceStats(
            lowest=summary.lowest,
            median=summary.median,
            highest=summary.highest,
            listing_type=listing_type,
            items=items,
        )


def combine_prices(text: PriceStats | None, image: PriceStats | None) -> PriceStats:
    """Pick the figure to show when keyword and image results both exist.

    An image result wins unless all three of its numbers are zero.
    """
    if image is None:
        return text if text is not None else PriceStats()
    if text is None:
        return image
    if image.lowest == image.median == image.highest == 0:
        return text
    return image


def create_aggregator(config: CollectopediaConfig, client: httpx.AsyncClient) -> PriceAggregator:
    """Wire the eBay Browse, image search and sold-items sources from config.

    The HTTP client is shared by the token provider and all sources; the
    caller owns and closes it.
    """
    logger.info(
        "eBay app id: %s, cert id: %s, RapidAPI key: %s",
        "set" if config.ebay.app_id else "not set",
        "set" if config.ebay.cert_id else "not set",
        "set" if config.sold.api_key else "not set",
    )
    tokens = EbayTokenProvider(config.ebay, client)
    return PriceAggregator(
        regions=config.regions.table,
        active_source=EbayBrowseSource(config.ebay, tokens, client),
        sold_source=SoldItemsSource(config.sold, client),
        default_region=config.regions.default.upper(),
        strict_regions=config.regions.strict,
        image_source=EbayImageSearchSource(config.ebay, tokens, client),
    )
