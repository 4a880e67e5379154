"""eBay Browse image search: active listings that look like a photo.

``item_summary/search_by_image`` takes the picture as base64 in a JSON body
and answers with the same ``itemSummaries`` shape as a keyword search, so
prices are read by the Browse adapter.
"""

from __future__ import annotations

import logging

import httpx

from collectopedia.core.config import EbayConfig
from collectopedia.core.models import Condition, Listing, RegionConfig
from collectopedia.pricing.browse import EbayBrowseAdapter, browse_headers, call_browse_api
from collectopedia.pricing.token import EbayTokenProvider

logger = logging.getLogger(__name__)


def build_image_filter(condition: Condition | None) -> str | None:
    """Image search ``filter`` value; image matches are not region filtered."""
    if condition is None:
        return None
    return f"conditions:{{{condition.value.upper()}}}"


class EbayImageSearchSource:
    """Fetches active listings matching an image.

    Parameters
    ----------
    config : EbayConfig
        Image search URL and result limit.
    token_provider : EbayTokenProvider
        Supplies the bearer token for each search.
    client : httpx.AsyncClient
        Shared HTTP client. Owned by the caller.
    adapter : EbayBrowseAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        config: EbayConfig,
        token_provider: EbayTokenProvider,
        client: httpx.AsyncClient,
        adapter: EbayBrowseAdapter | None = None,
    ) -> None:
        self._config = config
        self._tokens = token_provider
        self._client = client
        self._adapter = adapter or EbayBrowseAdapter()

    @property
    def name(self) -> str:
        return "ebay_image_search"

    @property
    def has_credentials(self) -> bool:
        return self._tokens.has_credentials

    def build_params(self, condition: Condition | None) -> dict[str, str | int]:
        params: dict[str, str | int] = {"limit": self._config.result_limit}
        image_filter = build_image_filter(condition)
        if image_filter is not None:
            params["filter"] = image_filter
        return params

    async def fetch(
        self,
        image_base64: str,
        region: RegionConfig,
        condition: Condition | None = None,
    ) -> list[Listing]:
        """Search active listings resembling the base64-encoded image.

        Raises:
            UpstreamError: Token request or search failed.
        """
        token = await self._tokens.get_token()
        url = self._config.image_search_url
        params = self.build_params(condition)
        logger.debug(
            "eBay image search request: %s %s (%d base64 chars)", url, params, len(image_base64)
        )

        data = await call_browse_api(
            self._client,
            "POST",
            url,
            source=self.name,
            label="eBay image search",
            subject=f"image in {region.code}",
            params=params,
            headers=browse_headers(token, region),
            json={"image": image_base64},
        )
        listings = self._adapter.adapt(data)
        logger.debug(
            "eBay image search returned %d items (total=%s)", len(listings), data.get("total")
        )
        return listings
