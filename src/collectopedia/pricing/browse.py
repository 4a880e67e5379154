"""eBay Browse API source: currently active listings.

Authorizes each search with a fresh client-credentials token and scopes it
to a region through the marketplace header and a delivery/location filter.
A condition, when given, becomes a structured ``conditions:`` filter clause;
the search keywords are sent untouched.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from collectopedia.core.config import EbayConfig
from collectopedia.core.exceptions import UpstreamError
from collectopedia.core.models import Condition, Listing, PriceQuery, RegionConfig
from collectopedia.pricing.stats import parse_price
from collectopedia.pricing.token import EbayTokenProvider

logger = logging.getLogger(__name__)

_MARKETPLACE_HEADER = "X-EBAY-C-MARKETPLACE-ID"


def build_filter(region: RegionConfig, condition: Condition | None = None) -> str:
    """Build the Browse API ``filter`` parameter for a region and condition."""
    clauses = [
        f"deliveryCountry:{region.delivery_country}",
        f"itemLocationCountry:{region.location_country}",
    ]
    if condition is not None:
        clauses.append(f"conditions:{condition.value.upper()}")
    return ",".join(clauses)


class EbayBrowseAdapter:
    """Transforms an ``item_summary/search`` response into Listing records.

    Prices live at ``itemSummaries[].price.value`` as decimal strings.
    """

    def adapt(self, raw_data: Any) -> list[Listing]:
        if not isinstance(raw_data, dict):
            return []
        items = raw_data.get("itemSummaries") or []

        listings: list[Listing] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            price_field = item.get("price")
            value = price_field.get("value") if isinstance(price_field, dict) else None
            listings.append(Listing(price=parse_price(value), raw=item))
        return listings


class EbayBrowseSource:
    """Fetches active listings from the eBay Browse API.

    Parameters
    ----------
    config : EbayConfig
        Browse URL and result limit.
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
        return "ebay_browse"

    @property
    def has_credentials(self) -> bool:
        return self._tokens.has_credentials

    def build_params(self, query: PriceQuery, region: RegionConfig) -> dict[str, str | int]:
        return {
            "q": query.search_term,
            "sort": "price",
            "limit": self._config.result_limit,
            "filter": build_filter(region, query.condition),
        }

    async def fetch(self, query: PriceQuery, region: RegionConfig) -> list[Listing]:
        """Search active listings for the query in the given region.

        Raises:
            UpstreamError: Token request or search failed.
        """
        token = await self._tokens.get_token()
        url = self._config.browse_url
        params = self.build_params(query, region)
        logger.debug("eBay Browse request: %s %s", url, params)

        data = await call_browse_api(
            self._client,
            "GET",
            url,
            source=self.name,
            label="eBay Browse",
            subject=query.search_term,
            params=params,
            headers=browse_headers(token, region),
        )
        listings = self._adapter.adapt(data)
        logger.debug(
            "eBay Browse returned %d items (total=%s) for %r",
            len(listings),
            data.get("total"),
            query.search_term,
        )
        return listings


def browse_headers(token: str, region: RegionConfig) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        _MARKETPLACE_HEADER: region.marketplace_id,
    }


async def call_browse_api(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    source: str,
    label: str,
    subject: str,
    **kwargs: Any,
) -> dict[str, Any]:
    """Send one Browse API request and decode its JSON object body.

    ``label`` prefixes log lines and error messages; ``subject`` names what
    was searched for in the logs.

    Raises:
        UpstreamError: Transport failure, non-2xx status, or a body that is
            not a JSON object.
    """
    try:
        response = await client.request(method, url, **kwargs)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.error(
            "%s HTTP error for %r: %s %s",
            label,
            subject,
            e.response.status_code,
            e.response.text[:200],
        )
        raise UpstreamError(
            f"{label} API returned HTTP {e.response.status_code}",
            context={"source": source, "url": url, "status_code": e.response.status_code},
        ) from e
    except httpx.RequestError as e:
        logger.error("%s request error for %r: %s", label, subject, e)
        raise UpstreamError(
            f"{label} request failed: {e}",
            context={"source": source, "url": url, "status_code": None},
        ) from e
    except ValueError as e:
        raise UpstreamError(
            f"{label} response was not valid JSON",
            context={"source": source, "url": url, "status_code": response.status_code},
        ) from e

    if not isinstance(data, dict):
        raise UpstreamError(
            f"{label} response must be an object, got {type(data).__name__}",
            context={"source": source, "url": url, "status_code": response.status_code},
        )
    return data
