"""RapidAPI completed-items source: sold listings.

The sold-items aggregator has no structured condition filter, so a
condition is appended to the search keywords instead. Outlier removal is
requested from the upstream; its own average is logged but never used as
the median.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from collectopedia.core.config import SoldListingsConfig
from collectopedia.core.exceptions import UpstreamError
from collectopedia.core.models import Listing, PriceQuery, RegionConfig
from collectopedia.pricing.stats import parse_price

logger = logging.getLogger(__name__)


def build_keywords(query: PriceQuery) -> str:
    """Search term plus the condition as a trailing keyword, if any."""
    if query.condition is None:
        return query.search_term
    return f"{query.search_term} {query.condition.value}"


class SoldItemsAdapter:
    """Transforms a ``findCompletedItems`` response into Listing records.

    Items live under ``products``; each carries a flat ``price`` (string or
    number), with ``sale_price`` used when ``price`` is absent.
    """

    def adapt(self, raw_data: Any) -> list[Listing]:
        if not isinstance(raw_data, dict):
            return []
        items = raw_data.get("products") or []

        listings: list[Listing] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            value = item.get("price")
            if value is None:
                value = item.get("sale_price")
            listings.append(Listing(price=parse_price(value), raw=item))
        return listings


class SoldItemsSource:
    """Fetches completed (sold) listings from the RapidAPI aggregator.

    Parameters
    ----------
    config : SoldListingsConfig
        API key, host, URL and fixed search constraints.
    client : httpx.AsyncClient
        Shared HTTP client. Owned by the caller.
    adapter : SoldItemsAdapter | None
        Custom adapter instance. Uses default if None.
    """

    def __init__(
        self,
        config: SoldListingsConfig,
        client: httpx.AsyncClient,
        adapter: SoldItemsAdapter | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._adapter = adapter or SoldItemsAdapter()

    @property
    def name(self) -> str:
        return "rapidapi_sold"

    @property
    def has_credentials(self) -> bool:
        return self._config.has_credentials

    def build_body(self, query: PriceQuery, region: RegionConfig) -> dict[str, Any]:
        return {
            "keywords": build_keywords(query),
            "excluded_keywords": "",
            "max_search_results": self._config.max_search_results,
            "category_id": self._config.category_id,
            "remove_outliers": self._config.remove_outliers,
            "site_id": region.site_id,
            "aspects": [],
        }

    async def fetch(self, query: PriceQuery, region: RegionConfig) -> list[Listing]:
        """Search sold listings for the query in the given region.

        Raises:
            UpstreamError: Transport failure, non-2xx status, or a body that
                is not a JSON object.
        """
        url = self._config.url
        body = self.build_body(query, region)
        logger.debug("Sold items request: %s %s", url, body)

        try:
            response = await self._client.post(
                url,
                json=body,
                headers={
                    "x-rapidapi-host": self._config.host,
                    "x-rapidapi-key": self._config.api_key or "",
                },
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Sold items HTTP error for %r: %s %s",
                body["keywords"],
                e.response.status_code,
                e.response.text[:200],
            )
            raise UpstreamError(
                f"Sold items API returned HTTP {e.response.status_code}",
                context={
                    "source": self.name,
                    "url": url,
                    "status_code": e.response.status_code,
                },
            ) from e
        except httpx.RequestError as e:
            logger.error("Sold items request error for %r: %s", body["keywords"], e)
            raise UpstreamError(
                f"Sold items request failed: {e}",
                context={"source": self.name, "url": url, "status_code": None},
            ) from e
        except ValueError as e:
            raise UpstreamError(
                "Sold items response was not valid JSON",
                context={"source": self.name, "url": url, "status_code": response.status_code},
            ) from e

        if not isinstance(data, dict):
            raise UpstreamError(
                f"Sold items response must be an object, got {type(data).__name__}",
                context={"source": self.name, "url": url, "status_code": response.status_code},
            )

        listings = self._adapter.adapt(data)
        logger.debug(
            "Sold items returned %d products (upstream average=%s) for %r",
            len(listings),
            data.get("average_price"),
            body["keywords"],
        )
        return listings
