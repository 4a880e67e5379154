"""Listing source and adapter protocols shared by every price backend.

Architecture
------------
Price aggregation uses an adapter pattern to decouple marketplaces from the
statistics:

    Upstream API → ListingSource → ListingAdapter → list[Listing] → PriceAggregator

- **ListingSource** is what the aggregator talks to: it knows whether its
  credentials are configured and how to build and send the upstream
  request.

- **ListingAdapter** turns the upstream response body into ``Listing``
  records. Each record keeps the raw item verbatim next to the price the
  adapter extracted from its source-specific field path, so the aggregator
  only ever sees normalized numbers.

Adding a marketplace means writing one source and its adapter; the
aggregator does not change.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from collectopedia.core.models import Condition, Listing, PriceQuery, RegionConfig


@runtime_checkable
class ListingAdapter(Protocol):
    """Transforms a raw upstream response body into Listing records.

    Parameters
    ----------
    raw_data : Any
        The decoded JSON body from the upstream source. The adapter knows
        the expected shape.

    Returns
    -------
    list[Listing]
        One Listing per upstream item, in upstream order. Items without a
        usable price are kept with ``price=None``.
    """

    def adapt(self, raw_data: Any) -> list[Listing]: ...


@runtime_checkable
class ListingSource(Protocol):
    """Aggregator-facing interface for fetching listings from one upstream."""

    @property
    def name(self) -> str: ...

    @property
    def has_credentials(self) -> bool:
        """Whether the credentials this source needs are configured.

        Checked by the aggregator before any network call.
        """
        ...

    async def fetch(self, query: PriceQuery, region: RegionConfig) -> list[Listing]:
        """Fetch listings matching the query in the given region.

        Raises
        ------
        UpstreamError
            Transport failure, non-2xx response, or malformed body.
        """
        ...


@runtime_checkable
class ImageSource(Protocol):
    """Aggregator-facing interface for searching listings by picture."""

    @property
    def name(self) -> str: ...

    @property
    def has_credentials(self) -> bool: ...

    async def fetch(
        self,
        image_base64: str,
        region: RegionConfig,
        condition: Condition | None = None,
    ) -> list[Listing]: ...
