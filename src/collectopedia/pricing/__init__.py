"""Marketplace price aggregation.

Architecture
------------
Uses the adapter pattern to decouple listing sources from the statistics:

    Upstream API → ListingSource → ListingAdapter → list[Listing] → PriceAggregator

Key abstractions:

- ``Listing``: A raw upstream item plus its extracted price.
- ``ListingAdapter``: Turns an upstream response body into ``Listing`` records.
- ``ListingSource``: Credential check plus request/response for one upstream.
- ``PriceAggregator``: Dispatches by listing type and computes
  ``PriceStats``. Never raises for upstream or configuration failures.

Built-in implementations:

- ``EbayBrowseSource`` / ``EbayBrowseAdapter``: Active listings.
- ``EbayImageSearchSource``: Active listings that resemble a photo.
- ``SoldItemsSource`` / ``SoldItemsAdapter``: Sold listings via RapidAPI.
- ``EbayTokenProvider``: Client-credentials bearer tokens.
"""

from collectopedia.pricing.aggregator import PriceAggregator, combine_prices, create_aggregator
from collectopedia.pricing.browse import EbayBrowseAdapter, EbayBrowseSource, build_filter
from collectopedia.pricing.image import EbayImageSearchSource, build_image_filter
from collectopedia.pricing.provider import ImageSource, ListingAdapter, ListingSource
from collectopedia.pricing.sold import SoldItemsAdapter, SoldItemsSource, build_keywords
from collectopedia.pricing.stats import PriceSummary, parse_price, summarize_prices
from collectopedia.pricing.token import EbayTokenProvider

__all__ = [
    # Protocols
    "ImageSource",
    "ListingAdapter",
    "ListingSource",
    # Aggregation
    "PriceAggregator",
    "combine_prices",
    "create_aggregator",
    "PriceSummary",
    "parse_price",
    "summarize_prices",
    # eBay Browse
    "EbayBrowseAdapter",
    "EbayBrowseSource",
    "EbayTokenProvider",
    "build_filter",
    # eBay image search
    "EbayImageSearchSource",
    "build_image_filter",
    # Sold items
    "SoldItemsAdapter",
    "SoldItemsSource",
    "build_keywords",
]
