"""Foundation types, config, and exceptions."""

from collectopedia.core.config import (
    APIConfig,
    CollectopediaConfig,
    EbayConfig,
    HttpConfig,
    RateLimitConfig,
    RefreshConfig,
    RegionsConfig,
    SoldListingsConfig,
    load_config,
)
from collectopedia.core.exceptions import (
    CollectopediaError,
    ConfigError,
    CredentialsError,
    RegionError,
    UpstreamError,
)
from collectopedia.core.models import (
    DEFAULT_REGION_CODE,
    DEFAULT_REGIONS,
    BatchResult,
    CatalogItem,
    Condition,
    EnhancedPrices,
    ItemId,
    ItemValuation,
    Listing,
    ListingType,
    PriceQuery,
    PriceStats,
    RawListing,
    RegionCode,
    RegionConfig,
)

__all__ = [
    # Type aliases
    "ItemId",
    "RawListing",
    # Enums
    "ListingType",
    "Condition",
    "RegionCode",
    # Region models
    "RegionConfig",
    "DEFAULT_REGIONS",
    "DEFAULT_REGION_CODE",
    # Pricing models
    "PriceQuery",
    "Listing",
    "PriceStats",
    "EnhancedPrices",
    # Batch models
    "CatalogItem",
    "ItemValuation",
    "BatchResult",
    # Config
    "CollectopediaConfig",
    "EbayConfig",
    "SoldListingsConfig",
    "RegionsConfig",
    "HttpConfig",
    "RateLimitConfig",
    "RefreshConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "CollectopediaError",
    "ConfigError",
    "CredentialsError",
    "UpstreamError",
    "RegionError",
]
