"""Custom exception hierarchy for collectopedia."""

from typing import Any


class CollectopediaError(Exception):
    """Base exception for all collectopedia errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(CollectopediaError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field: str — the config field that failed validation
        value: Any — the invalid value (redacted for secrets)
    """


class CredentialsError(ConfigError):
    """An upstream credential (app id, cert id, API key) is not configured.

    Policy: the token provider raises this before any network call. The
    aggregator checks credential presence first, so callers normally see a
    zeroed PriceStats instead.

    Context keys:
        missing: list[str] — names of the absent credentials
    """


class UpstreamError(CollectopediaError):
    """An upstream marketplace call failed.

    Covers transport errors, non-2xx responses and malformed bodies.
    Policy: no retry. The aggregator converts it into a zeroed PriceStats
    carrying an `error` field.

    Context keys:
        source: str — "ebay_oauth", "ebay_browse" or "rapidapi_sold"
        url: str — the URL that was being fetched
        status_code: int | None — HTTP status if a response was received
    """


class RegionError(CollectopediaError):
    """Unknown region code while strict region validation is enabled.

    Context keys:
        region: str — the rejected code
        supported: list[str] — configured region codes
    """
