"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from collectopedia.core.exceptions import ConfigError
from collectopedia.core.models import DEFAULT_REGION_CODE, DEFAULT_REGIONS, RegionConfig

# Bare variable names used by earlier deployments, mapped to config paths.
_LEGACY_ENV_VARS: dict[str, tuple[str, ...]] = {
    "EBAY_APP_ID": ("ebay", "app_id"),
    "EBAY_CERT_ID": ("ebay", "cert_id"),
    "RAPIDAPI_KEY": ("sold", "api_key"),
}


class EbayConfig(BaseModel):
    """eBay OAuth and Browse API access configuration."""

    model_config = ConfigDict(frozen=True)

    app_id: str | None = None
    cert_id: str | None = None
    token_url: str = "https://api.ebay.com/identity/v1/oauth2/token"
    scope: str = "https://api.ebay.com/oauth/api_scope"
    browse_url: str = "https://api.ebay.com/buy/browse/v1/item_summary/search"
    image_search_url: str = "https://api.ebay.com/buy/browse/v1/item_summary/search_by_image"
    result_limit: int = 100

    @field_validator("result_limit")
    @classmethod
    def limit_within_browse_policy(cls, v: int) -> int:
        if v < 1 or v > 200:
            raise ValueError("result_limit must be between 1 and 200 (Browse API limit)")
        return v

    @property
    def has_credentials(self) -> bool:
        return bool(self.app_id and self.cert_id)


class SoldListingsConfig(BaseModel):
    """RapidAPI completed-items aggregator configuration."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    host: str = "ebay-average-selling-price.p.rapidapi.com"
    url: str = "https://ebay-average-selling-price.p.rapidapi.com/findCompletedItems"
    category_id: str = "9355"
    max_search_results: str = "100"
    remove_outliers: bool = True

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)


class RegionsConfig(BaseModel):
    """Region table and fallback policy."""

    model_config = ConfigDict(frozen=True)

    default: str = DEFAULT_REGION_CODE
    strict: bool = False
    table: Mapping[str, RegionConfig] = Field(
        default_factory=lambda: dict(DEFAULT_REGIONS), validate_default=True
    )

    @field_validator("table", mode="after")
    @classmethod
    def freeze_table(cls, v: Mapping[str, RegionConfig]) -> Mapping[str, RegionConfig]:
        return MappingProxyType({code.upper(): region for code, region in v.items()})

    @model_validator(mode="after")
    def default_must_exist(self) -> RegionsConfig:
        if self.default.upper() not in self.table:
            raise ValueError(
                f"default region {self.default!r} is not in the region table"
            )
        return self


class HttpConfig(BaseModel):
    """Outbound HTTP client settings."""

    model_config = ConfigDict(frozen=True)

    request_timeout: float = 30.0

    @field_validator("request_timeout")
    @classmethod
    def timeout_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("request_timeout must be > 0")
        return v


class RateLimitConfig(BaseModel):
    """Ingress sliding-window limiter for the price endpoints."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    max_requests: int = 30
    window_seconds: float = 60.0
    # Honour X-Forwarded-For only behind a proxy that overwrites it.
    trust_forwarded: bool = False

    @field_validator("max_requests")
    @classmethod
    def max_requests_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_requests must be >= 1")
        return v

    @field_validator("window_seconds")
    @classmethod
    def window_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("window_seconds must be > 0")
        return v


class RefreshConfig(BaseModel):
    """Batch refresh loop settings."""

    model_config = ConfigDict(frozen=True)

    batch_size: int = 10
    item_timeout: float = 30.0
    requests_per_second: float = 2.0

    @field_validator("batch_size")
    @classmethod
    def batch_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("batch_size must be >= 1")
        return v

    @field_validator("item_timeout", "requests_per_second")
    @classmethod
    def strictly_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be > 0")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class CollectopediaConfig(BaseModel):
    """Root configuration for the price service."""

    model_config = ConfigDict(frozen=True)

    ebay: EbayConfig = Field(default_factory=EbayConfig)
    sold: SoldListingsConfig = Field(default_factory=SoldListingsConfig)
    regions: RegionsConfig = Field(default_factory=RegionsConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    refresh: RefreshConfig = Field(default_factory=RefreshConfig)
    api: APIConfig = Field(default_factory=APIConfig)


# Leaf keys whose values are identifiers, never numbers or booleans.
_VERBATIM_KEYS = frozenset({"app_id", "cert_id", "api_key", "site_id", "category_id"})

DEFAULT_CONFIG_FILE = "collectopedia.yml"
CONFIG_PATH_ENV = "COLLECTOPEDIA_CONFIG"


def load_config(
    config_path: str | None = None,
    env_prefix: str = "COLLECTOPEDIA_",
) -> CollectopediaConfig:
    """Build the service configuration from layered sources.

    Later layers win:
    1. Built-in defaults
    2. YAML file (``config_path``, else ``$COLLECTOPEDIA_CONFIG``, else
       ``./collectopedia.yml`` when present)
    3. Bare credential variables: EBAY_APP_ID, EBAY_CERT_ID, RAPIDAPI_KEY
    4. Prefixed variables, ``__`` separating sections:
       COLLECTOPEDIA_REFRESH__BATCH_SIZE=5 sets refresh.batch_size

    Raises:
        ConfigError: Missing or unreadable file, or values that fail
            validation.
    """
    path = _find_config_file(config_path)
    data = _read_yaml_mapping(path) if path is not None else {}

    for var, keys in _LEGACY_ENV_VARS.items():
        if os.environ.get(var):
            _set_nested(data, list(keys), os.environ[var])
    data = _merge_env_vars(data, env_prefix)

    try:
        return CollectopediaConfig.model_validate(data)
    except ValueError as e:
        raise ConfigError(
            f"Invalid configuration: {e}",
            context={"field": "config", "value": str(path) if path else None},
        ) from e


def _find_config_file(explicit: str | None) -> Path | None:
    """First configured file location; an explicitly named file must exist."""
    for field, candidate in (
        ("config_path", explicit),
        (CONFIG_PATH_ENV, os.environ.get(CONFIG_PATH_ENV)),
    ):
        if not candidate:
            continue
        path = Path(candidate)
        if not path.is_file():
            raise ConfigError(
                f"Config file not found: {candidate}",
                context={"field": field, "value": candidate},
            )
        return path

    default = Path(DEFAULT_CONFIG_FILE)
    return default if default.is_file() else None


def _read_yaml_mapping(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config {path}: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"YAML config must be a mapping, got {type(data).__name__}",
            context={"field": "config_file", "value": str(path)},
        )
    return data


def _prefixed_env_items(prefix: str) -> list[tuple[list[str], str]]:
    """(key path, raw value) for every ``<prefix>SECTION__KEY`` variable."""
    items = []
    for name, value in os.environ.items():
        if not name.startswith(prefix):
            continue
        keys = name[len(prefix) :].lower().split("__")
        if keys == ["config"]:
            continue
        items.append((keys, value))
    return items


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Copy of base with the prefixed environment variables applied."""
    merged = dict(base)
    for keys, raw in _prefixed_env_items(prefix):
        _set_nested(merged, keys, raw if keys[-1] in _VERBATIM_KEYS else _auto_cast(raw))
    return merged


def _set_nested(target: dict, keys: list[str], value: object) -> None:
    """Assign value at a nested key path, copying intermediate dicts."""
    *parents, leaf = keys
    for key in parents:
        child = target.get(key)
        target[key] = child = dict(child) if isinstance(child, dict) else {}
        target = child
    target[leaf] = value


def _auto_cast(value: str) -> str | int | float | bool:
    """Interpret an environment string as bool, int or float where it reads as one."""
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for cast in (int, float):
        try:
            return cast(value)
        except ValueError:
            continue
    return value
