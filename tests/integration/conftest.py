"""Integration test fixtures: real components wired together, HTTP mocked with respx."""

from __future__ import annotations

import httpx
import pytest
import respx

from collectopedia.core.config import CollectopediaConfig

TOKEN_URL = "https://api.ebay.com/identity/v1/oauth2/token"
SEARCH_URL = "https://api.ebay.com/buy/browse/v1/item_summary/search"
IMAGE_URL = "https://api.ebay.com/buy/browse/v1/item_summary/search_by_image"
SOLD_URL = "https://ebay-average-selling-price.p.rapidapi.com/findCompletedItems"


def browse_payload(*values: str) -> dict:
    return {
        "total": len(values),
        "itemSummaries": [
            {"itemId": f"v1|{i}|0", "price": {"value": v, "currency": "GBP"}}
            for i, v in enumerate(values)
        ],
    }


def sold_payload(*values: object) -> dict:
    return {
        "success": True,
        "average_price": 242.0,
        "products": [{"title": f"lot {i}", "price": v} for i, v in enumerate(values)],
    }


@pytest.fixture
def upstream():
    """respx router with every upstream endpoint registered.

    Routes not exercised by a test are fine: the router does not assert
    that every route was called.
    """
    with respx.mock(assert_all_called=False) as router:
        router.post(TOKEN_URL, name="token").mock(
            return_value=httpx.Response(200, json={"access_token": "integration-token"})
        )
        router.get(SEARCH_URL, name="browse").mock(
            return_value=httpx.Response(200, json=browse_payload("20.00", "10.00", "40.00", "30.00"))
        )
        router.post(IMAGE_URL, name="image").mock(
            return_value=httpx.Response(200, json=browse_payload("70.00", "90.00", "80.00"))
        )
        router.post(SOLD_URL, name="sold").mock(
            return_value=httpx.Response(200, json=sold_payload("45", "50", "55", "60", "1000"))
        )
        yield router


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as c:
        yield c


@pytest.fixture
def no_credentials_config() -> CollectopediaConfig:
    return CollectopediaConfig()
