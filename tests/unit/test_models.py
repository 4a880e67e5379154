"""Tests for collectopedia.core.models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from collectopedia.core.models import (
    DEFAULT_REGION_CODE,
    DEFAULT_REGIONS,
    BatchResult,
    CatalogItem,
    Condition,
    EnhancedPrices,
    ItemValuation,
    Listing,
    ListingType,
    PriceQuery,
    PriceStats,
    RegionConfig,
)


class TestEnums:
    def test_listing_type_values(self):
        assert ListingType("listed") is ListingType.LISTED
        assert ListingType("sold") is ListingType.SOLD

    def test_condition_values(self):
        assert [c.value for c in Condition] == ["New", "Used"]

    def test_invalid_listing_type(self):
        with pytest.raises(ValueError):
            ListingType("auction")


class TestRegionConfig:
    def test_default_table(self):
        assert DEFAULT_REGION_CODE == "UK"
        uk, us = DEFAULT_REGIONS["UK"], DEFAULT_REGIONS["US"]
        assert (uk.marketplace_id, uk.location_country, uk.site_id) == ("EBAY-GB", "GB", "3")
        assert (us.marketplace_id, us.location_country, us.site_id) == ("EBAY-US", "US", "0")
        assert uk.currency_symbol == "£"
        assert us.currency_code == "USD"

    def test_default_table_is_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_REGIONS["FR"] = DEFAULT_REGIONS["UK"]

    def test_country_must_be_alpha2(self):
        with pytest.raises(ValidationError, match="ISO alpha-2"):
            RegionConfig(
                code="XX",
                marketplace_id="EBAY-XX",
                location_country="GBR",
                delivery_country="GB",
                site_id="3",
                currency_code="GBP",
                currency_symbol="£",
                label="Bad",
            )

    def test_frozen(self):
        with pytest.raises(ValidationError):
            DEFAULT_REGIONS["UK"].site_id = "0"


class TestPriceQuery:
    def test_defaults(self):
        q = PriceQuery()
        assert q.search_term == ""
        assert q.listing_type is None
        assert q.include_items is False

    def test_term_stripped(self):
        assert PriceQuery(search_term="  Optimus  ").search_term == "Optimus"

    @pytest.mark.parametrize("raw, expected", [("uk", "UK"), (" us ", "US"), ("", None), (None, None)])
    def test_region_normalized(self, raw, expected):
        assert PriceQuery(region=raw).region == expected

    def test_invalid_condition(self):
        with pytest.raises(ValidationError):
            PriceQuery(condition="Mint")


class TestPriceStats:
    def test_zeroed_default(self):
        stats = PriceStats(message="No active items found")
        assert (stats.lowest, stats.median, stats.highest) == (0, 0, 0)
        assert stats.has_prices is False

    def test_ordering_enforced(self):
        with pytest.raises(ValidationError, match="lowest <= median <= highest"):
            PriceStats(lowest=10, median=5, highest=20)

    def test_to_response_omits_absent_keys(self):
        stats = PriceStats(lowest=1, median=2, highest=3, listing_type=ListingType.SOLD)
        assert stats.to_response() == {
            "lowest": 1.0,
            "median": 2.0,
            "highest": 3.0,
            "listingType": "sold",
        }

    def test_to_response_with_error(self):
        stats = PriceStats(
            listing_type=ListingType.LISTED,
            error="Failed to fetch active listing prices",
            details="timeout",
        )
        data = stats.to_response()
        assert data["error"] == "Failed to fetch active listing prices"
        assert data["details"] == "timeout"
        assert "items" not in data
        assert "message" not in data

    def test_to_response_keeps_empty_items(self):
        stats = PriceStats(items=[])
        assert stats.to_response()["items"] == []

    def test_to_response_without_listing_type(self):
        data = PriceStats(message="Missing required parameters").to_response()
        assert "listingType" not in data
        assert data == {
            "lowest": 0.0,
            "median": 0.0,
            "highest": 0.0,
            "message": "Missing required parameters",
        }


class TestEnhancedPrices:
    def test_to_response_without_image(self):
        text = PriceStats(lowest=1, median=2, highest=3, listing_type=ListingType.LISTED)
        data = EnhancedPrices(text_based=text, combined=text).to_response()
        assert set(data) == {"textBased", "combined"}
        assert data["combined"]["median"] == 2.0

    def test_to_response_with_image(self):
        text = PriceStats(lowest=1, median=2, highest=3)
        image = PriceStats(lowest=4, median=5, highest=6)
        data = EnhancedPrices(text_based=text, image_based=image, combined=image).to_response()
        assert data["imageBased"] == {"lowest": 4.0, "median": 5.0, "highest": 6.0}


class TestListing:
    def test_defaults(self):
        listing = Listing()
        assert listing.price is None
        assert listing.raw == {}


class TestCatalogItem:
    def test_aliases(self):
        item = CatalogItem.model_validate(
            {
                "id": "42",
                "name": "Optimus Prime",
                "condition": "Used",
                "isSold": True,
                "ebayLastUpdated": "2025-03-01T12:00:00Z",
            }
        )
        assert item.is_sold is True
        assert item.condition == Condition.USED
        assert isinstance(item.last_updated, datetime)

    def test_field_names_accepted(self):
        item = CatalogItem(id="1", is_sold=True)
        assert item.is_sold is True
        assert item.name == ""

    def test_naive_timestamp_taken_as_utc(self):
        item = CatalogItem(id="1", last_updated=datetime(2025, 3, 1, 12, 0))
        assert item.last_updated == datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_offset_timestamp_converted_to_utc(self):
        item = CatalogItem.model_validate(
            {"id": "1", "ebayLastUpdated": "2025-03-01T14:00:00+02:00"}
        )
        assert item.last_updated.utcoffset() == timedelta(0)
        assert item.last_updated.hour == 12


class TestBatchResult:
    def test_summary(self):
        result = BatchResult(total_processed=3, successful_updates=2, failed_updates=1)
        assert result.summary == "Processed 3 items: 2 updated, 1 failed"

    def test_mutable_accumulators(self):
        result = BatchResult()
        result.updates.append(
            ItemValuation(item_id="1", name="x", value=10, lowest=5, highest=15)
        )
        result.failures["2"] = "Timed out"
        assert len(result.updates) == 1
        assert BatchResult().updates == []
