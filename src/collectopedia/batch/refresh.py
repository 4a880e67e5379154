"""Sequential batch refresh of catalog item valuations.

Walks unsold catalog items in offset/limit batches, asks the aggregator for
each item's median price, and rounds it to whole currency units. Persisting
the valuations is the caller's job.
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Sequence

from aiolimiter import AsyncLimiter

from collectopedia.core.config import RefreshConfig
from collectopedia.core.models import (
    BatchResult,
    CatalogItem,
    ItemValuation,
    ListingType,
    PriceQuery,
)
from collectopedia.pricing.aggregator import PriceAggregator

logger = logging.getLogger(__name__)


def round_price(value: float) -> int:
    """Round half-up to the nearest whole currency unit."""
    return int(math.floor(value + 0.5))


_NEVER = datetime.min.replace(tzinfo=timezone.utc)


def order_by_staleness(items: Sequence[CatalogItem]) -> list[CatalogItem]:
    """Never-refreshed items first, then oldest ``last_updated`` first."""
    return sorted(
        items,
        key=lambda i: (i.last_updated is not None, i.last_updated or _NEVER),
    )


class BatchRefresher:
    """Refreshes item valuations one aggregator call at a time.

    Each call is bounded by ``config.item_timeout``; a timed-out item counts
    as a failure and the loop moves on. Calls are paced at
    ``config.requests_per_second`` to stay clear of upstream quotas.
    """

    def __init__(self, aggregator: PriceAggregator, config: RefreshConfig) -> None:
        self._aggregator = aggregator
        self._config = config
        self._limiter = AsyncLimiter(max_rate=1, time_period=1.0 / config.requests_per_second)

    async def refresh_batch(
        self,
        items: Sequence[CatalogItem],
        offset: int = 0,
        batch_size: int | None = None,
        listing_type: ListingType = ListingType.LISTED,
        region: str | None = None,
    ) -> BatchResult:
        """Refresh one slice of unsold items starting at ``offset``."""
        if offset < 0:
            raise ValueError(f"offset must be >= 0, got {offset}")
        size = batch_size or self._config.batch_size

        unsold = [item for item in items if not item.is_sold]
        batch = unsold[offset : offset + size]
        next_offset = offset + len(batch)
        result = BatchResult(
            total_processed=len(batch),
            remaining_items=max(0, len(unsold) - next_offset),
            next_offset=next_offset,
            total_items=len(unsold),
        )
        logger.info(
            "Refreshing %d items (offset %d, batch size %d, %d unsold in total)",
            len(batch), offset, size, len(unsold),
        )

        for item in batch:
            reason = await self._refresh_item(item, listing_type, region, result)
            if reason is not None:
                result.failed_updates += 1
                result.failures[item.id] = reason
                logger.info("No valuation for item %s (%r): %s", item.id, item.name, reason)

        logger.info(result.summary)
        return result

    async def refresh_all(
        self,
        items: Sequence[CatalogItem],
        batch_size: int | None = None,
        listing_type: ListingType = ListingType.LISTED,
        region: str | None = None,
    ) -> BatchResult:
        """Run batches from offset 0 until no unsold items remain."""
        merged = BatchResult()
        offset = 0
        while True:
            batch = await self.refresh_batch(
                items, offset=offset, batch_size=batch_size,
                listing_type=listing_type, region=region,
            )
            merged.total_processed += batch.total_processed
            merged.successful_updates += batch.successful_updates
            merged.failed_updates += batch.failed_updates
            merged.total_value += batch.total_value
            merged.updates.extend(batch.updates)
            merged.failures.update(batch.failures)
            merged.total_items = batch.total_items
            merged.next_offset = batch.next_offset
            merged.remaining_items = batch.remaining_items
            if batch.remaining_items == 0 or batch.total_processed == 0:
                return merged
            offset = batch.next_offset

    async def _refresh_item(
        self,
        item: CatalogItem,
        listing_type: ListingType,
        region: str | None,
        result: BatchResult,
    ) -> str | None:
        """Value one item into ``result``; return a failure reason or None."""
        if not item.name.strip():
            return "Missing item name"

        query = PriceQuery(
            search_term=item.name,
            listing_type=listing_type,
            condition=item.condition,
            region=region,
        )
        async with self._limiter:
            try:
                stats = await asyncio.wait_for(
                    self._aggregator.get_prices(query),
                    timeout=self._config.item_timeout,
                )
            except TimeoutError:
                logger.warning(
                    "Price lookup for item %s timed out after %ss",
                    item.id, self._config.item_timeout,
                )
                return "Timed out"

        if stats.error:
            return stats.error
        if stats.median <= 0:
            return stats.message or "No valid median price found"

        value = round_price(stats.median)
        result.updates.append(
            ItemValuation(
                item_id=item.id,
                name=item.name,
                value=value,
                lowest=stats.lowest,
                highest=stats.highest,
            )
        )
        result.successful_updates += 1
        result.total_value += value
        logger.debug("Item %s (%r) valued at %d", item.id, item.name, value)
        return None
