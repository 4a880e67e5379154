"""Batch valuation refresh over catalog items."""

from collectopedia.batch.refresh import BatchRefresher, order_by_staleness, round_price

__all__ = [
    "BatchRefresher",
    "order_by_staleness",
    "round_price",
]
