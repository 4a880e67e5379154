"""Price parsing and summary statistics."""

from __future__ import annotations

import math
from typing import NamedTuple, Sequence

import numpy as np


class PriceSummary(NamedTuple):
    """Lowest, median, and highest of a non-empty price set."""

    lowest: float
    median: float
    highest: float


def parse_price(value: object) -> float | None:
    """Extract a finite float from an upstream price field.

    Accepts numbers and numeric strings ("19.99", " 1,250.00 "). Returns
    None for missing values, booleans, non-numeric text, NaN and infinities.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if not math.isfinite(number):
        return None
    return number


def summarize_prices(prices: Sequence[float]) -> PriceSummary:
    """Compute lowest, median, and highest of a price set.

    The median is the statistical median: the middle value for an odd
    count, the mean of the two middle values for an even count.

    Raises:
        ValueError: If prices is empty.
    """
    if len(prices) == 0:
        raise ValueError("cannot summarize an empty price set")

    arr = np.sort(np.asarray(prices, dtype=float))
    mid = len(arr) // 2
    if len(arr) % 2:
        median = arr[mid]
    else:
        # Halve before adding so two prices near the float max stay finite.
        median = arr[mid - 1] / 2 + arr[mid] / 2
    return PriceSummary(
        lowest=float(arr[0]),
        median=float(median),
        highest=float(arr[-1]),
    )
