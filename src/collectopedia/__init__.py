"""Collectopedia price aggregation service."""

__version__ = "0.3.0"
