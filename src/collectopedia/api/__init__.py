"""REST API for price lookups and batch valuation refresh."""
