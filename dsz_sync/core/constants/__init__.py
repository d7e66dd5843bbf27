"""
Constants package — re-exports from domain-specific modules.

Centralized business constants for DSZ Sync.

Usage:
    from dsz_sync.core.constants.pricing import GST_FACTOR
    from dsz_sync.core.constants.sync import MAX_SKUS_PER_API_CALL
    # or import the modules:
    from dsz_sync.core.constants import pricing, sync
Version: 1.0.0
"""

from dsz_sync.core.constants import pricing, sync
from dsz_sync.core.constants.pricing import (
    GST_FACTOR,
    PRICE_EPSILON,
)
from dsz_sync.core.constants.sync import (
    MAX_SKUS_PER_API_CALL,
    MAX_PRODUCTS_PER_PAGE,
    MAX_STOCK_PER_PAGE,
    TOKEN_BUFFER_SECONDS,
    STUCK_THRESHOLD_MINUTES,
    STALE_LOCK_SECONDS,
)

__all__ = [
    "pricing",
    "sync",
    "GST_FACTOR",
    "PRICE_EPSILON",
    "MAX_SKUS_PER_API_CALL",
    "MAX_PRODUCTS_PER_PAGE",
    "MAX_STOCK_PER_PAGE",
    "TOKEN_BUFFER_SECONDS",
    "STUCK_THRESHOLD_MINUTES",
    "STALE_LOCK_SECONDS",
]
