"""
State schemas — persisted singletons for sync runs, tokens, and imports.

Persisted state models.

Timestamps are Unix epoch seconds (float) so they survive the JSON
round-trip through the settings store unchanged.
Version: 1.0.0
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncState(BaseModel):
    """Batch sync coordinator state."""
    model_config = ConfigDict(extra="ignore")

    in_progress: bool = False
    current_offset: int = Field(default=0, ge=0)
    batch_size: int = Field(default=100, ge=1)
    products_updated: int = 0
    errors_count: int = 0
    total_products: int = 0
    last_sync: Optional[float] = None
    last_batch_time: Optional[float] = None
    frequency: Literal["hourly", "twicedaily", "daily"] = "hourly"
    last_products_updated: int = 0
    last_errors_count: int = 0
    last_error: Optional[str] = None
    run_id: Optional[str] = None


class AuthToken(BaseModel):
    """Supplier bearer token and its expiry."""
    value: str
    expiry: float


class Mapping(BaseModel):
    """Join record between a local catalog entry and a supplier SKU."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    local_id: int
    supplier_sku: str
    supplier_name: str = ""
    last_synced: Optional[str] = None
    sync_enabled: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ImportSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    default_status: Literal["publish", "draft", "pending", "private"] = "publish"


class ResyncOptions(BaseModel):
    """Which parts of a local product a resync refreshes."""
    update_title: bool = False
    update_description: bool = True
    update_price: bool = True
    update_stock: bool = True
    update_categories: bool = True
    update_images: bool = True


class AutoImportSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = False
    frequency: Literal["hourly", "twicedaily", "daily"] = "daily"
    max_products_per_run: int = Field(default=50, ge=1, le=200)
    min_stock_qty: int = Field(default=10, ge=0)
    filter_new_arrival: bool = False
    filter_in_stock: bool = False
    filter_free_shipping: bool = False
    filter_category_ids: List[int] = Field(default_factory=list)
    default_product_status: Literal["publish", "draft", "pending"] = "publish"


class AutoImportState(BaseModel):
    model_config = ConfigDict(extra="ignore")

    in_progress: bool = False
    last_update: Optional[float] = None
    started_at: Optional[float] = None
    current_sku: Optional[str] = None
    imported_count: int = 0
    last_completed: Optional[float] = None
    last_results: Optional[Dict[str, Any]] = None
    run_id: Optional[str] = None


class ImportHistoryEntry(BaseModel):
    timestamp: float
    imported: int = 0
    skipped: int = 0
    errors: int = 0
    status: str = "unknown"
