"""
Rule schemas — price and stock rule sets.

Business rule models.

Both rule sets are global singletons persisted in the settings store and
loaded into engine instances; unknown keys in stored data are ignored.
Version: 1.0.0
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class PriceRuleSet(BaseModel):
    """Supplier cost -> retail price transformation rules."""
    model_config = ConfigDict(extra="ignore")

    markup_type: Literal["percentage", "fixed"] = "percentage"
    markup_value: float = Field(default=30, ge=0)
    rounding_enabled: bool = True
    rounding_type: Literal["99", "95", "nearest"] = "99"
    gst_enabled: bool = True
    gst_type: Literal["include", "exclude"] = "include"


class StockRuleSet(BaseModel):
    """Supplier stock -> local stock transformation rules."""
    model_config = ConfigDict(extra="ignore")

    buffer_enabled: bool = False
    buffer_amount: int = Field(default=0, ge=0)
    zero_on_unavailable: bool = True
    auto_out_of_stock: bool = True
    deactivate_if_not_found: bool = True
    republish_on_restock: bool = False
