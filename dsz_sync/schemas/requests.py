"""
Request schemas — bodies accepted by the /api/v1 routes.

Version: 1.0.0
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from dsz_sync.schemas.state import ResyncOptions

ProductStatus = Literal["publish", "draft", "pending", "private"]


class ConnectionTestRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    save_credentials: bool = True


class PricePreviewRequest(BaseModel):
    cost: float = Field(..., ge=0)


class StockPreviewRequest(BaseModel):
    quantity: int = Field(..., ge=0)


class ScheduleRequest(BaseModel):
    frequency: Literal["hourly", "twicedaily", "daily"] = "hourly"


class MappingCreateRequest(BaseModel):
    local_id: int = Field(..., ge=1)
    supplier_sku: str = Field(..., min_length=1)
    supplier_name: str = ""


class SyncEnabledRequest(BaseModel):
    enabled: bool


class ImportRequest(BaseModel):
    sku: str = Field(..., min_length=1)
    status: Optional[ProductStatus] = None


class BulkImportRequest(BaseModel):
    skus: List[str] = Field(..., min_length=1)
    status: Optional[ProductStatus] = None


class ResyncAllRequest(BaseModel):
    limit: int = Field(default=1000, ge=1, le=5000)
    options: ResyncOptions = Field(default_factory=ResyncOptions)
