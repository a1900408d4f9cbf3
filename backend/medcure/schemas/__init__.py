# Schemas module
from medcure.schemas.schemas import (
    ProductCreate, PriceUpdateRequest, ProductResponse,
    BatchCreate, BatchResponse,
    AllocateRequest, AllocationRecordSchema, AllocationResponse,
    SaleItemRequest, SaleCreate, SaleResponse, StoredAllocationSchema,
    ForecastPointSchema, ReorderSuggestionSchema, ForecastResponse, DemandSummary,
    ReorderItem, ReorderListResponse, ReorderSummary,
    UrgencyLevel, BatchStatusType, DemandLevelType, TrendType
)

__all__ = [
    "ProductCreate", "PriceUpdateRequest", "ProductResponse",
    "BatchCreate", "BatchResponse",
    "AllocateRequest", "AllocationRecordSchema", "AllocationResponse",
    "SaleItemRequest", "SaleCreate", "SaleResponse", "StoredAllocationSchema",
    "ForecastPointSchema", "ReorderSuggestionSchema", "ForecastResponse", "DemandSummary",
    "ReorderItem", "ReorderListResponse", "ReorderSummary",
    "UrgencyLevel", "BatchStatusType", "DemandLevelType", "TrendType"
]
