"""
Pydantic Schemas for API validation and serialization.

These schemas define the contract between the POS frontend and backend:
- Request validation (malformed quantities and prices are rejected here)
- Response serialization with stable field names
"""

from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, field_validator
from enum import Enum


def _enum_value(v):
    """ORM enums are plain Enum; hand pydantic their value."""
    return v.value if isinstance(v, Enum) else v


# ============== Enums ==============

class UrgencyLevel(str, Enum):
    """Reorder urgency levels."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class BatchStatusType(str, Enum):
    ACTIVE = "active"
    DEPLETED = "depleted"


class DemandLevelType(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


class TrendType(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECLINING = "declining"


# ============== Product ==============

class ProductCreate(BaseModel):
    """Create a product. Price is set by hand."""
    name: str = Field(..., min_length=1, max_length=300)
    generic_name: Optional[str] = None
    category: Optional[str] = None
    price: float = Field(..., ge=0)
    reorder_level: int = Field(default=0, ge=0)


class PriceUpdateRequest(BaseModel):
    price: float = Field(..., ge=0)


class ProductResponse(BaseModel):
    """Product response."""
    id: int
    name: str
    generic_name: Optional[str]
    category: Optional[str]
    price: float
    reorder_level: int
    current_stock: int = 0
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Batches ==============

class BatchCreate(BaseModel):
    """Receive a new batch."""
    quantity: int = Field(..., gt=0)
    unit_cost: float = Field(..., ge=0)
    expiry_date: Optional[date] = None
    selling_price: Optional[float] = Field(None, ge=0)
    supplier_name: Optional[str] = None
    notes: Optional[str] = None


class BatchResponse(BaseModel):
    id: int
    product_id: int
    batch_number: str
    quantity: int
    original_quantity: int
    expiry_date: Optional[date]
    unit_cost: float
    selling_price: Optional[float]
    markup_percentage: Optional[float]
    supplier_name: Optional[str]
    status: BatchStatusType
    created_at: datetime

    @field_validator('status', mode='before')
    @classmethod
    def unwrap_status(cls, v):
        return _enum_value(v)

    class Config:
        from_attributes = True


# ============== Allocation & Sales ==============

class AllocateRequest(BaseModel):
    # Positivity is enforced by the ledger so the error carries its own code
    quantity: int


class AllocationRecordSchema(BaseModel):
    """One batch consumed by a sale."""
    batch_id: Optional[int]
    batch_number: Optional[str]
    expiry_date: Optional[date]
    quantity: int
    unit_cost: float
    sale_unit_price: float
    line_cost: float
    line_revenue: float
    line_profit: float
    remaining_quantity: int

    class Config:
        from_attributes = True


class AllocationResponse(BaseModel):
    product_id: int
    total_quantity: int
    unit_price: float
    total_cost: float
    total_revenue: float
    gross_profit: float
    profit_margin: float
    remaining_stock: Optional[int]
    allocations: List[AllocationRecordSchema]

    class Config:
        from_attributes = True


class SaleItemRequest(BaseModel):
    product_id: int
    quantity: int


class SaleCreate(BaseModel):
    items: List[SaleItemRequest] = Field(..., min_length=1)
    payment_method: Optional[str] = "cash"
    customer_name: Optional[str] = None
    notes: Optional[str] = None


class SaleResponse(BaseModel):
    sale_id: int
    total_amount: float
    total_cogs: float
    gross_profit: float
    profit_margin: float
    lines: List[AllocationResponse]

    class Config:
        from_attributes = True


class StoredAllocationSchema(BaseModel):
    """Allocation record as persisted in the ledger."""
    id: int
    sale_id: Optional[int]
    sale_item_id: Optional[int]
    batch_id: int
    product_id: int
    quantity: int
    unit_cost: float
    sale_unit_price: float
    line_cost: float
    line_revenue: float
    line_profit: float
    created_at: datetime

    class Config:
        from_attributes = True


# ============== Forecast ==============

class ForecastPointSchema(BaseModel):
    date: date
    predicted_units: float
    best_case: float
    worst_case: float

    class Config:
        from_attributes = True


class ReorderSuggestionSchema(BaseModel):
    should_reorder: bool
    urgency: UrgencyLevel
    suggested_quantity: int
    reorder_point: float
    safety_stock: float
    current_stock: int
    reorder_level: int
    daily_usage: float
    days_of_stock: float
    stock_status: str
    estimated_cost: float
    message: str
    low_confidence: bool = False

    @field_validator('urgency', mode='before')
    @classmethod
    def unwrap_urgency(cls, v):
        return _enum_value(v)

    class Config:
        from_attributes = True


class ForecastResponse(BaseModel):
    """Complete demand analysis for one product."""
    product_id: int
    product_name: str
    category: Optional[str]
    as_of: datetime
    history_window_days: int
    data_points: int
    current_stock: int
    daily_average: float
    weekly_average: float
    quarterly_average: float
    monthly_average: float
    demand_level: DemandLevelType
    trend: TrendType
    trend_percentage: float
    is_seasonal: bool
    peak_months: List[int]
    seasonality_factor: float
    seasonality_method: str
    forecast: List[ForecastPointSchema]
    forecast_total: float
    forecast_best_total: float
    forecast_worst_total: float
    confidence: float
    reorder: ReorderSuggestionSchema
    notices: List[str] = []

    @field_validator('demand_level', 'trend', mode='before')
    @classmethod
    def unwrap_levels(cls, v):
        return _enum_value(v)

    class Config:
        from_attributes = True


class DemandSummary(BaseModel):
    """Counts for the forecasting dashboard."""
    total_products: int
    high_demand: int
    medium_demand: int
    low_demand: int
    no_demand: int
    trending: int
    declining: int
    needs_reorder: int
    critical_stock: int


# ============== Reorder Recommendations ==============

class ReorderItem(BaseModel):
    """
    Single reorder recommendation.
    Must be understandable at a glance by pharmacy staff.
    """
    product_id: int
    urgency: UrgencyLevel
    suggested_quantity: int
    reorder_point: Optional[float]
    safety_stock: Optional[float]
    current_stock: Optional[int]
    daily_usage: Optional[float]
    message: str

    @field_validator('urgency', mode='before')
    @classmethod
    def unwrap_urgency(cls, v):
        return _enum_value(v)

    class Config:
        from_attributes = True


class ReorderListResponse(BaseModel):
    generated_at: datetime
    total_items: int
    critical_items: int
    items: List[ReorderItem]


class ReorderSummary(BaseModel):
    """Quick summary for dashboard."""
    total_items: int
    critical: int
    high: int
    medium: int
    low: int
