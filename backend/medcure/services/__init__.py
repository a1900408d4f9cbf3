# Services module
from medcure.services.exceptions import (
    MedcureError, InsufficientStockError, InvalidQuantityError, ProductNotFoundError
)
from medcure.services.batches import BatchLedgerService, AllocationResult, SaleResult
from medcure.services.forecasting import ForecasterService, DemandForecaster, ForecastResult
from medcure.services.reorder import ReorderService

__all__ = [
    "MedcureError",
    "InsufficientStockError",
    "InvalidQuantityError",
    "ProductNotFoundError",
    "BatchLedgerService",
    "AllocationResult",
    "SaleResult",
    "ForecasterService",
    "DemandForecaster",
    "ForecastResult",
    "ReorderService"
]
