# Models module
from medcure.models.models import (
    Base, Product, Batch, Sale, SaleItem,
    BatchAllocation, InventoryLog, ReorderRecommendation,
    ProductStatus, BatchStatus, SaleStatus, InventoryAction, UrgencyLevel
)
from medcure.models.database import (
    get_db, create_tables, session_scope, build_engine, SessionLocal, engine
)

__all__ = [
    "Base", "Product", "Batch", "Sale", "SaleItem",
    "BatchAllocation", "InventoryLog", "ReorderRecommendation",
    "ProductStatus", "BatchStatus", "SaleStatus", "InventoryAction", "UrgencyLevel",
    "get_db", "create_tables", "session_scope", "build_engine", "SessionLocal", "engine"
]
