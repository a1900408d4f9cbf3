"""
SQLAlchemy Database Models for the MedCure inventory core.

Tables:
- products: Product catalog with manually set prices
- product_batches: Stock lots with expiry and purchase cost
- sales / sale_items: Completed sales, the input for forecasting
- sale_batch_allocations: Append-only FEFO allocation ledger
- inventory_logs: Append-only audit trail of stock movements
- reorder_recommendations: Latest reorder list
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Float, Date, DateTime,
    ForeignKey, Boolean, Text, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship, declarative_base
import enum

Base = declarative_base()


class ProductStatus(enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BatchStatus(enum.Enum):
    """Lifecycle of a batch. Depleted batches are never allocated."""
    ACTIVE = "active"
    DEPLETED = "depleted"


class SaleStatus(enum.Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InventoryAction(enum.Enum):
    RECEIVE = "RECEIVE"
    SALE = "SALE"
    SALE_COMPLETE = "SALE_COMPLETE"


class UrgencyLevel(enum.Enum):
    """Urgency levels for reorder recommendations."""
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Product(Base):
    """
    Product catalog.
    Price is set by hand and never derived from batch costs.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(300), nullable=False)
    generic_name = Column(String(300))
    category = Column(String(100), index=True)
    price = Column(Float, nullable=False)
    reorder_level = Column(Integer, default=0, nullable=False)
    status = Column(SQLEnum(ProductStatus), default=ProductStatus.ACTIVE, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    batches = relationship("Batch", back_populates="product")
    sale_items = relationship("SaleItem", back_populates="product")
    recommendations = relationship("ReorderRecommendation", back_populates="product")


class Batch(Base):
    """A discrete lot of stock with its own expiry and purchase cost."""
    __tablename__ = "product_batches"
    __table_args__ = (
        UniqueConstraint("product_id", "batch_number", name="uq_batch_product_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    batch_number = Column(String(50), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)  # Remaining, never negative
    original_quantity = Column(Integer, nullable=False)
    expiry_date = Column(Date, nullable=True, index=True)  # NULL sorts after every dated batch
    unit_cost = Column(Float, nullable=False, default=0.0)
    selling_price = Column(Float)  # Reference only, revenue uses Product.price
    markup_percentage = Column(Float, default=0.0)
    supplier_name = Column(String(200))
    notes = Column(Text)
    status = Column(SQLEnum(BatchStatus), default=BatchStatus.ACTIVE, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    product = relationship("Product", back_populates="batches")
    allocations = relationship("BatchAllocation", back_populates="batch")


class Sale(Base):
    """A completed point-of-sale transaction."""
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    status = Column(SQLEnum(SaleStatus), default=SaleStatus.COMPLETED, nullable=False, index=True)
    payment_method = Column(String(50))
    customer_name = Column(String(200))
    notes = Column(Text)
    total_amount = Column(Float, default=0.0)
    total_cogs = Column(Float, default=0.0)
    gross_profit = Column(Float, default=0.0)
    profit_margin_percentage = Column(Float, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    items = relationship("SaleItem", back_populates="sale")
    allocations = relationship("BatchAllocation", back_populates="sale")


class SaleItem(Base):
    """
    One sold product line.
    Items of completed sales are the sale-quantity observations for forecasting.
    """
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Float, nullable=False)
    total_price = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    # Relationships
    sale = relationship("Sale", back_populates="items")
    product = relationship("Product", back_populates="sale_items")
    allocations = relationship("BatchAllocation", back_populates="sale_item")


class BatchAllocation(Base):
    """
    Immutable allocation record, one per batch consumed by a sale line.
    """
    __tablename__ = "sale_batch_allocations"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True, index=True)
    sale_item_id = Column(Integer, ForeignKey("sale_items.id"), nullable=True, index=True)
    batch_id = Column(Integer, ForeignKey("product_batches.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Float, nullable=False)
    sale_unit_price = Column(Float, nullable=False)
    line_cost = Column(Float, nullable=False)
    line_revenue = Column(Float, nullable=False)
    line_profit = Column(Float, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    sale = relationship("Sale", back_populates="allocations")
    sale_item = relationship("SaleItem", back_populates="allocations")
    batch = relationship("Batch", back_populates="allocations")


class InventoryLog(Base):
    """Append-only audit trail of stock movements."""
    __tablename__ = "inventory_logs"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    batch_id = Column(Integer, ForeignKey("product_batches.id"), nullable=True)  # NULL for product-level rows
    action = Column(SQLEnum(InventoryAction), nullable=False, index=True)
    quantity_change = Column(Integer, nullable=False)
    previous_quantity = Column(Integer, nullable=False)
    new_quantity = Column(Integer, nullable=False)
    reason = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class ReorderRecommendation(Base):
    """
    Actionable reorder list.
    Regenerated, never edited: older rows are deactivated.
    """
    __tablename__ = "reorder_recommendations"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    urgency = Column(SQLEnum(UrgencyLevel), nullable=False, index=True)
    suggested_quantity = Column(Integer, nullable=False)
    reorder_point = Column(Float)
    safety_stock = Column(Float)
    current_stock = Column(Integer)
    daily_usage = Column(Float)
    message = Column(Text, nullable=False)  # Human-readable explanation
    generated_at = Column(DateTime, default=datetime.utcnow)
    is_active = Column(Boolean, default=True, index=True)

    # Relationships
    product = relationship("Product", back_populates="recommendations")
