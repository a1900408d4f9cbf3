"""
FEFO (First-Expired, First-Out) batch allocation.

Pure planning over batch snapshots:
1. Keep active batches with stock left
2. Sort by expiry date (no expiry = last), then by creation time
3. Take min(remaining, batch.quantity) from each batch until the request is met

Revenue always comes from the product's price. Batch cost is only used
for cost of goods sold and profit.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Sequence

from medcure.models import BatchStatus
from medcure.services.exceptions import InsufficientStockError, InvalidQuantityError


@dataclass
class PlannedTake:
    """Quantity to take from a single batch."""
    batch: object
    quantity: int


@dataclass
class AllocationLine:
    """One allocation record: a batch consumed by a sale."""
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


@dataclass
class AllocationResult:
    """Outcome of allocating a requested quantity across batches."""
    product_id: int
    total_quantity: int
    unit_price: float
    total_cost: float
    total_revenue: float
    gross_profit: float
    profit_margin: float
    allocations: List[AllocationLine] = field(default_factory=list)
    remaining_stock: Optional[int] = None


def fefo_sort_key(batch):
    """Expiry first (undated stock last), creation time as tie-break."""
    expiry = batch.expiry_date if batch.expiry_date is not None else date.max
    created = batch.created_at if batch.created_at is not None else datetime.min
    return (expiry, created)


def is_allocatable(batch) -> bool:
    return batch.status == BatchStatus.ACTIVE and (batch.quantity or 0) > 0


def sort_batches_fefo(batches: Sequence) -> list:
    """Return allocatable batches in consumption order."""
    return sorted((b for b in batches if is_allocatable(b)), key=fefo_sort_key)


def available_quantity(batches: Sequence) -> int:
    return sum(b.quantity for b in batches if is_allocatable(b))


def plan_allocation(product_id: int, batches: Sequence, requested: int) -> List[PlannedTake]:
    """
    Plan which batches cover a sale. Does not mutate anything.

    Raises:
        InvalidQuantityError: requested <= 0
        InsufficientStockError: active batches hold less than requested
    """
    if requested is None or requested <= 0:
        raise InvalidQuantityError(requested)

    ordered = sort_batches_fefo(batches)
    available = sum(b.quantity for b in ordered)
    if available < requested:
        raise InsufficientStockError(product_id, requested, available)

    plan = []
    remaining = requested
    for batch in ordered:
        if remaining <= 0:
            break
        take = min(remaining, batch.quantity)
        plan.append(PlannedTake(batch=batch, quantity=take))
        remaining -= take

    return plan


def build_allocation_result(product_id: int, unit_price: float, plan: List[PlannedTake]) -> AllocationResult:
    """
    Price a plan. Remaining quantities are reported as they will be
    after the plan is applied.
    """
    total_quantity = sum(t.quantity for t in plan)
    total_revenue = round(total_quantity * unit_price, 2)

    lines = []
    total_cost = 0.0
    for take in plan:
        batch = take.batch
        unit_cost = batch.unit_cost or 0.0
        line_cost = take.quantity * unit_cost
        line_revenue = take.quantity * unit_price
        total_cost += line_cost
        lines.append(AllocationLine(
            batch_id=batch.id,
            batch_number=batch.batch_number,
            expiry_date=batch.expiry_date,
            quantity=take.quantity,
            unit_cost=unit_cost,
            sale_unit_price=unit_price,
            line_cost=round(line_cost, 2),
            line_revenue=round(line_revenue, 2),
            line_profit=round(take.quantity * (unit_price - unit_cost), 2),
            remaining_quantity=batch.quantity - take.quantity
        ))

    total_cost = round(total_cost, 2)
    gross_profit = round(total_revenue - total_cost, 2)
    margin = round(gross_profit / total_revenue * 100, 2) if total_revenue > 0 else 0.0

    return AllocationResult(
        product_id=product_id,
        total_quantity=total_quantity,
        unit_price=unit_price,
        total_cost=total_cost,
        total_revenue=total_revenue,
        gross_profit=gross_profit,
        profit_margin=margin,
        allocations=lines
    )

