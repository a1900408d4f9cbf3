# Batch ledger module
from medcure.services.batches.allocator import (
    AllocationLine, AllocationResult, PlannedTake,
    plan_allocation, sort_batches_fefo, available_quantity
)
from medcure.services.batches.ledger import BatchLedgerService, SaleResult, generate_batch_number

__all__ = [
    "AllocationLine",
    "AllocationResult",
    "PlannedTake",
    "plan_allocation",
    "sort_batches_fefo",
    "available_quantity",
    "BatchLedgerService",
    "SaleResult",
    "generate_batch_number"
]
