import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from medcure.models import (
    Product, Batch, Sale, SaleItem, BatchAllocation, InventoryLog,
    BatchStatus, SaleStatus, InventoryAction
)
from medcure.services.batches.allocator import (
    AllocationResult, plan_allocation, build_allocation_result, fefo_sort_key
)
from medcure.services.exceptions import (
    InsufficientStockError, InvalidQuantityError, ProductNotFoundError
)

logger = logging.getLogger(__name__)


@dataclass
class SaleResult:
    """A processed multi-line sale with its COGS and profit."""
    sale_id: int
    total_amount: float
    total_cogs: float
    gross_profit: float
    profit_margin: float
    lines: List[AllocationResult] = field(default_factory=list)


def generate_batch_number(received_at: datetime, sequence: int) -> str:
    """BT + MMDDYY + '-' + per-product daily sequence, e.g. BT101826-001."""
    return f"BT{received_at.strftime('%m%d%y')}-{sequence:03d}"


def calculate_markup(unit_cost: Optional[float], selling_price: Optional[float]) -> float:
    if unit_cost is None or selling_price is None or unit_cost <= 0:
        return 0.0
    return round((selling_price - unit_cost) / unit_cost * 100, 2)


class BatchLedgerService:
    """
    Owns batch mutation.

    Every allocation runs inside one transaction that first writes the
    product row, so concurrent sales of the same product run one after
    the other on every backend. Batch decrements are conditional UPDATEs
    and never write back a quantity computed in Python.
    """

    def __init__(self, db: Session):
        self.db = db

    # ============== Queries ==============

    def get_product(self, product_id: int, lock: bool = False) -> Product:
        """
        Load a product. With lock=True the row is written first, which takes
        the row lock on Postgres and the database write lock on SQLite
        (SQLite ignores FOR UPDATE), and the returned object is re-read.
        """
        query = self.db.query(Product).filter(Product.id == product_id)
        if lock:
            self.db.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(updated_at=datetime.utcnow())
                .execution_options(synchronize_session=False)
            )
            query = query.with_for_update().populate_existing()
        product = query.first()
        if not product:
            raise ProductNotFoundError(product_id)
        return product

    def list_batches(self, product_id: int, include_depleted: bool = False) -> List[Batch]:
        """Batches of a product in consumption order."""
        self.get_product(product_id)
        query = self.db.query(Batch).filter(Batch.product_id == product_id)
        if not include_depleted:
            query = query.filter(Batch.status == BatchStatus.ACTIVE, Batch.quantity > 0)
        return sorted(query.all(), key=fefo_sort_key)

    def current_stock(self, product_id: int) -> int:
        """Sum of active batch quantities."""
        total = self.db.query(func.coalesce(func.sum(Batch.quantity), 0)).filter(
            Batch.product_id == product_id,
            Batch.status == BatchStatus.ACTIVE,
            Batch.quantity > 0
        ).scalar()
        return int(total or 0)

    def get_sale_allocations(self, sale_id: int) -> List[BatchAllocation]:
        return self.db.query(BatchAllocation).filter(
            BatchAllocation.sale_id == sale_id
        ).order_by(BatchAllocation.id).all()

    # ============== Receiving ==============

    def receive_batch(
        self,
        product_id: int,
        quantity: int,
        unit_cost: float,
        expiry_date: Optional[date] = None,
        selling_price: Optional[float] = None,
        supplier_name: Optional[str] = None,
        notes: Optional[str] = None,
        received_at: Optional[datetime] = None
    ) -> Batch:
        """
        Add a new batch. The product price is left untouched.
        """
        if quantity is None or quantity <= 0:
            raise InvalidQuantityError(quantity)

        # Locked so two receipts on the same day cannot share a sequence number
        product = self.get_product(product_id, lock=True)
        received_at = received_at or datetime.utcnow()

        day_start = datetime.combine(received_at.date(), datetime.min.time())
        received_today = self.db.query(func.count(Batch.id)).filter(
            Batch.product_id == product_id,
            Batch.created_at >= day_start,
            Batch.created_at < day_start + timedelta(days=1)
        ).scalar() or 0

        previous_stock = self.current_stock(product_id)

        try:
            batch = Batch(
                product_id=product.id,
                batch_number=generate_batch_number(received_at, received_today + 1),
                quantity=quantity,
                original_quantity=quantity,
                expiry_date=expiry_date,
                unit_cost=unit_cost,
                selling_price=selling_price,
                markup_percentage=calculate_markup(unit_cost, selling_price),
                supplier_name=supplier_name,
                notes=notes,
                status=BatchStatus.ACTIVE,
                created_at=received_at
            )
            self.db.add(batch)
            self.db.flush()

            self.db.add(InventoryLog(
                product_id=product.id,
                batch_id=batch.id,
                action=InventoryAction.RECEIVE,
                quantity_change=quantity,
                previous_quantity=previous_stock,
                new_quantity=previous_stock + quantity,
                reason=notes or f"Received batch {batch.batch_number}"
            ))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(batch)
        logger.info("Received batch %s for product %s (%s units)", batch.batch_number, product_id, quantity)
        return batch

    # ============== Allocation ==============

    def allocate(self, product_id: int, quantity: int, reason: Optional[str] = None) -> AllocationResult:
        """
        Allocate a sale quantity across batches, all-or-nothing.

        Raises:
            InvalidQuantityError, ProductNotFoundError, InsufficientStockError
        """
        if quantity is None or quantity <= 0:
            raise InvalidQuantityError(quantity)

        try:
            result = self._allocate_locked(product_id, quantity, reason=reason)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Allocation of %s units for product %s rolled back", quantity, product_id)
            raise

        logger.info(
            "Allocated %s units of product %s from %s batches (cost %.2f, revenue %.2f)",
            quantity, product_id, len(result.allocations), result.total_cost, result.total_revenue
        )
        return result

    def process_sale(
        self,
        items: Sequence[Tuple[int, int]],
        payment_method: Optional[str] = None,
        customer_name: Optional[str] = None,
        notes: Optional[str] = None,
        sold_at: Optional[datetime] = None
    ) -> SaleResult:
        """
        Record a sale of several (product_id, quantity) lines.
        Each line is priced at the product's current price and allocated
        FEFO. If any line fails, nothing is written.
        """
        if not items:
            raise InvalidQuantityError(0, "A sale needs at least one item")
        for _, quantity in items:
            if quantity is None or quantity <= 0:
                raise InvalidQuantityError(quantity)

        sold_at = sold_at or datetime.utcnow()

        try:
            sale = Sale(
                status=SaleStatus.COMPLETED,
                payment_method=payment_method,
                customer_name=customer_name,
                notes=notes,
                created_at=sold_at
            )
            self.db.add(sale)
            self.db.flush()

            lines = []
            # Lock in id order so two sales touching the same products cannot deadlock
            for product_id, quantity in sorted(items, key=lambda item: item[0]):
                product = self.get_product(product_id, lock=True)
                sale_item = SaleItem(
                    sale_id=sale.id,
                    product_id=product.id,
                    quantity=quantity,
                    unit_price=product.price,
                    total_price=round(quantity * product.price, 2),
                    created_at=sold_at
                )
                self.db.add(sale_item)
                self.db.flush()

                lines.append(self._allocate_locked(
                    product_id, quantity, sale=sale, sale_item=sale_item,
                    reason=f"FEFO sale deduction for sale {sale.id}"
                ))

            sale.total_amount = round(sum(r.total_revenue for r in lines), 2)
            sale.total_cogs = round(sum(r.total_cost for r in lines), 2)
            sale.gross_profit = round(sale.total_amount - sale.total_cogs, 2)
            sale.profit_margin_percentage = (
                round(sale.gross_profit / sale.total_amount * 100, 2) if sale.total_amount > 0 else 0.0
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.warning("Sale with %s items rolled back", len(items))
            raise

        logger.info("Sale %s completed: revenue %.2f, COGS %.2f", sale.id, sale.total_amount, sale.total_cogs)
        return SaleResult(
            sale_id=sale.id,
            total_amount=sale.total_amount,
            total_cogs=sale.total_cogs,
            gross_profit=sale.gross_profit,
            profit_margin=sale.profit_margin_percentage,
            lines=lines
        )

    def _allocate_locked(
        self,
        product_id: int,
        quantity: int,
        sale: Optional[Sale] = None,
        sale_item: Optional[SaleItem] = None,
        reason: Optional[str] = None
    ) -> AllocationResult:
        """Plan, price and apply one allocation. Caller owns the transaction."""
        product = self.get_product(product_id, lock=True)

        batches = self.db.query(Batch).filter(
            Batch.product_id == product_id,
            Batch.status == BatchStatus.ACTIVE,
            Batch.quantity > 0
        ).order_by(Batch.id).with_for_update().populate_existing().all()

        # Raises before anything is touched
        plan = plan_allocation(product_id, batches, quantity)
        result = build_allocation_result(product_id, product.price, plan)

        for take, line in zip(plan, result.allocations):
            batch = take.batch
            self._decrement_batch(batch, take.quantity, product_id, quantity)
            line.remaining_quantity = batch.quantity

            self.db.add(BatchAllocation(
                sale_id=sale.id if sale else None,
                sale_item_id=sale_item.id if sale_item else None,
                batch_id=batch.id,
                product_id=product_id,
                quantity=line.quantity,
                unit_cost=line.unit_cost,
                sale_unit_price=line.sale_unit_price,
                line_cost=line.line_cost,
                line_revenue=line.line_revenue,
                line_profit=line.line_profit
            ))
            self.db.add(InventoryLog(
                product_id=product_id,
                batch_id=batch.id,
                action=InventoryAction.SALE,
                quantity_change=-line.quantity,
                previous_quantity=batch.quantity + line.quantity,
                new_quantity=batch.quantity,
                reason=reason or f"FEFO sale deduction from batch {batch.batch_number}"
            ))

        new_stock = self.current_stock(product_id)
        previous_stock = new_stock + quantity
        self.db.add(InventoryLog(
            product_id=product_id,
            batch_id=None,
            action=InventoryAction.SALE_COMPLETE,
            quantity_change=-quantity,
            previous_quantity=previous_stock,
            new_quantity=new_stock,
            reason=f"FEFO sale completed - {len(plan)} batches affected"
        ))
        self.db.flush()

        result.remaining_stock = new_stock
        return result

    def _decrement_batch(self, batch: Batch, take: int, product_id: int, requested: int) -> None:
        """
        Take units from a batch in the database, guarded by the quantity
        still being there. A concurrent sale that got there first makes the
        guard fail and the whole allocation roll back.
        """
        updated = self.db.execute(
            update(Batch)
            .where(
                Batch.id == batch.id,
                Batch.status == BatchStatus.ACTIVE,
                Batch.quantity >= take
            )
            .values(quantity=Batch.quantity - take)
            .execution_options(synchronize_session=False)
        ).rowcount
        if updated != 1:
            raise InsufficientStockError(product_id, requested, self.current_stock(product_id))

        self.db.execute(
            update(Batch)
            .where(Batch.id == batch.id, Batch.quantity <= 0)
            .values(status=BatchStatus.DEPLETED)
            .execution_options(synchronize_session=False)
        )
        self.db.expire(batch)
