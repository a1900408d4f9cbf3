import logging
from datetime import datetime
from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from medcure.models import get_db, Product, create_tables
from medcure.schemas import (
    ProductCreate, PriceUpdateRequest, ProductResponse,
    BatchCreate, BatchResponse,
    AllocateRequest, AllocationResponse,
    SaleCreate, SaleResponse, StoredAllocationSchema,
    ForecastResponse, DemandSummary,
    ReorderItem, ReorderListResponse, ReorderSummary
)
from medcure.services import (
    BatchLedgerService, ForecasterService, ReorderService,
    MedcureError, InsufficientStockError, InvalidQuantityError, ProductNotFoundError
)

logger = logging.getLogger(__name__)

router = APIRouter()

ERROR_STATUS = {
    ProductNotFoundError: 404,
    InsufficientStockError: 409,
    InvalidQuantityError: 422,
}


def to_http_error(error: MedcureError) -> HTTPException:
    return HTTPException(status_code=ERROR_STATUS.get(type(error), 400), detail=error.to_dict())


def product_response(product: Product, ledger: BatchLedgerService) -> ProductResponse:
    response = ProductResponse.model_validate(product)
    response.current_stock = ledger.current_stock(product.id)
    return response


# ============== Init ==============

@router.post("/init-db")
async def initialize_database():
    """Initialize database tables."""
    try:
        create_tables()
        return {"success": True, "message": "Database tables created"}
    except Exception as e:
        logger.exception("Table creation failed")
        raise HTTPException(status_code=500, detail=str(e))


# ============== Products ==============

@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(request: ProductCreate, db: Session = Depends(get_db)):
    product = Product(**request.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product_response(product, BatchLedgerService(db))


@router.get("/products", response_model=List[ProductResponse])
def list_products(db: Session = Depends(get_db)):
    """List all products with current stock."""
    ledger = BatchLedgerService(db)
    return [product_response(p, ledger) for p in db.query(Product).order_by(Product.id).all()]


@router.get("/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: int, db: Session = Depends(get_db)):
    ledger = BatchLedgerService(db)
    try:
        product = ledger.get_product(product_id)
    except MedcureError as e:
        raise to_http_error(e)
    return product_response(product, ledger)


@router.patch("/products/{product_id}/price", response_model=ProductResponse)
def update_price(product_id: int, request: PriceUpdateRequest, db: Session = Depends(get_db)):
    """
    Set the selling price by hand.
    Batch costs never change it.
    """
    ledger = BatchLedgerService(db)
    try:
        product = ledger.get_product(product_id)
    except MedcureError as e:
        raise to_http_error(e)

    product.price = request.price
    db.commit()
    db.refresh(product)
    return product_response(product, ledger)


# ============== Batches ==============

@router.post("/products/{product_id}/batches", response_model=BatchResponse, status_code=201)
def receive_batch(product_id: int, request: BatchCreate, db: Session = Depends(get_db)):
    """Receive stock as a new batch."""
    try:
        return BatchLedgerService(db).receive_batch(product_id, **request.model_dump())
    except MedcureError as e:
        raise to_http_error(e)


@router.get("/products/{product_id}/batches", response_model=List[BatchResponse])
def list_batches(
    product_id: int,
    include_depleted: bool = Query(default=False),
    db: Session = Depends(get_db)
):
    """Batches in FEFO consumption order."""
    try:
        return BatchLedgerService(db).list_batches(product_id, include_depleted)
    except MedcureError as e:
        raise to_http_error(e)


# ============== Allocation & Sales ==============

@router.post("/products/{product_id}/allocate", response_model=AllocationResponse)
def allocate(product_id: int, request: AllocateRequest, db: Session = Depends(get_db)):
    """
    Consume stock FEFO for a sale of one product.
    All-or-nothing: on insufficient stock no batch changes.
    """
    try:
        return BatchLedgerService(db).allocate(product_id, request.quantity)
    except MedcureError as e:
        raise to_http_error(e)


@router.post("/sales", response_model=SaleResponse, status_code=201)
def create_sale(request: SaleCreate, db: Session = Depends(get_db)):
    """Record a multi-item sale with COGS and profit."""
    try:
        return BatchLedgerService(db).process_sale(
            [(item.product_id, item.quantity) for item in request.items],
            payment_method=request.payment_method,
            customer_name=request.customer_name,
            notes=request.notes
        )
    except MedcureError as e:
        raise to_http_error(e)


@router.get("/sales/{sale_id}/allocations", response_model=List[StoredAllocationSchema])
def get_sale_allocations(sale_id: int, db: Session = Depends(get_db)):
    return BatchLedgerService(db).get_sale_allocations(sale_id)


# ============== Forecasting ==============

@router.get("/products/{product_id}/forecast", response_model=ForecastResponse)
def get_forecast(
    product_id: int,
    history_days: int = Query(default=90, ge=14, le=730),
    db: Session = Depends(get_db)
):
    """30-day demand forecast with trend, seasonality and reorder advice."""
    try:
        return ForecasterService(db).forecast_product(product_id, history_days)
    except MedcureError as e:
        raise to_http_error(e)


@router.get("/forecasts/summary", response_model=DemandSummary)
def get_demand_summary(db: Session = Depends(get_db)):
    return ForecasterService(db).demand_summary()


@router.get("/forecasts/top", response_model=List[ForecastResponse])
def get_top_demand(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    """Products with the highest daily demand."""
    return ForecasterService(db).top_demand_products(limit)


@router.get("/forecasts/trending", response_model=List[ForecastResponse])
def get_trending(limit: int = Query(default=10, ge=1, le=100), db: Session = Depends(get_db)):
    """Products whose demand is increasing."""
    return ForecasterService(db).trending_products(limit)


@router.post("/run-forecast")
def run_forecast(
    background_tasks: bool = Query(False, description="Run in background (async)"),
    db: Session = Depends(get_db)
):
    """
    Forecast every product and regenerate the reorder list.
    If background_tasks=True, runs via Celery/Redis.
    """
    if background_tasks:
        try:
            from medcure.tasks import refresh_reorder_recommendations
            task = refresh_reorder_recommendations.delay()
            return {
                "success": True,
                "message": "Forecast started in background",
                "task_id": str(task.id)
            }
        except Exception as e:
            raise HTTPException(status_code=503, detail=f"Failed to queue task (Redis down?): {str(e)}")

    service = ReorderService(db)
    forecasts = service.forecaster.forecast_all()
    recommendations = service.generate_recommendations(forecasts=forecasts)
    saved = service.save_recommendations(recommendations)

    return {
        "success": True,
        "products_forecasted": len(forecasts),
        "reorder_recs_generated": saved
    }


# ============== Reorder List ==============

@router.get("/reorder-list", response_model=ReorderListResponse)
def get_reorder_list(
    regenerate: bool = Query(default=True),
    db: Session = Depends(get_db)
):
    """
    Products to restock, most urgent first.
    """
    service = ReorderService(db)

    if regenerate:
        service.save_recommendations(service.generate_recommendations())

    items = [ReorderItem.model_validate(r) for r in service.get_active()]

    return ReorderListResponse(
        generated_at=datetime.utcnow(),
        total_items=len(items),
        critical_items=sum(1 for r in items if r.urgency.value == 'critical'),
        items=items
    )


@router.get("/reorder-summary", response_model=ReorderSummary)
def get_reorder_summary(db: Session = Depends(get_db)):
    """Quick summary of pending reorder recommendations."""
    return ReorderSummary(**ReorderService(db).get_summary())
