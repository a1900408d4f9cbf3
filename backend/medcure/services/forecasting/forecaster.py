import concurrent.futures
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from medcure.config.settings import Settings, settings
from medcure.models import Product, Batch, Sale, SaleItem, ProductStatus, BatchStatus, SaleStatus
from medcure.services.exceptions import ProductNotFoundError
from medcure.services.forecasting.baseline import (
    DemandBaseline, DemandLevel, TrendDirection, ForecastPoint, SaleObservation,
    classify_demand, classify_trend, trend_percentage, confidence_score, forecast_dates,
    normalize_timestamp
)
from medcure.services.forecasting.reorder_point import (
    ReorderSuggestion, recommend_reorder, no_history_suggestion
)
from medcure.services.forecasting.seasonality import (
    SeasonalityTable, load_seasonality_table, resolve_seasonality
)

logger = logging.getLogger(__name__)

NO_HISTORY_NOTICE = "NO_HISTORY"


@dataclass(frozen=True)
class ProductSnapshot:
    """What the forecaster needs to know about a product right now."""
    product_id: int
    name: str
    category: Optional[str]
    price: float
    reorder_level: int = 0
    current_stock: int = 0
    unit_cost: Optional[float] = None


@dataclass
class ForecastResult:
    """Complete demand analysis for one product."""
    product_id: int
    product_name: str
    category: Optional[str]
    as_of: datetime
    history_window_days: int
    data_points: int
    current_stock: int

    # Historical metrics (units/day)
    daily_average: float
    weekly_average: float
    quarterly_average: float
    monthly_average: float  # units per 30 days

    demand_level: DemandLevel
    trend: TrendDirection
    trend_percentage: float

    is_seasonal: bool
    peak_months: List[int]
    seasonality_factor: float  # multiplier for the as_of month
    seasonality_method: str

    forecast: List[ForecastPoint]
    forecast_total: float
    forecast_best_total: float
    forecast_worst_total: float

    confidence: float
    reorder: ReorderSuggestion
    notices: List[str] = field(default_factory=list)


class DemandForecaster:
    """
    Pure forecasting pipeline: (observations, product snapshot, as_of) -> ForecastResult.

    No database access and no randomness, so identical inputs always
    produce identical output.
    """

    def __init__(self, config: Settings = settings, seasonality: Optional[SeasonalityTable] = None):
        self.config = config
        self.seasonality = seasonality or load_seasonality_table(config.SEASONALITY_CONFIG_PATH)

    def forecast(
        self,
        product: ProductSnapshot,
        observations: Sequence[SaleObservation],
        as_of: datetime,
        history_window_days: Optional[int] = None
    ) -> ForecastResult:
        window = history_window_days or self.config.HISTORY_WINDOW_DAYS
        as_of = normalize_timestamp(as_of)
        first_day = as_of.date() - timedelta(days=window - 1)
        history = [
            o for o in observations
            if first_day <= o.timestamp.date() <= as_of.date()
        ]

        if not history:
            return self._empty_result(product, as_of, window)

        baseline = DemandBaseline(history, as_of, window)

        # 1. Moving averages
        weekly = baseline.moving_average(7)
        daily = baseline.moving_average(30)
        quarterly = baseline.moving_average(90)

        # 2. Demand level
        demand_level = classify_demand(
            daily,
            self.config.HIGH_DEMAND_THRESHOLD,
            self.config.MEDIUM_DEMAND_THRESHOLD
        )

        # 3. Trend
        recent_avg, previous_avg = baseline.trend_averages()
        pct = trend_percentage(recent_avg, previous_avg)
        trend = classify_trend(pct, self.config.TREND_THRESHOLD)

        # 4. Seasonality
        seasonality = resolve_seasonality(
            product.category,
            history,
            self.seasonality,
            peak_multiplier=self.config.PEAK_SEASON_MULTIPLIER,
            off_peak_multiplier=self.config.OFF_PEAK_MULTIPLIER,
            min_observations=self.config.DYNAMIC_SEASONALITY_MIN_OBSERVATIONS,
            min_confidence=self.config.DYNAMIC_SEASONALITY_MIN_CONFIDENCE
        )

        # 5. Confidence
        confidence = confidence_score(
            baseline.data_points,
            baseline.days_since_last_sale,
            baseline.coefficient_of_variation(),
            target_observations=self.config.CONFIDENCE_TARGET_OBSERVATIONS,
            recent_days=self.config.RECENT_SALE_DAYS,
            stale_days=self.config.STALE_SALE_DAYS
        )

        # 6. Forecast curve, bounds narrow as confidence rises
        uncertainty = self.config.MAX_UNCERTAINTY * (1 - confidence)
        points = []
        for day in forecast_dates(as_of, self.config.FORECAST_HORIZON_DAYS):
            predicted = daily * seasonality.multiplier_for(day.month)
            points.append(ForecastPoint(
                date=day,
                predicted_units=round(predicted, 2),
                best_case=round(predicted * (1 + uncertainty), 2),
                worst_case=round(max(0.0, predicted * (1 - uncertainty)), 2)
            ))

        # 7. Reorder
        reorder = recommend_reorder(
            current_stock=product.current_stock,
            daily_usage=daily,
            demand_variance=baseline.demand_variance(30),
            reorder_level=product.reorder_level,
            unit_cost=product.unit_cost,
            lead_time_days=self.config.SUPPLIER_LEAD_TIME_DAYS,
            z_score=self.config.SERVICE_LEVEL_Z,
            restock_multiplier=self.config.RESTOCK_MULTIPLIER
        )

        return ForecastResult(
            product_id=product.product_id,
            product_name=product.name,
            category=product.category,
            as_of=as_of,
            history_window_days=window,
            data_points=baseline.data_points,
            current_stock=product.current_stock,
            daily_average=round(daily, 2),
            weekly_average=round(weekly, 2),
            quarterly_average=round(quarterly, 2),
            monthly_average=round(daily * 30, 1),
            demand_level=demand_level,
            trend=trend,
            trend_percentage=round(pct * 100, 1),
            is_seasonal=seasonality.is_seasonal,
            peak_months=seasonality.peak_months,
            seasonality_factor=seasonality.multiplier_for(as_of.month),
            seasonality_method=seasonality.method,
            forecast=points,
            forecast_total=round(sum(p.predicted_units for p in points), 1),
            forecast_best_total=round(sum(p.best_case for p in points), 1),
            forecast_worst_total=round(sum(p.worst_case for p in points), 1),
            confidence=confidence,
            reorder=reorder
        )

    def _empty_result(self, product: ProductSnapshot, as_of: datetime, window: int) -> ForecastResult:
        """No sales yet: a valid zero-confidence result, never an error."""
        points = [
            ForecastPoint(date=day, predicted_units=0.0, best_case=0.0, worst_case=0.0)
            for day in forecast_dates(as_of, self.config.FORECAST_HORIZON_DAYS)
        ]
        return ForecastResult(
            product_id=product.product_id,
            product_name=product.name,
            category=product.category,
            as_of=as_of,
            history_window_days=window,
            data_points=0,
            current_stock=product.current_stock,
            daily_average=0.0,
            weekly_average=0.0,
            quarterly_average=0.0,
            monthly_average=0.0,
            demand_level=DemandLevel.NONE,
            trend=TrendDirection.STABLE,
            trend_percentage=0.0,
            is_seasonal=False,
            peak_months=[],
            seasonality_factor=1.0,
            seasonality_method="insufficient-data",
            forecast=points,
            forecast_total=0.0,
            forecast_best_total=0.0,
            forecast_worst_total=0.0,
            confidence=0.0,
            reorder=no_history_suggestion(product.current_stock, product.reorder_level),
            notices=[NO_HISTORY_NOTICE]
        )


# One pool per process, shared by every bulk run and started lazily
_forecast_pool = None


def get_forecast_pool():
    global _forecast_pool
    if _forecast_pool is None:
        logger.info("Initializing forecast pool with %s workers", settings.FORECAST_WORKERS)
        _forecast_pool = concurrent.futures.ProcessPoolExecutor(max_workers=settings.FORECAST_WORKERS)
    return _forecast_pool


class ForecasterService:
    """
    Data-query side of forecasting: loads history and stock snapshots,
    then hands them to DemandForecaster.

    Read-only. A slightly stale stock snapshot is acceptable.
    """

    def __init__(self, db: Session, forecaster: Optional[DemandForecaster] = None):
        self.db = db
        self.forecaster = forecaster or DemandForecaster()

    def get_sales_history(
        self,
        product_ids: Sequence[int],
        window_days: int,
        as_of: datetime
    ) -> Dict[int, List[SaleObservation]]:
        """Completed sale lines within the window, oldest first, grouped by product."""
        start = datetime.combine(as_of.date() - timedelta(days=window_days - 1), datetime.min.time())
        rows = self.db.query(SaleItem.product_id, SaleItem.quantity, SaleItem.created_at).join(
            Sale, Sale.id == SaleItem.sale_id
        ).filter(
            SaleItem.product_id.in_(list(product_ids)),
            Sale.status == SaleStatus.COMPLETED,
            SaleItem.created_at >= start,
            SaleItem.created_at <= as_of
        ).order_by(SaleItem.created_at).all()

        history = defaultdict(list)
        for r in rows:
            history[r.product_id].append(SaleObservation(
                product_id=r.product_id,
                quantity=r.quantity,
                timestamp=r.created_at
            ))
        return history

    def get_snapshots(self, products: Sequence[Product]) -> List[ProductSnapshot]:
        """Products with current stock and latest purchase cost."""
        product_ids = [p.id for p in products]
        if not product_ids:
            return []

        stock_rows = self.db.query(Batch.product_id, func.sum(Batch.quantity)).filter(
            Batch.product_id.in_(product_ids),
            Batch.status == BatchStatus.ACTIVE,
            Batch.quantity > 0
        ).group_by(Batch.product_id).all()
        stock = {pid: int(total or 0) for pid, total in stock_rows}

        latest_cost = {}
        for b in self.db.query(Batch.product_id, Batch.unit_cost).filter(
            Batch.product_id.in_(product_ids)
        ).order_by(Batch.created_at, Batch.id).all():
            latest_cost[b.product_id] = b.unit_cost

        return [
            ProductSnapshot(
                product_id=p.id,
                name=p.name,
                category=p.category,
                price=p.price,
                reorder_level=p.reorder_level or 0,
                current_stock=stock.get(p.id, 0),
                unit_cost=latest_cost.get(p.id)
            )
            for p in products
        ]

    def forecast_product(
        self,
        product_id: int,
        history_window_days: Optional[int] = None,
        as_of: Optional[datetime] = None
    ) -> ForecastResult:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise ProductNotFoundError(product_id)

        as_of = as_of or datetime.utcnow()
        window = history_window_days or settings.HISTORY_WINDOW_DAYS
        snapshot = self.get_snapshots([product])[0]
        history = self.get_sales_history([product_id], window, as_of)

        result = self.forecaster.forecast(snapshot, history.get(product_id, []), as_of, window)
        if NO_HISTORY_NOTICE in result.notices:
            logger.info("No sales history for product %s, returning zero-confidence forecast", product_id)
        return result

    def forecast_all(
        self,
        history_window_days: Optional[int] = None,
        as_of: Optional[datetime] = None
    ) -> List[ForecastResult]:
        """
        Forecast every active product.
        Large catalogues run on the process pool, small ones serially.
        """
        as_of = as_of or datetime.utcnow()
        window = history_window_days or settings.HISTORY_WINDOW_DAYS

        products = self.db.query(Product).filter(
            Product.status == ProductStatus.ACTIVE
        ).order_by(Product.id).all()
        if not products:
            return []

        snapshots = self.get_snapshots(products)
        history = self.get_sales_history([p.id for p in products], window, as_of)
        tasks = [(s, history.get(s.product_id, [])) for s in snapshots]

        if len(tasks) < settings.PARALLEL_FORECAST_MIN_PRODUCTS:
            return [self.forecaster.forecast(s, obs, as_of, window) for s, obs in tasks]

        results = {}
        try:
            pool = get_forecast_pool()
            futures = [
                pool.submit(_worker_forecast_product, self.forecaster, s, obs, as_of, window)
                for s, obs in tasks
            ]
            for future in concurrent.futures.as_completed(futures, timeout=60):
                res = future.result()
                results[res.product_id] = res
        except Exception as e:
            logger.warning("Forecast pool failed (%s), falling back to serial", e)
            results = {
                s.product_id: self.forecaster.forecast(s, obs, as_of, window)
                for s, obs in tasks
            }

        return [results[s.product_id] for s in snapshots]

    # ============== Dashboard aggregates ==============

    def demand_summary(self, forecasts: Optional[List[ForecastResult]] = None) -> dict:
        forecasts = forecasts if forecasts is not None else self.forecast_all()
        return {
            'total_products': len(forecasts),
            'high_demand': sum(1 for f in forecasts if f.demand_level == DemandLevel.HIGH),
            'medium_demand': sum(1 for f in forecasts if f.demand_level == DemandLevel.MEDIUM),
            'low_demand': sum(1 for f in forecasts if f.demand_level == DemandLevel.LOW),
            'no_demand': sum(1 for f in forecasts if f.demand_level == DemandLevel.NONE),
            'trending': sum(1 for f in forecasts if f.trend == TrendDirection.INCREASING),
            'declining': sum(1 for f in forecasts if f.trend == TrendDirection.DECLINING),
            'needs_reorder': sum(1 for f in forecasts if f.reorder.should_reorder),
            'critical_stock': sum(1 for f in forecasts if f.reorder.urgency.value == 'critical'),
        }

    def top_demand_products(self, limit: int = 10, forecasts: Optional[List[ForecastResult]] = None) -> List[ForecastResult]:
        """Highest daily average first."""
        forecasts = forecasts if forecasts is not None else self.forecast_all()
        return sorted(forecasts, key=lambda f: f.daily_average, reverse=True)[:limit]

    def trending_products(self, limit: int = 10, forecasts: Optional[List[ForecastResult]] = None) -> List[ForecastResult]:
        """Products with increasing demand, strongest increase first."""
        forecasts = forecasts if forecasts is not None else self.forecast_all()
        rising = [f for f in forecasts if f.trend == TrendDirection.INCREASING]
        return sorted(rising, key=lambda f: f.trend_percentage, reverse=True)[:limit]


# --- WORKER FUNCTIONS (Must be at module level for ProcessPoolExecutor) ---

def _worker_forecast_product(forecaster, snapshot, observations, as_of, window):
    """Forecast a single product in a worker process."""
    return forecaster.forecast(snapshot, observations, as_of, window)
