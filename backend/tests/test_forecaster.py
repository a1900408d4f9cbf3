"""
End-to-end demand forecasting: pure pipeline and the database-backed service.
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from medcure.config.settings import Settings
from medcure.models import UrgencyLevel
from medcure.services.batches import BatchLedgerService
from medcure.services.exceptions import ProductNotFoundError
from medcure.services.forecasting import (
    DemandForecaster, ForecasterService, ProductSnapshot, SaleObservation,
    DemandLevel, TrendDirection, NO_HISTORY_NOTICE
)

AS_OF = datetime(2025, 3, 31, 18, 0)


def steady_sales(days=30, quantity=5, as_of=AS_OF):
    return [
        SaleObservation(1, quantity, as_of - timedelta(days=i))
        for i in range(days)
    ]


@pytest.fixture
def forecaster():
    return DemandForecaster(Settings())


@pytest.fixture
def snapshot():
    return ProductSnapshot(
        product_id=1,
        name="Paracetamol 500mg",
        category="Pain Relief",
        price=50.0,
        current_stock=20,
        unit_cost=30.0
    )


def test_no_history_returns_zero_confidence_result(forecaster, snapshot):
    result = forecaster.forecast(snapshot, [], AS_OF)

    assert result.confidence == 0.0
    assert result.demand_level == DemandLevel.NONE
    assert result.trend == TrendDirection.STABLE
    assert result.notices == [NO_HISTORY_NOTICE]
    assert len(result.forecast) == 30
    assert result.forecast_total == 0.0
    assert not result.reorder.should_reorder
    assert result.reorder.low_confidence


def test_history_outside_window_counts_as_none(forecaster, snapshot):
    old = [SaleObservation(1, 50, AS_OF - timedelta(days=200))]

    result = forecaster.forecast(snapshot, old, AS_OF, history_window_days=90)

    assert result.data_points == 0
    assert NO_HISTORY_NOTICE in result.notices


def test_window_filter_uses_utc_days(forecaster, snapshot):
    evening = datetime(2025, 3, 30, 22, 0, tzinfo=timezone(timedelta(hours=-5)))
    as_of = datetime(2025, 3, 31, 20, 0, tzinfo=timezone(timedelta(hours=2)))

    result = forecaster.forecast(snapshot, [SaleObservation(1, 4, evening)], as_of, history_window_days=1)

    assert result.as_of == AS_OF
    assert result.data_points == 1
    assert result.daily_average == 4.0


def test_steady_demand_forecast(forecaster, snapshot):
    result = forecaster.forecast(snapshot, steady_sales(), AS_OF)

    assert result.data_points == 30
    assert result.daily_average == 5.0
    assert result.weekly_average == 5.0
    assert result.quarterly_average == 5.0
    assert result.monthly_average == 150.0
    assert result.demand_level == DemandLevel.MEDIUM
    assert result.trend == TrendDirection.STABLE
    assert result.trend_percentage == 0.0
    assert not result.is_seasonal
    assert result.confidence == 0.7333
    assert result.notices == []

    assert len(result.forecast) == 30
    assert all(p.predicted_units == 5.0 for p in result.forecast)
    assert all(p.worst_case <= p.predicted_units <= p.best_case for p in result.forecast)
    assert result.forecast_total == 150.0


def test_steady_demand_reorder(forecaster, snapshot):
    reorder = forecaster.forecast(snapshot, steady_sales(), AS_OF).reorder

    assert reorder.safety_stock == 0.0
    assert reorder.reorder_point == 35.0
    assert reorder.urgency == UrgencyLevel.MEDIUM
    assert reorder.suggested_quantity == 50
    assert reorder.estimated_cost == 1500.0
    assert reorder.days_of_stock == 4.0


def test_forecast_is_repeatable(forecaster, snapshot):
    observations = steady_sales() + [SaleObservation(1, 12, AS_OF - timedelta(days=3, hours=4))]

    first = forecaster.forecast(snapshot, observations, AS_OF)
    second = forecaster.forecast(snapshot, observations, AS_OF)

    assert first == second


def test_seasonal_category_scales_forecast(forecaster):
    antibiotic = ProductSnapshot(1, "Amoxicillin 250mg", "Antibiotics", 15.0, current_stock=500)
    as_of = datetime(2025, 1, 31, 18, 0)

    result = forecaster.forecast(antibiotic, steady_sales(as_of=as_of), as_of)

    assert result.is_seasonal
    assert result.seasonality_method == "static-category"
    assert result.seasonality_factor == 1.3
    by_day = {p.date: p.predicted_units for p in result.forecast}
    assert by_day[date(2025, 2, 1)] == 6.5
    assert by_day[date(2025, 3, 1)] == 4.5


def test_increasing_trend(forecaster, snapshot):
    observations = steady_sales(days=7, quantity=10) + [
        SaleObservation(1, 5, AS_OF - timedelta(days=i)) for i in range(7, 14)
    ]

    result = forecaster.forecast(snapshot, observations, AS_OF)

    assert result.trend == TrendDirection.INCREASING
    assert result.trend_percentage == 100.0


# ============== ForecasterService ==============

def record_daily_sales(db, product_id, days, quantity, as_of=AS_OF):
    ledger = BatchLedgerService(db)
    for i in range(days):
        ledger.process_sale([(product_id, quantity)], sold_at=as_of - timedelta(days=i))


def test_service_forecasts_from_recorded_sales(db, make_product):
    product = make_product()
    BatchLedgerService(db).receive_batch(product.id, 160, 30.0, received_at=AS_OF - timedelta(days=40))
    record_daily_sales(db, product.id, 30, 5)

    result = ForecasterService(db).forecast_product(product.id, as_of=AS_OF)

    assert result.data_points == 30
    assert result.daily_average == 5.0
    assert result.current_stock == 10
    assert result.reorder.urgency == UrgencyLevel.HIGH
    assert result.reorder.suggested_quantity == 60


def test_service_forecast_is_repeatable(db, make_product):
    product = make_product()
    BatchLedgerService(db).receive_batch(product.id, 500, 30.0, received_at=AS_OF - timedelta(days=40))
    record_daily_sales(db, product.id, 10, 3)
    service = ForecasterService(db)

    assert service.forecast_product(product.id, as_of=AS_OF) == service.forecast_product(product.id, as_of=AS_OF)


def test_service_new_product_has_no_history(db, make_product):
    product = make_product(name="New Syrup")

    result = ForecasterService(db).forecast_product(product.id, as_of=AS_OF)

    assert result.confidence == 0.0
    assert NO_HISTORY_NOTICE in result.notices


def test_service_unknown_product(db):
    with pytest.raises(ProductNotFoundError):
        ForecasterService(db).forecast_product(12345)


def test_service_aggregates(db, make_product):
    busy = make_product(name="Busy")
    quiet = make_product(name="Quiet")
    ledger = BatchLedgerService(db)
    ledger.receive_batch(busy.id, 1000, 10.0, received_at=AS_OF - timedelta(days=40))
    ledger.receive_batch(quiet.id, 100, 10.0, received_at=AS_OF - timedelta(days=40))
    record_daily_sales(db, busy.id, 30, 12)

    service = ForecasterService(db)
    forecasts = service.forecast_all(as_of=AS_OF)
    summary = service.demand_summary(forecasts)

    assert summary["total_products"] == 2
    assert summary["high_demand"] == 1
    assert summary["no_demand"] == 1
    assert [f.product_id for f in service.top_demand_products(1, forecasts)] == [busy.id]
    assert service.trending_products(forecasts=forecasts) == []
