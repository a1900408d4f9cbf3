import pytest
from datetime import datetime, timedelta

from medcure.models import ReorderRecommendation, UrgencyLevel
from medcure.services.batches import BatchLedgerService
from medcure.services.forecasting.reorder_point import (
    NO_CONSUMPTION_DAYS, calculate_safety_stock, calculate_reorder_point,
    calculate_days_of_stock, get_stock_status, recommend_reorder, no_history_suggestion
)
from medcure.services.reorder import ReorderService

AS_OF = datetime(2025, 3, 31, 18, 0)


def test_safety_stock_formula():
    assert calculate_safety_stock(5.0, 4.0, 1.65) == pytest.approx(16.5)
    assert calculate_safety_stock(0.0, 4.0) == 0.0
    assert calculate_safety_stock(5.0, 0.0) == 0.0


def test_reorder_point_formula():
    assert calculate_reorder_point(5.0, 7, 16.5) == pytest.approx(51.5)


def test_days_of_stock_without_consumption():
    assert calculate_days_of_stock(40, 0.0) == NO_CONSUMPTION_DAYS
    assert calculate_days_of_stock(40, 4.0) == 10.0


@pytest.mark.parametrize("stock, days, status", [
    (0, 0.0, "out_of_stock"),
    (5, 2.0, "critical"),
    (20, 6.0, "low"),
    (40, 12.0, "moderate"),
    (90, 30.0, "good"),
])
def test_stock_status(stock, days, status):
    assert get_stock_status(stock, days) == status


@pytest.mark.parametrize("stock, urgency, quantity", [
    (0, UrgencyLevel.CRITICAL, 70),
    (10, UrgencyLevel.HIGH, 60),
    (30, UrgencyLevel.MEDIUM, 40),
    (35, UrgencyLevel.MEDIUM, 35),
    (100, UrgencyLevel.NONE, 0),
])
def test_urgency_against_reorder_point(stock, urgency, quantity):
    suggestion = recommend_reorder(current_stock=stock, daily_usage=5.0, demand_variance=0.0)

    assert suggestion.reorder_point == 35.0
    assert suggestion.urgency == urgency
    assert suggestion.suggested_quantity == quantity
    assert suggestion.should_reorder == (urgency != UrgencyLevel.NONE)


def test_manual_reorder_level_gives_low_urgency():
    suggestion = recommend_reorder(current_stock=100, daily_usage=5.0, demand_variance=0.0, reorder_level=120)

    assert suggestion.urgency == UrgencyLevel.LOW
    assert suggestion.suggested_quantity == 20


def test_variance_raises_reorder_point():
    suggestion = recommend_reorder(current_stock=40, daily_usage=5.0, demand_variance=4.0, unit_cost=2.5)

    assert suggestion.safety_stock == 16.5
    assert suggestion.reorder_point == 51.5
    assert suggestion.urgency == UrgencyLevel.MEDIUM
    assert suggestion.suggested_quantity == 63
    assert suggestion.estimated_cost == 157.5


def test_no_history_suggestion_is_advisory_only():
    suggestion = no_history_suggestion(current_stock=0)

    assert not suggestion.should_reorder
    assert suggestion.urgency == UrgencyLevel.NONE
    assert suggestion.low_confidence
    assert suggestion.stock_status == "out_of_stock"


# ============== ReorderService ==============

@pytest.fixture
def low_stock_product(db, make_product):
    """Sells 5 a day for 30 days, 10 units left."""
    product = make_product()
    ledger = BatchLedgerService(db)
    ledger.receive_batch(product.id, 160, 30.0, received_at=AS_OF - timedelta(days=40))
    for i in range(30):
        ledger.process_sale([(product.id, 5)], sold_at=AS_OF - timedelta(days=i))
    return product


def test_generate_and_save_recommendations(db, low_stock_product, make_product):
    well_stocked = make_product(name="Vitamin C")
    BatchLedgerService(db).receive_batch(well_stocked.id, 100, 5.0, received_at=AS_OF - timedelta(days=40))
    service = ReorderService(db)

    recommendations = service.generate_recommendations(as_of=AS_OF)
    assert [f.product_id for f in recommendations] == [low_stock_product.id]

    assert service.save_recommendations(recommendations) == 1
    active = service.get_active()
    assert len(active) == 1
    assert active[0].urgency == UrgencyLevel.HIGH
    assert active[0].suggested_quantity == 60
    assert service.get_summary() == {'total_items': 1, 'critical': 0, 'high': 1, 'medium': 0, 'low': 0}


def test_saving_replaces_previous_list(db, low_stock_product):
    service = ReorderService(db)
    recommendations = service.generate_recommendations(as_of=AS_OF)

    service.save_recommendations(recommendations)
    service.save_recommendations(recommendations)

    assert db.query(ReorderRecommendation).count() == 2
    assert len(service.get_active()) == 1


def test_recommendations_sorted_by_urgency(db, low_stock_product, make_product):
    empty = make_product(name="Out Of Stock Item")
    ledger = BatchLedgerService(db)
    ledger.receive_batch(empty.id, 10, 1.0, received_at=AS_OF - timedelta(days=20))
    ledger.process_sale([(empty.id, 10)], sold_at=AS_OF - timedelta(days=1))

    recommendations = ReorderService(db).generate_recommendations(as_of=AS_OF)

    assert [f.reorder.urgency for f in recommendations] == [UrgencyLevel.CRITICAL, UrgencyLevel.HIGH]


def test_background_refresh_task(db, session_factory, make_product, monkeypatch):
    from contextlib import contextmanager
    from medcure import tasks

    @contextmanager
    def test_scope():
        session = session_factory()
        try:
            yield session
            session.commit()
        finally:
            session.close()

    monkeypatch.setattr(tasks, "session_scope", test_scope)

    product = make_product()
    ledger = BatchLedgerService(db)
    ledger.receive_batch(product.id, 200, 30.0)
    ledger.process_sale([(product.id, 190)])

    result = tasks.refresh_reorder_recommendations.apply().get()

    assert result == {"products_forecasted": 1, "reorder_recs_generated": 1, "status": "completed"}
    db.expire_all()
    assert db.query(ReorderRecommendation).filter(ReorderRecommendation.is_active == True).count() == 1
