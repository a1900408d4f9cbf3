"""
HTTP surface: status codes, error bodies and response shapes.
"""
import pytest


@pytest.fixture
def product_id(client):
    response = client.post("/api/products", json={
        "name": "Paracetamol 500mg",
        "category": "Pain Relief",
        "price": 50.0
    })
    assert response.status_code == 201
    pid = response.json()["id"]

    for quantity, cost, expiry in [(100, 30.0, "2025-12-01"), (100, 35.0, "2025-12-15")]:
        r = client.post(f"/api/products/{pid}/batches", json={
            "quantity": quantity,
            "unit_cost": cost,
            "expiry_date": expiry
        })
        assert r.status_code == 201
    return pid


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_product_reports_current_stock(client, product_id):
    data = client.get(f"/api/products/{product_id}").json()

    assert data["current_stock"] == 200
    assert data["price"] == 50.0


def test_list_batches_in_fefo_order(client, product_id):
    batches = client.get(f"/api/products/{product_id}/batches").json()

    assert [b["expiry_date"] for b in batches] == ["2025-12-01", "2025-12-15"]
    assert all(b["status"] == "active" for b in batches)


def test_allocate_returns_cost_and_profit(client, product_id):
    response = client.post(f"/api/products/{product_id}/allocate", json={"quantity": 150})

    assert response.status_code == 200
    data = response.json()
    assert data["total_revenue"] == 7500.0
    assert data["total_cost"] == 4750.0
    assert data["gross_profit"] == 2750.0
    assert data["remaining_stock"] == 50
    assert [a["quantity"] for a in data["allocations"]] == [100, 50]

    depleted = client.get(f"/api/products/{product_id}/batches", params={"include_depleted": True}).json()
    assert [b["status"] for b in depleted] == ["depleted", "active"]


def test_allocate_insufficient_stock_is_conflict(client, product_id):
    response = client.post(f"/api/products/{product_id}/allocate", json={"quantity": 500})

    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "INSUFFICIENT_STOCK"
    assert client.get(f"/api/products/{product_id}").json()["current_stock"] == 200


def test_allocate_zero_quantity_is_unprocessable(client, product_id):
    response = client.post(f"/api/products/{product_id}/allocate", json={"quantity": 0})

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "INVALID_QUANTITY"


def test_unknown_product_is_not_found(client):
    response = client.post("/api/products/999/allocate", json={"quantity": 1})

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "PRODUCT_NOT_FOUND"


def test_price_update_is_manual(client, product_id):
    response = client.patch(f"/api/products/{product_id}/price", json={"price": 55.0})

    assert response.status_code == 200
    assert response.json()["price"] == 55.0


def test_sale_and_its_allocations(client, product_id):
    response = client.post("/api/sales", json={"items": [{"product_id": product_id, "quantity": 120}]})

    assert response.status_code == 201
    sale = response.json()
    assert sale["total_amount"] == 6000.0
    assert sale["total_cogs"] == 3700.0

    allocations = client.get(f"/api/sales/{sale['sale_id']}/allocations").json()
    assert [a["quantity"] for a in allocations] == [100, 20]


def test_forecast_for_new_product(client, product_id):
    response = client.get(f"/api/products/{product_id}/forecast")

    assert response.status_code == 200
    data = response.json()
    assert data["confidence"] == 0.0
    assert data["demand_level"] == "none"
    assert data["trend"] == "stable"
    assert data["notices"] == ["NO_HISTORY"]
    assert len(data["forecast"]) == 30


def test_forecast_after_sales(client, product_id):
    client.post("/api/sales", json={"items": [{"product_id": product_id, "quantity": 30}]})

    data = client.get(f"/api/products/{product_id}/forecast").json()

    assert data["data_points"] == 1
    assert data["daily_average"] == 30.0
    assert data["demand_level"] == "high"
    assert data["reorder"]["urgency"] in {"critical", "high", "medium", "low", "none"}


def test_forecast_dashboard_endpoints(client, product_id):
    summary = client.get("/api/forecasts/summary").json()

    assert summary["total_products"] == 1
    assert summary["no_demand"] == 1
    assert len(client.get("/api/forecasts/top").json()) == 1
    assert client.get("/api/forecasts/trending").json() == []


def test_reorder_list_and_summary(client, product_id):
    client.post("/api/sales", json={"items": [{"product_id": product_id, "quantity": 190}]})

    reorder = client.get("/api/reorder-list").json()

    assert reorder["total_items"] == 1
    assert reorder["items"][0]["product_id"] == product_id
    assert reorder["items"][0]["urgency"] == "high"

    summary = client.get("/api/reorder-summary").json()
    assert summary["total_items"] == 1
    assert summary["high"] == 1


def test_run_forecast_inline(client, product_id):
    data = client.post("/api/run-forecast").json()

    assert data["success"] is True
    assert data["products_forecasted"] == 1
    assert data["reorder_recs_generated"] == 0
