"""
Shared fixtures: in-memory SQLite database, sessions and an API client.
"""
import pytest
from datetime import date, datetime
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medcure.main import app
from medcure.models import Product, build_engine, create_tables, get_db
from medcure.services.batches import BatchLedgerService


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = build_engine("sqlite://", poolclass=StaticPool)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    """TestClient whose requests use the in-memory database."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    def _make(name="Paracetamol 500mg", category="Pain Relief", price=50.0, reorder_level=0):
        product = Product(name=name, category=category, price=price, reorder_level=reorder_level)
        db.add(product)
        db.commit()
        db.refresh(product)
        return product
    return _make


@pytest.fixture
def stocked_product(db, make_product):
    """
    Price 50 with two batches:
    A: 100 units at 30, expires 2025-12-01
    B: 100 units at 35, expires 2025-12-15
    """
    product = make_product()
    ledger = BatchLedgerService(db)
    ledger.receive_batch(
        product.id, 100, 30.0,
        expiry_date=date(2025, 12, 1),
        received_at=datetime(2025, 1, 10, 9, 0)
    )
    ledger.receive_batch(
        product.id, 100, 35.0,
        expiry_date=date(2025, 12, 15),
        received_at=datetime(2025, 1, 10, 11, 0)
    )
    return product
