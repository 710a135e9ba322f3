"""Shared fixtures: an in-memory store, a fixed clock and seeded reference rows."""
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from retail_admin.clock import FixedClock
from retail_admin.config import settings
from retail_admin.database import build_engine, get_db
from retail_admin.dependencies import get_clock, get_store
from retail_admin.exceptions import StoreError
from retail_admin.main import app
from retail_admin.services.inventory_ledger import Location
from retail_admin.store.base import Store
from retail_admin.store.procedures import default_procedures
from retail_admin.store.sql import SqlStore

NOW = datetime(2026, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    yield engine
    engine.dispose()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def store(engine, clock):
    store = SqlStore(engine, procedures=default_procedures(clock))
    store.create_all()
    return store


@pytest.fixture
def seed(store):
    """Reference rows most tests need, returned as a dict of rows."""
    branch = store.insert("branches", {"name": "فرع المعادي", "phone": "0100000000"})[0]
    other_branch = store.insert("branches", {"name": "فرع الدقي"})[0]
    warehouse = store.insert("warehouses", {"name": "المخزن الرئيسي"})[0]
    main_record = store.insert(
        "records", {"id": settings.MAIN_RECORD_ID, "name": "السجل الرئيسي", "is_primary": True}
    )[0]
    record = store.insert("records", {"name": "درج 1", "branch_id": branch["id"]})[0]
    customer = store.insert(
        "customers", {"id": settings.DEFAULT_CUSTOMER_ID, "name": "عميل نقدي"}
    )[0]
    supplier = store.insert("suppliers", {"name": "مورد القاهرة"})[0]
    shirt = store.insert("products", {
        "name": "قميص",
        "barcode": "6221000000011",
        "price": 100,
        "cost_price": 60,
    })[0]
    mug = store.insert("products", {"name": "كوب", "price": 25, "cost_price": 10})[0]
    return {
        "branch": branch,
        "other_branch": other_branch,
        "warehouse": warehouse,
        "main_record": main_record,
        "record": record,
        "customer": customer,
        "supplier": supplier,
        "shirt": shirt,
        "mug": mug,
        "branch_location": Location.branch(branch["id"]),
        "warehouse_location": Location.warehouse(warehouse["id"]),
    }


@pytest.fixture
def make_order(store, clock):
    """Insert an order with items; ``items`` are (product, quantity, notes) tuples."""
    counter = {"n": 0}

    def _make(items, status="pending", delivery_type="pickup", updated_at=None,
              created_at=None, **values):
        counter["n"] += 1
        order = store.insert("orders", {
            "order_number": values.pop("order_number", f"ORD-{counter['n']:04d}"),
            "customer_name": "منى",
            "customer_phone": "0111111111",
            "delivery_type": delivery_type,
            "status": status,
            "total_amount": sum(p["price"] * q for p, q, _ in items),
            "created_at": created_at or clock.now(),
            "updated_at": updated_at or clock.now(),
            **values,
        })[0]
        if items:
            store.insert("order_items", [
                {
                    "order_id": order["id"],
                    "product_id": product["id"],
                    "quantity": quantity,
                    "unit_price": product["price"],
                    "notes": notes,
                }
                for product, quantity, notes in items
            ])
        return order

    return _make


class FailingStore(Store):
    """Delegating store that raises ``StoreError`` for configured calls."""

    def __init__(self, inner: Store):
        self.inner = inner
        self.rules = []
        self.calls = []

    def fail(self, method, table, when=None):
        self.rules.append((method, table, when))

    def _check(self, method, table, *args):
        self.calls.append((method, table))
        for rule_method, rule_table, when in self.rules:
            if rule_method == method and rule_table == table and (when is None or when(*args)):
                raise StoreError(f"simulated {method} failure on {table}")

    def select(self, table, filters=None, order_by=None, limit=None, expand=None):
        self._check("select", table, filters)
        return self.inner.select(table, filters, order_by, limit, expand)

    def insert(self, table, rows):
        self._check("insert", table, rows)
        return self.inner.insert(table, rows)

    def update(self, table, values, filters):
        self._check("update", table, values, filters)
        return self.inner.update(table, values, filters)

    def increment(self, table, column, delta, filters, floor=0):
        self._check("increment", table, filters)
        return self.inner.increment(table, column, delta, filters, floor)

    def delete(self, table, filters):
        self._check("delete", table, filters)
        return self.inner.delete(table, filters)

    def subscribe(self, table, event, callback, column_filter=None):
        return self.inner.subscribe(table, event, callback, column_filter)

    def rpc(self, name, params=None):
        return self.inner.rpc(name, params)


@pytest.fixture
def failing_store(store):
    return FailingStore(store)


@pytest.fixture
def client(engine, store, clock):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_db] = override_get_db
    # No context manager: the lifespan (and its background sweeper) stays off.
    yield TestClient(app)
    app.dependency_overrides.clear()
