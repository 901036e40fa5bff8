"""
Pytest fixtures for kirana ledger tests.

Provides a file-backed test database per test, the LedgerStore, a manual
refresh executor for deterministic live-query tests, and seed helpers.
"""

import functools

import pytest

from kirana import create_app, get_store
from kirana.extensions import db
from kirana.schema import ensure_schema
from kirana.services.inventory_service import add_item
from kirana.services.party_service import add_customer, add_vendor


class ManualExecutor:
    """
    Collects submitted refreshes instead of running them.

    Tests decide when live queries re-run by calling run_all(), so coalescing
    and cancellation can be asserted without timing.
    """

    def __init__(self):
        self.pending = []

    def submit(self, fn, *args, **kwargs):
        self.pending.append(functools.partial(fn, *args, **kwargs))

    def run_all(self) -> int:
        ran = 0
        while self.pending:
            self.pending.pop(0)()
            ran += 1
        return ran


@pytest.fixture
def make_app(tmp_path):
    """Factory: build an app on a fresh sqlite file, schema created."""
    apps = []

    def _make(create_schema=True, **overrides):
        config = {
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / f'kirana-{len(apps)}.sqlite3'}",
            'WRITE_RETRY_BACKOFF': 0.0,
            'REFRESH_COALESCE_WINDOW': 0.0,
        }
        config.update(overrides)
        app = create_app(config)
        if create_schema:
            with app.app_context():
                ensure_schema(db.engine)
        apps.append(app)
        return app

    yield _make

    for app in apps:
        get_store(app).close()
        with app.app_context():
            db.engine.dispose()


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def app(make_app, executor):
    """App whose live queries only refresh when the test runs the executor."""
    return make_app(REFRESH_EXECUTOR=executor)


@pytest.fixture
def store(app):
    return get_store(app)


@pytest.fixture
def vendor(store):
    return add_vendor(store, name="ITC Limited", phone="9876543211")


@pytest.fixture
def customer(store):
    return add_customer(store, name="Sharma Ji", phone="9988776655")


@pytest.fixture
def dal(store, vendor):
    """Toor Dal: stock 45, price 150, reorder at 10."""
    return add_item(
        store,
        name="Toor Dal Premium", price=150.0, cost_price=120.0, stock=45,
        category="Staples", rack_location="Rack A1", barcode="8901234567890",
        reorder_point=10, vendor_id=vendor,
    )


@pytest.fixture
def oil(store):
    """Sun oil: stock 5, price 155, reorder at 10 (already low)."""
    return add_item(
        store,
        name="Fortune Sun Oil 1L", price=155.0, cost_price=135.0, stock=5,
        category="Oil", rack_location="Rack B2", gst_percentage=5.0,
        barcode="8901234567891", reorder_point=10,
    )
