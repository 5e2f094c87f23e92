"""
Pytest fixtures for poscore backend tests.

Provides an in-memory database, a per-test table wipe, ledger settings and
small catalog factories.
"""

import pytest

from poscore import create_app
from poscore.extensions import db
from poscore.services import catalog_service, loyalty_service
from poscore.settings import LedgerSettings


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOYALTY_ENABLED': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def settings():
    return LedgerSettings()


@pytest.fixture
def loyalty_settings():
    return LedgerSettings(loyalty_enabled=True)


@pytest.fixture
def make_product(db_session):
    """Factory: make_product(name, price_cents, stock=..., ...) -> Product."""
    def _make(name="Item", price_cents=1000, **kwargs):
        return catalog_service.create_product(name, price_cents, **kwargs)
    return _make


@pytest.fixture
def make_bundle(db_session):
    """Factory: make_bundle(name, price_cents, [(component, qty), ...]) -> Product."""
    def _make(name, price_cents, components):
        return catalog_service.create_product(
            name,
            price_cents,
            is_bundle=True,
            bundle_items=[{"component_id": c.id, "quantity": q} for c, q in components],
        )
    return _make


@pytest.fixture
def make_customer(db_session):
    def _make(name="Aisha", **kwargs):
        return catalog_service.create_customer(name, **kwargs)
    return _make


@pytest.fixture
def customer(make_customer):
    return make_customer("Walk-in Credit Customer")


@pytest.fixture
def tiers(db_session):
    """Bronze (0, x1), Silver (500, x1.25), Gold (2000, x1.5)."""
    return {
        "bronze": loyalty_service.create_tier("Bronze", 0, 10000, "#cd7f32"),
        "silver": loyalty_service.create_tier("Silver", 500, 12500, "#c0c0c0"),
        "gold": loyalty_service.create_tier("Gold", 2000, 15000, "#ffd700"),
    }
