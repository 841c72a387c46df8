"""
Pytest fixtures for docledger backend tests.

Provides an in-memory database, per-test table wipes, and tenant/party/stock
fixtures.
"""

import pytest

from docledger import create_app
from docledger.extensions import db
from docledger.services import inventory_service, tenant_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_RETRY_BACKOFF_SECONDS': 0,
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
        # Clear all data but keep schema. Core deletes skip the ORM
        # immutability listeners on inventory movements.
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def tenant(db_session):
    """Tenant A (first tenant)."""
    return tenant_service.create_tenant(name="Acme Corp", code="acme")


@pytest.fixture(scope='function')
def other_tenant(db_session):
    """Tenant B (second tenant)."""
    return tenant_service.create_tenant(name="Beta Inc", code="beta")


@pytest.fixture(scope='function')
def client_party(tenant):
    return tenant_service.create_client(tenant_id=tenant.id, name="Jane's Hardware", email="jane@example.com")


@pytest.fixture(scope='function')
def supplier(tenant):
    return tenant_service.create_supplier(tenant_id=tenant.id, name="Bolt Wholesale")


@pytest.fixture(scope='function')
def widget(tenant):
    """Tracked stock item, 15% VAT, sells at R20.00."""
    return inventory_service.create_stock_item(
        tenant_id=tenant.id,
        sku="W-001",
        name="Widget",
        vat_rate_bps=1500,
        reorder_level=5,
        sale_price_cents=2000,
    )


@pytest.fixture(scope='function')
def gadget(tenant):
    return inventory_service.create_stock_item(
        tenant_id=tenant.id,
        sku="G-001",
        name="Gadget",
        vat_rate_bps=1500,
        sale_price_cents=5000,
    )
