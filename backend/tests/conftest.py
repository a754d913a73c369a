"""
Pytest fixtures for tiendapos backend tests.

Provides test database setup, user/product/client factories, and test client.
"""

from datetime import datetime

import pytest

from tiendapos import create_app
from tiendapos.config import TestingConfig
from tiendapos.extensions import db
from tiendapos.models import Client, Product, Sale, User
from tiendapos.models.auth import CAP_CREATE_SALE, CAP_MANAGE_CASH


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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


@pytest.fixture(scope='function')
def admin(db_session):
    user = User(username="admin", name="Administrador", is_admin=True, capabilities=[])
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier(db_session):
    """Non-admin operator: can sell and manage cash, cannot void or close."""
    user = User(
        username="cajero",
        name="Ana Cajera",
        is_admin=False,
        capabilities=[CAP_CREATE_SALE, CAP_MANAGE_CASH],
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(description, price_cents, stock, cost_cents=0, min_stock=5)."""
    def _make(description="Producto", sale_price_cents=1000, stock=10, purchase_price_cents=0, min_stock=5, barcode=None):
        product = Product(
            barcode=barcode,
            description=description,
            sale_price_cents=sale_price_cents,
            purchase_price_cents=purchase_price_cents,
            stock=stock,
            min_stock=min_stock,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product_a(make_product):
    """Price 10.00, cost 6.00."""
    return make_product("Producto A", 1000, 10, purchase_price_cents=600, barcode="A-001")


@pytest.fixture(scope='function')
def product_b(make_product):
    """Price 5.00, cost 3.50."""
    return make_product("Producto B", 500, 10, purchase_price_cents=350, barcode="B-001")


@pytest.fixture(scope='function')
def registered_client(db_session):
    client = Client(name="María López", phone="5512345678")
    db_session.add(client)
    db_session.commit()
    return client


def set_sale_time(sale_id: int, when: datetime):
    """Move a posted sale in time (period-boundary tests)."""
    sale = db.session.get(Sale, sale_id)
    sale.created_at = when
    db.session.commit()


def actor_headers(user) -> dict:
    """Helper to create X-User-Id headers."""
    return {'X-User-Id': str(user.id)}
