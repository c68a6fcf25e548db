"""
Pytest fixtures for salesapi backend tests.

Provides an in-memory application per test, seeded roles/users/products,
and bearer-token headers for each role.
"""

from decimal import Decimal
from types import SimpleNamespace

import pytest

from salesapi import create_app
from salesapi.extensions import db
from salesapi.models import Order, Product, Warehouse
from salesapi.services import auth_service, role_service, token_service


TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "TOKEN_SECRET_KEY": "test-secret",
    "TOKEN_TTL_SECONDS": 3600,
    "BCRYPT_ROUNDS": 4,
    "LOCK_TIMEOUT_MS": 2000,
}

PASSWORD = "Password123"


@pytest.fixture(scope='function')
def app():
    """Create application with a fresh schema for every test."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def app_ctx(app):
    """Push an app context for tests that call services directly."""
    with app.app_context():
        yield app
        db.session.rollback()


@pytest.fixture(scope='function')
def seed(app):
    """
    Default roles, one user per role, two products and a warehouse.

    Returns plain ids/values (no ORM instances) so tests can use them from
    any app context.
    """
    with app.app_context():
        role_service.create_default_roles()

        admin = auth_service.create_user("admin_user", PASSWORD, roles=["admin"])
        vendedor = auth_service.create_user("vendedor_user", PASSWORD, roles=["vendedor"])
        almacen = auth_service.create_user("almacen_user", PASSWORD, roles=["almacen"])

        warehouse = Warehouse(code="MAIN", name="Main Warehouse")
        widget = Product(sku="WID-001", name="Widget", list_price=Decimal("10.00"))
        gadget = Product(sku="GAD-001", name="Gadget", list_price=Decimal("5.00"))
        db.session.add_all([warehouse, widget, gadget])
        db.session.commit()

        return SimpleNamespace(
            admin_id=admin.id,
            vendedor_id=vendedor.id,
            almacen_id=almacen.id,
            warehouse_id=warehouse.id,
            widget_id=widget.id,
            gadget_id=gadget.id,
        )


@pytest.fixture(scope='function')
def order_id(app, seed):
    """An empty OPEN order with total 0."""
    return create_order(app)


def create_order(app, total="0.00") -> int:
    """Helper to insert an order with the given starting total."""
    with app.app_context():
        order = Order(total=Decimal(total), status="OPEN")
        db.session.add(order)
        db.session.commit()
        return order.id


def token_for(app, user_id: int, username: str, roles: list[str]) -> str:
    """Helper to issue a bearer token without going through login."""
    with app.app_context():
        return token_service.issue_token(user_id, username, roles)


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(app, seed):
    return auth_headers(token_for(app, seed.admin_id, "admin_user", ["admin"]))


@pytest.fixture(scope='function')
def vendedor_headers(app, seed):
    return auth_headers(token_for(app, seed.vendedor_id, "vendedor_user", ["vendedor"]))


@pytest.fixture(scope='function')
def almacen_headers(app, seed):
    return auth_headers(token_for(app, seed.almacen_id, "almacen_user", ["almacen"]))
