"""
Pytest fixtures for inventory backend tests.

Provides an in-memory database, one user per role, a supplier, a product
factory and bearer-token headers obtained through the real login endpoint.
"""

from decimal import Decimal

import pytest
from inventory_platform import create_app
from inventory_platform.extensions import db
from inventory_platform.models import Product, Supplier
from inventory_platform.services.auth_service import create_user

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret-key',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'SALE_RETRY_BACKOFF_SECONDS': 0,
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
    """Empty every table before each test."""
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()
    db.session.remove()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user("admin", "admin@example.com", PASSWORD, "Admin")


@pytest.fixture(scope='function')
def inventory_user(db_session):
    return create_user("stocker", "stocker@example.com", PASSWORD, "Inventory")


@pytest.fixture(scope='function')
def sales_user(db_session):
    return create_user("seller", "seller@example.com", PASSWORD, "Sales")


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(
        name="Acme Wholesale",
        contact_name="Wile E. Coyote",
        phone="555-0100",
        email="orders@acme.example",
    )
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def product_factory(db_session, supplier, admin_user):
    """Create products with sensible defaults; override any column by keyword."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        values = {
            "sku": f"SKU-{counter['n']:04d}",
            "name": f"Product {counter['n']}",
            "price": Decimal("10.00"),
            "stock_quantity": 10,
            "min_stock_level": 5,
            "supplier_id": supplier.id,
            "created_by_user_id": admin_user.id,
            "is_active": True,
        }
        values.update(overrides)
        product = Product(**values)
        db_session.add(product)
        db_session.commit()
        return product

    return _make


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))


@pytest.fixture(scope='function')
def inventory_headers(client, inventory_user):
    return auth_headers(get_auth_token(client, inventory_user.username))


@pytest.fixture(scope='function')
def sales_headers(client, sales_user):
    return auth_headers(get_auth_token(client, sales_user.username))
