"""
Pytest fixtures for StoreDesk backend tests.

Provides the app on an in-memory database, a per-test table wipe, two tenant
businesses, one logged-in user per role, and a seeded product.
"""

import pytest

from storedesk import create_app
from storedesk.config import TestConfig
from storedesk.extensions import db
from storedesk.models import Customer
from storedesk.services import auth_service, products_service, session_service


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

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
    """Empty every table before the test runs."""
    with app.app_context():
        db.session.rollback()
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        db.session.rollback()


@pytest.fixture(scope='function')
def business_a(db_session):
    """Business A (first tenant) with its ADMIN owner."""
    business, _admin = auth_service.signup(
        business_name="Corner Shop A",
        username="owner_a",
        email="owner@a.test",
        password=PASSWORD,
    )
    return business


@pytest.fixture(scope='function')
def business_b(db_session):
    """Business B (second tenant) with its ADMIN owner."""
    business, _admin = auth_service.signup(
        business_name="Kiosk B",
        username="owner_b",
        email="owner@b.test",
        password=PASSWORD,
    )
    return business


def _user(business, role: str):
    if role == "ADMIN":
        return next(u for u in business.users if u.role == "ADMIN")
    return auth_service.create_user(
        business.id,
        username=f"{role.lower()}_{business.id}",
        email=f"{role.lower()}@{business.id}.test",
        password=PASSWORD,
        role=role,
    )


@pytest.fixture(scope='function')
def admin_user(business_a):
    return _user(business_a, "ADMIN")


@pytest.fixture(scope='function')
def manager_user(business_a):
    return _user(business_a, "MANAGER")


@pytest.fixture(scope='function')
def cashier_user(business_a):
    return _user(business_a, "CASHIER")


@pytest.fixture(scope='function')
def sales_user(business_a):
    return _user(business_a, "SALES")


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def login_headers(user) -> dict:
    _session, token = session_service.create_session(user)
    return auth_headers(token)


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return login_headers(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return login_headers(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return login_headers(cashier_user)


@pytest.fixture(scope='function')
def sales_headers(sales_user):
    return login_headers(sales_user)


@pytest.fixture(scope='function')
def product_p1(business_a):
    """P1: 50 on hand, buys at 1.50, sells at 2.50."""
    return products_service.create_product(business_a.id, {
        "name": "P1",
        "quantity": 50,
        "buy_price_cents": 150,
        "sell_price_cents": 250,
        "category": "Snacks",
    })


@pytest.fixture(scope='function')
def empty_product(business_a):
    """A product with no ledger history, for tests that need past timestamps."""
    return products_service.create_product(business_a.id, {
        "name": "Backdated",
        "quantity": 0,
        "buy_price_cents": 100,
        "sell_price_cents": 300,
    })


@pytest.fixture(scope='function')
def customer_a(db_session, business_a):
    customer = Customer(business_id=business_a.id, first_name="Ana", last_name="Diaz", phone="555-0100")
    db_session.add(customer)
    db_session.commit()
    return customer
