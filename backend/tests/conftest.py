"""
Pytest fixtures for multishop backend tests.

Provides an in-memory database, a clean slate per test, seeded shops,
products and principals, and helpers for authenticated API calls.
"""

from types import SimpleNamespace

import pytest

from multishop import create_app
from multishop.extensions import db
from multishop.services import identity_service, inventory_service, record_store
from multishop.services.app_state import get_registry
from multishop.services.identity_service import Principal

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'LOCAL_CACHE_DIR': str(tmp_path_factory.mktemp('blob_cache')),
        'STORE_RETRY_ATTEMPTS': 3,
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
    """Empty every table and drop open application states."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    get_registry().clear()
    app.config['INVENTORY_ALLOW_NEGATIVE_STOCK'] = True

    yield db.session

    db.session.rollback()


def make_principal(email: str, role: str, shop_id: str | None = None, name: str | None = None) -> Principal:
    """Identity account plus user record, the way staff are provisioned."""
    account_id = identity_service.create_account(email, PASSWORD)
    record_store.create("users", id=account_id, email=email, name=name, role=role, shop_id=shop_id)
    return Principal(id=account_id, email=email, role=role, shop_id=shop_id)


@pytest.fixture(scope='function')
def seed(db_session):
    """
    Two shops, two products and one principal per role.

    shop_a: manager_a, employee_a
    shop_b: manager_b
    riders: rider_1, rider_2, rider_3
    """
    shop_a = record_store.create("shops", name="Shop A", location="North Street")
    shop_b = record_store.create("shops", name="Shop B", location="South Street")
    widget = record_store.create("products", name="Widget", category="Tools", price_cents=1000)
    gadget = record_store.create("products", name="Gadget", category="Electronics", price_cents=2550)

    return SimpleNamespace(
        shop_a=shop_a.id,
        shop_b=shop_b.id,
        widget=widget.id,
        gadget=gadget.id,
        admin=make_principal("admin@shop.test", "admin", name="Admin"),
        manager_a=make_principal("manager.a@shop.test", "manager", shop_a.id, name="Manager A"),
        manager_b=make_principal("manager.b@shop.test", "manager", shop_b.id, name="Manager B"),
        employee_a=make_principal("employee.a@shop.test", "employee", shop_a.id, name="Employee A"),
        rider_1=make_principal("rider1@shop.test", "rider", name="Rider 1"),
        rider_2=make_principal("rider2@shop.test", "rider", name="Rider 2"),
        rider_3=make_principal("rider3@shop.test", "rider", name="Rider 3"),
    )


@pytest.fixture(scope='function')
def stock(seed):
    """Factory: open an inventory record and return its id."""
    def _stock(shop_id, product_id, current_stock, low_stock_threshold=0):
        record = inventory_service.create_record(
            shop_id,
            product_id,
            current_stock=current_stock,
            low_stock_threshold=low_stock_threshold,
        )
        return record.id
    return _stock


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def login(client, seed):
    """Factory: sign a seeded principal in through the API and return headers."""
    def _login(principal):
        token = get_auth_token(client, principal.email)
        assert token, f"login failed for {principal.email}"
        return auth_headers(token)
    return _login
