"""
Pytest fixtures for the La Económica backend tests.

Provides an in-memory database, one user per role, a small catalog and
auth helpers for the Flask test client.
"""

import pytest
from economica import create_app
from economica.extensions import db
from economica.models import Store, Product
from economica.services.auth_service import create_user


PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'CART_TAX_RATE_BPS': 0,
        'CHECKOUT_TOTAL_TOLERANCE_CENTS': 1,
        'DB_RETRY_ATTEMPTS': 3,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function', autouse=True)
def db_session(app):
    """Fresh data for each test."""
    # Clear all data but keep schema
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    # Cleanup after test
    db.session.rollback()


@pytest.fixture(scope='function')
def store(db_session):
    store = Store(name="Sucursal Centro", code="CENTRO", is_active=True)
    db_session.add(store)
    db_session.commit()
    return store


def _make_user(store, username, role):
    # Low bcrypt cost keeps the suite fast
    return create_user(
        username=username,
        email=f"{username}@economica.test",
        password=PASSWORD,
        role=role,
        store_id=store.id,
        rounds=4,
    )


@pytest.fixture(scope='function')
def admin_user(store):
    return _make_user(store, "admin", "admin")


@pytest.fixture(scope='function')
def manager_user(store):
    return _make_user(store, "gerente", "manager")


@pytest.fixture(scope='function')
def cashier_user(store):
    return _make_user(store, "cajero", "cashier")


@pytest.fixture(scope='function')
def customer_user(store):
    return _make_user(store, "cliente", "customer")


def _product(db_session, store, **fields):
    product = Product(store_id=store.id, is_active=True, **fields)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def rice(db_session, store):
    """Piece product: $25.50, 50 in stock."""
    return _product(
        db_session, store,
        sku="ARZ-1KG", barcode="7501000000011", name="Arroz 1kg",
        price_cents=2550, unit="pieza", sell_by_weight=False, stock_quantity=50,
    )


@pytest.fixture(scope='function')
def apples(db_session, store):
    """Sold by kg: $45.90/kg, 10 kg in stock, at most 5 kg per line."""
    return _product(
        db_session, store,
        sku="MNZ-KG", barcode="2000000000015", name="Manzana roja",
        price_cents=4590, unit="kg", sell_by_weight=True, stock_quantity=10, max_quantity=5,
    )


@pytest.fixture(scope='function')
def cheese(db_session, store):
    """Sold by gram: $0.18/g, 2000 g in stock."""
    return _product(
        db_session, store,
        sku="QSO-GR", barcode="2000000000022", name="Queso Oaxaca",
        price_cents=18, unit="gramo", sell_by_weight=True, stock_quantity=2000,
    )


@pytest.fixture(scope='function')
def sold_out(db_session, store):
    return _product(
        db_session, store,
        sku="AGT-1", barcode="7501000000099", name="Producto agotado",
        price_cents=1000, unit="pieza", sell_by_weight=False, stock_quantity=0,
    )


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
def cashier_headers(client, cashier_user):
    return auth_headers(get_auth_token(client, cashier_user.username))


@pytest.fixture(scope='function')
def customer_headers(client, customer_user):
    return auth_headers(get_auth_token(client, customer_user.username))


def reload(model, pk):
    """Re-read a row after requests made through the test client."""
    db.session.expire_all()
    return db.session.get(model, pk)
