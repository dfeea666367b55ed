"""
Pytest fixtures for StockDesk backend tests.

Provides test database setup, user/catalog fixtures, and test client.
"""

import pytest
from stockdesk import create_app
from stockdesk.extensions import db
from stockdesk.models import Cart, CartLine, Product, ADMIN_ROLE, CLIENT_ROLE
from stockdesk.services.auth_service import create_user
from stockdesk.services.category_service import ensure_default_category

PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
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


def make_user(username: str, role: str = CLIENT_ROLE, **extra):
    return create_user(
        name=extra.pop("name", username.capitalize()),
        surname=extra.pop("surname", "Tester"),
        username=username,
        email=extra.pop("email", f"{username}@example.com"),
        password=PASSWORD,
        role=role,
        rounds=4,
        **extra,
    )


@pytest.fixture(scope='function')
def client_user(db_session):
    """CLIENT_ROLE user who owns the invoices under test."""
    return make_user("alice")


@pytest.fixture(scope='function')
def other_user(db_session):
    """Second CLIENT_ROLE user, never the owner."""
    return make_user("bob")


@pytest.fixture(scope='function')
def admin_user(db_session):
    return make_user("admin", role=ADMIN_ROLE)


@pytest.fixture(scope='function')
def default_category(db_session):
    category = ensure_default_category()
    db_session.commit()
    return category


@pytest.fixture(scope='function')
def make_product(db_session, default_category):
    """Factory: make_product(name, price_cents=..., stock=...)."""
    def _make(name: str, *, price_cents: int = 250, stock: int = 10, **extra):
        product = Product(
            name=name,
            price_cents=price_cents,
            stock=stock,
            category_id=default_category.id,
            **extra,
        )
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """Product with stock 10 at 2.50."""
    return make_product("Widget", price_cents=250, stock=10)


@pytest.fixture(scope='function')
def fill_cart(db_session):
    """
    Factory: fill_cart(user, [(product, quantity), ...]).

    Writes cart rows directly, skipping the advisory stock check of
    cart_service.add_item, so checkout can be driven into shortfalls.
    """
    def _fill(user, items):
        cart = db_session.query(Cart).filter_by(user_id=user.id).first()
        if cart is None:
            cart = Cart(user_id=user.id, total_cents=0)
            db_session.add(cart)
        for product, quantity in items:
            cart.lines.append(CartLine(
                product_id=product.id,
                quantity=quantity,
                unit_price_cents=product.price_cents,
            ))
        cart.total_cents = sum(l.quantity * l.unit_price_cents for l in cart.lines)
        db_session.commit()
        return cart
    return _fill


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
def client_headers(client, client_user):
    return auth_headers(get_auth_token(client, client_user.username))


@pytest.fixture(scope='function')
def other_headers(client, other_user):
    return auth_headers(get_auth_token(client, other_user.username))


@pytest.fixture(scope='function')
def admin_headers(client, admin_user):
    return auth_headers(get_auth_token(client, admin_user.username))
