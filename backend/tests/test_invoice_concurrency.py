"""
Concurrency tests for checkout.

Two checkouts competing for the same units: at most one wins, stock never
goes negative. The threaded case runs against a file-backed SQLite DB so
that each thread gets its own connection.
"""

import threading

import pytest

from stockdesk import create_app
from stockdesk.extensions import db
from stockdesk.models import Invoice, Product, Cart, CartLine
from stockdesk.services import invoice_service
from stockdesk.services.invoice_service import InsufficientStockError
from stockdesk.services.concurrency import StoreUnavailableError

from conftest import make_user


def test_sequential_checkouts_cannot_oversell(db_session, client_user, other_user, product, fill_cart):
    fill_cart(client_user, [(product, 6)])
    fill_cart(other_user, [(product, 6)])

    invoice_service.create_invoice_from_cart(client_user.id)
    with pytest.raises(InsufficientStockError):
        invoice_service.create_invoice_from_cart(other_user.id)

    db_session.expire_all()
    p = db_session.get(Product, product.id)
    assert p.stock == 4
    assert p.units_sold == 6
    assert db_session.query(Invoice).count() == 1


@pytest.fixture()
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'STORE_TIMEOUT_SECONDS': 10,
        'LOG_LEVEL': 'WARNING',
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_checkouts_cannot_oversell(file_app):
    with file_app.app_context():
        product = Product(name="Concurrent Product", price_cents=1000, stock=10)
        db.session.add(product)
        db.session.commit()
        product_id = product.id

        owner_ids = []
        for username in ("racer_one", "racer_two"):
            user = make_user(username)
            cart = Cart(user_id=user.id, total_cents=6000)
            cart.lines.append(CartLine(product_id=product_id, quantity=6, unit_price_cents=1000))
            db.session.add(cart)
            db.session.commit()
            owner_ids.append(user.id)

    results = []
    lock = threading.Lock()
    start = threading.Barrier(len(owner_ids))

    def worker(owner_id):
        with file_app.app_context():
            try:
                start.wait()
                invoice_service.create_invoice_from_cart(owner_id)
                with lock:
                    results.append("created")
            except (InsufficientStockError, StoreUnavailableError) as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker, args=(owner_id,)) for owner_id in owner_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    with file_app.app_context():
        p = db.session.get(Product, product_id)
        invoices = db.session.query(Invoice).all()
        stock, units_sold = p.stock, p.units_sold

    assert len(results) == 2
    assert results.count("created") == 1
    assert any(isinstance(r, InsufficientStockError) for r in results)
    assert len(invoices) == 1
    assert stock == 4
    assert units_sold == 6
