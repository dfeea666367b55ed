"""HTTP tests for /api/invoices and /api/cart."""

import pytest
from sqlalchemy.exc import OperationalError

from stockdesk.extensions import db
from stockdesk.models import Product
from stockdesk.services import invoice_service


def _add(client, headers, product_id, quantity):
    return client.post("/api/cart/items", json={"product_id": product_id, "quantity": quantity}, headers=headers)


def _checkout(client, headers):
    return client.post("/api/invoices/checkout", headers=headers)


class TestCheckoutRoute:

    def test_checkout_flow(self, client, client_headers, product):
        assert _add(client, client_headers, product.id, 3).status_code == 200

        resp = _checkout(client, client_headers)

        assert resp.status_code == 201
        invoice = resp.json["invoice"]
        assert invoice["status"] == "ACTIVE"
        assert invoice["total_cents"] == 750
        assert invoice["number"] == f"F-{invoice['id']:08d}"
        assert invoice["lines"][0]["product_name"] == "Widget"

        cart = client.get("/api/cart", headers=client_headers).json["cart"]
        assert cart["lines"] == []
        assert cart["total_cents"] == 0

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 7

    def test_empty_cart(self, client, client_headers):
        resp = _checkout(client, client_headers)
        assert resp.status_code == 400
        assert resp.json["code"] == "EMPTY_CART"

    def test_insufficient_stock(self, client, client_headers, client_user, product, fill_cart):
        fill_cart(client_user, [(product, 11)])

        resp = _checkout(client, client_headers)

        assert resp.status_code == 409
        assert resp.json["code"] == "INSUFFICIENT_STOCK"
        assert resp.json["details"]["items"][0]["available"] == 10

    def test_locked_store_answers_unavailable(self, monkeypatch, client, client_headers, client_user, product, fill_cart):
        fill_cart(client_user, [(product, 3)])

        def locked(product_id, quantity):
            raise OperationalError("UPDATE products", {}, Exception("database is locked"))

        monkeypatch.setattr(invoice_service, "conditional_decrement_stock", locked)

        resp = _checkout(client, client_headers)

        assert resp.status_code == 503
        assert resp.json["code"] == "UNAVAILABLE"
        assert resp.json["details"] == {"reason": "OperationalError"}

        cart = client.get("/api/cart", headers=client_headers).json["cart"]
        assert [l["quantity"] for l in cart["lines"]] == [3]
        assert client.get("/api/invoices", headers=client_headers).json["count"] == 0
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 10

    def test_requires_auth(self, client, db_session):
        assert _checkout(client, {}).status_code == 401


class TestInvoiceRoutes:

    def _invoice(self, client, headers, product, quantity=2):
        _add(client, headers, product.id, quantity)
        return _checkout(client, headers).json["invoice"]

    def test_get_and_list(self, client, client_headers, other_headers, product):
        invoice = self._invoice(client, client_headers, product)

        resp = client.get(f"/api/invoices/{invoice['id']}", headers=client_headers)
        assert resp.status_code == 200
        assert resp.json["invoice"]["id"] == invoice["id"]

        listed = client.get("/api/invoices", headers=client_headers).json
        assert listed["count"] == 1

        assert client.get("/api/invoices", headers=other_headers).json == {"items": [], "count": 0}

        forbidden = client.get(f"/api/invoices/{invoice['id']}", headers=other_headers)
        assert forbidden.status_code == 403
        assert forbidden.json["code"] == "FORBIDDEN"

    def test_get_missing(self, client, client_headers):
        resp = client.get("/api/invoices/4242", headers=client_headers)
        assert resp.status_code == 404
        assert resp.json["code"] == "NOT_FOUND"

    def test_edit(self, client, client_headers, product):
        invoice = self._invoice(client, client_headers, product)

        resp = client.put(
            f"/api/invoices/{invoice['id']}",
            json={"lines": [{"product_id": product.id, "product_name": "Widget", "quantity": 5, "unit_price_cents": 200}]},
            headers=client_headers,
        )

        assert resp.status_code == 200
        assert resp.json["invoice"]["total_cents"] == 1000
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 5

    def test_edit_invalid_lines(self, client, client_headers, product):
        invoice = self._invoice(client, client_headers, product)

        resp = client.put(f"/api/invoices/{invoice['id']}", json={"lines": []}, headers=client_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_LINE_ITEMS"

    def test_void_twice(self, client, client_headers, product):
        invoice = self._invoice(client, client_headers, product)

        first = client.post(f"/api/invoices/{invoice['id']}/void", json={"reason": "customer cancelled"}, headers=client_headers)
        assert first.status_code == 200
        assert first.json["invoice"]["status"] == "VOIDED"
        assert first.json["invoice"]["void_reason"] == "customer cancelled"

        second = client.post(f"/api/invoices/{invoice['id']}/void", headers=client_headers)
        assert second.status_code == 409
        assert second.json["code"] == "ALREADY_VOIDED"

        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 10

    @pytest.mark.parametrize("body", [{"reason": 123}, {"reason": ["late"]}, {"reason": "x" * 256}, ["late"]])
    def test_void_rejects_malformed_reason(self, client, client_headers, product, body):
        invoice = self._invoice(client, client_headers, product)

        resp = client.post(f"/api/invoices/{invoice['id']}/void", json=body, headers=client_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_INPUT"
        assert client.get(f"/api/invoices/{invoice['id']}", headers=client_headers).json["invoice"]["status"] == "ACTIVE"
        db.session.expire_all()
        assert db.session.get(Product, product.id).stock == 8

    def test_edit_rejects_out_of_range_product_id(self, client, client_headers, product):
        invoice = self._invoice(client, client_headers, product)
        line = {"product_id": 2**70, "product_name": "Huge", "quantity": 1, "unit_price_cents": 100}

        resp = client.put(f"/api/invoices/{invoice['id']}", json={"lines": [line]}, headers=client_headers)

        assert resp.status_code == 400
        assert resp.json["code"] == "INVALID_LINE_ITEMS"
        assert resp.json["details"]["errors"][0]["error"] == "product_id must be a positive integer"

    def test_admin_sees_and_voids_everything(self, client, client_headers, admin_headers, client_user, product):
        invoice = self._invoice(client, client_headers, product)

        listed = client.get(f"/api/invoices?owner_id={client_user.id}", headers=admin_headers).json
        assert [i["id"] for i in listed["items"]] == [invoice["id"]]

        resp = client.post(f"/api/invoices/{invoice['id']}/void", json={}, headers=admin_headers)
        assert resp.status_code == 200

        voided = client.get("/api/invoices?status=VOIDED", headers=admin_headers).json
        assert voided["count"] == 1

    def test_pdf_download(self, client, client_headers, other_headers, product):
        invoice = self._invoice(client, client_headers, product)

        resp = client.get(f"/api/invoices/{invoice['id']}/pdf", headers=client_headers)

        assert resp.status_code == 200
        assert resp.mimetype == "application/pdf"
        assert resp.data.startswith(b"%PDF")
        assert f"Invoice_{invoice['number']}.pdf" in resp.headers["Content-Disposition"]
        assert "no-cache" in resp.headers["Cache-Control"]

        assert client.get(f"/api/invoices/{invoice['id']}/pdf", headers=other_headers).status_code == 403


class TestCartRoutes:

    def test_add_merges_and_refreshes_price(self, client, client_headers, product):
        _add(client, client_headers, product.id, 2)
        product.price_cents = 300
        db.session.commit()

        resp = _add(client, client_headers, product.id, 3)

        cart = resp.json["cart"]
        assert len(cart["lines"]) == 1
        assert cart["lines"][0]["quantity"] == 5
        assert cart["lines"][0]["unit_price_cents"] == 300
        assert cart["total_cents"] == 1500
        assert cart["item_count"] == 5

    def test_add_beyond_stock(self, client, client_headers, product):
        _add(client, client_headers, product.id, 8)

        resp = _add(client, client_headers, product.id, 3)

        assert resp.status_code == 409
        assert resp.json["details"]["requested_quantity"] == 11

    def test_add_invalid_quantity(self, client, client_headers, product):
        assert _add(client, client_headers, product.id, 0).status_code == 400
        assert _add(client, client_headers, product.id, "2").status_code == 400

    def test_add_unknown_product(self, client, client_headers, db_session):
        assert _add(client, client_headers, 9999, 1).status_code == 404

    def test_remove(self, client, client_headers, product):
        _add(client, client_headers, product.id, 2)

        resp = client.delete(f"/api/cart/items/{product.id}", headers=client_headers)
        assert resp.status_code == 200
        assert resp.json["cart"]["lines"] == []

        again = client.delete(f"/api/cart/items/{product.id}", headers=client_headers)
        assert again.status_code == 404

    def test_empty_cart_without_row(self, client, client_headers):
        cart = client.get("/api/cart", headers=client_headers).json["cart"]
        assert cart["lines"] == []
        assert cart["id"] is None
