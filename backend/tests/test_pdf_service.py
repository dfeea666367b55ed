"""Invoice PDF rendering."""

from stockdesk.models import CLIENT_ROLE
from stockdesk.services import invoice_service, pdf_service


def test_render_active_invoice(client_user, make_product, fill_cart):
    long_name = make_product("An extremely long product name that will not fit the column", price_cents=12345)
    short = make_product("Pen", price_cents=99)
    fill_cart(client_user, [(long_name, 1), (short, 3)])
    invoice = invoice_service.create_invoice_from_cart(client_user.id)

    pdf = pdf_service.render_invoice_pdf(invoice, client_user)

    assert pdf.startswith(b"%PDF")
    assert len(pdf) > 1000


def test_render_voided_invoice(client_user, product, fill_cart):
    fill_cart(client_user, [(product, 2)])
    invoice = invoice_service.create_invoice_from_cart(client_user.id)
    voided = invoice_service.void_invoice(invoice.id, client_user.id, CLIENT_ROLE, "customer cancelled")

    assert pdf_service.render_invoice_pdf(voided, client_user).startswith(b"%PDF")


def test_render_spans_pages(client_user, make_product, fill_cart):
    products = [make_product(f"Part {i:03d}", stock=5) for i in range(60)]
    fill_cart(client_user, [(p, 1) for p in products])
    invoice = invoice_service.create_invoice_from_cart(client_user.id)

    pdf = pdf_service.render_invoice_pdf(invoice, client_user)

    # one /Type /Pages catalog entry plus one /Type /Page per page
    assert pdf.count(b"/Type /Page") >= 3


def test_money_formatting():
    assert pdf_service.format_cents(0) == "$0.00"
    assert pdf_service.format_cents(123456) == "$1,234.56"
