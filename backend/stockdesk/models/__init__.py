from .auth import User, SessionToken, ADMIN_ROLE, CLIENT_ROLE, ROLES
from .catalog import Category, Product
from .cart import Cart, CartLine
from .invoices import Invoice, InvoiceLine, INVOICE_ACTIVE, INVOICE_VOIDED, INVOICE_STATUSES

__all__ = [
    'User', 'SessionToken', 'ADMIN_ROLE', 'CLIENT_ROLE', 'ROLES',
    'Category', 'Product',
    'Cart', 'CartLine',
    'Invoice', 'InvoiceLine', 'INVOICE_ACTIVE', 'INVOICE_VOIDED', 'INVOICE_STATUSES',
]
