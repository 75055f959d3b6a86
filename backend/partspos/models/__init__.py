from .catalog import Category, Product
from .inventory import InventoryTransaction
from .customers import Customer
from .sales import Sale, SaleItem
from .purchasing import PurchaseInvoice, PurchaseInvoiceItem, PurchaseInvoicePayment

__all__ = [
    'Category', 'Product',
    'InventoryTransaction',
    'Customer',
    'Sale', 'SaleItem',
    'PurchaseInvoice', 'PurchaseInvoiceItem', 'PurchaseInvoicePayment',
]
