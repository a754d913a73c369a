from .auth import User
from .catalog import Product, Client
from .sales import Sale, SaleDetail
from .inventory import StockMovement
from .cash import CashMovement, CashSessionClosing
from .documents import DocumentSequence, AuditEvent

__all__ = [
    'User',
    'Product', 'Client',
    'Sale', 'SaleDetail',
    'StockMovement',
    'CashMovement', 'CashSessionClosing',
    'DocumentSequence', 'AuditEvent',
]
