from .tenancy import Company, Shop, Supplier, Category, User, SessionToken
from .catalog import Product
from .inventory import StockLedgerEntry
from .receipts import ReceiptStatus, Direction, ReceiptHeader, ReceiptLine
from .movements import MovementType, MovementStatus, StockMovement, StockMovementComponent
from .documents import CodeSequence, CodeAllocation, AuditLogEntry, OutboxEvent

__all__ = [
    'Company', 'Shop', 'Supplier', 'Category', 'User', 'SessionToken',
    'Product',
    'StockLedgerEntry',
    'ReceiptStatus', 'Direction', 'ReceiptHeader', 'ReceiptLine',
    'MovementType', 'MovementStatus', 'StockMovement', 'StockMovementComponent',
    'CodeSequence', 'CodeAllocation', 'AuditLogEntry', 'OutboxEvent',
]
