from sqlalchemy import event

from .auth import User
from .catalog import Product, Supplier, PurchasePriceRecord
from .inventory import InventoryBatch
from .customers import Customer, CreditTransaction
from .sales import Transaction, TransactionItem

__all__ = [
    'User',
    'Product', 'Supplier', 'PurchasePriceRecord',
    'InventoryBatch',
    'Customer', 'CreditTransaction',
    'Transaction', 'TransactionItem',
    'APPEND_ONLY_MODELS',
]

# Written once, never edited in place.
APPEND_ONLY_MODELS = (Transaction, TransactionItem, CreditTransaction, PurchasePriceRecord)


def _reject_update(mapper, connection, target):
    raise ValueError(f"{type(target).__name__} records are append-only")


for _model in APPEND_ONLY_MODELS:
    event.listen(_model, "before_update", _reject_update)
