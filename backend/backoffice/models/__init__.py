from .catalog import Product, PaymentMethod
from .inventory import StockMovement
from .sales import PosTransaction, TransactionItem, Payment
from .sequences import NumberSequence

__all__ = [
    'Product', 'PaymentMethod',
    'StockMovement',
    'PosTransaction', 'TransactionItem', 'Payment',
    'NumberSequence',
]
