from .auth import User, SessionToken
from .catalog import Product, Barcode
from .counts import CountSession, CountedItem
from .history import HistoryEntry

__all__ = [
    'User', 'SessionToken',
    'Product', 'Barcode',
    'CountSession', 'CountedItem',
    'HistoryEntry',
]
