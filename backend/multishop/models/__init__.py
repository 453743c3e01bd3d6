from .catalog import Shop, Product
from .inventory import InventoryRecord, TransferRequest
from .sales import Sale, Expense
from .deliveries import Delivery
from .auth import Account, User, SessionToken, ResetChallenge
from .notifications import Notification

__all__ = [
    'Shop', 'Product',
    'InventoryRecord', 'TransferRequest',
    'Sale', 'Expense',
    'Delivery',
    'Account', 'User', 'SessionToken', 'ResetChallenge',
    'Notification',
]
