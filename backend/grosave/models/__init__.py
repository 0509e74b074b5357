from .users import User, Wallet
from .auth import SessionToken
from .catalog import Product, PickupLocation, PickupSlot
from .orders import Order, OrderEvent
from .ledger import Transaction, EarnEvent
from .notifications import Notification

__all__ = [
    'User', 'Wallet', 'SessionToken',
    'Product', 'PickupLocation', 'PickupSlot',
    'Order', 'OrderEvent',
    'Transaction', 'EarnEvent',
    'Notification',
]
