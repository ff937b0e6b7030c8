from .account import Account
from .ledger_entry import LedgerEntry
from .order import Order, OrderItem
from .product import Product
from .setting import Setting
from .withdrawal import WithdrawalRequest

__all__ = [
    "Account",
    "LedgerEntry",
    "Order",
    "OrderItem",
    "Product",
    "Setting",
    "WithdrawalRequest",
]
