from models.user import User
from models.order import Order
from models.transaction import Transaction
from models.receipt import Receipt

__all__ = ["User", "Order", "Transaction", "Receipt"]
