from app.model.user import User
from app.model.order import Order
from app.model.message import Message

__all__ = ["User", "Order", "Message"]
