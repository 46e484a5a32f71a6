from app.crud.user_crud import user_crud
from app.crud.order_crud import order_crud
from app.crud.message_crud import message_crud

__all__ = [
    "user_crud",
    "order_crud",
    "message_crud",
]
