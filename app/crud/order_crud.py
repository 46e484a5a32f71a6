"""
Order lookups used to scope conversations.
"""
from typing import Iterable, Dict, Optional
from sqlalchemy.orm import Session
from app.model.order import Order
from app.crud.base import CRUDBase


class CRUDOrder(CRUDBase[Order, dict, dict]):

    def get_by_id(self, db: Session, *, order_id: int) -> Optional[Order]:
        return self.get(db, order_id)

    def get_many(self, db: Session, *, order_ids: Iterable[int]) -> Dict[int, Order]:
        """Resolve several orders at once, keyed by id. Missing ids are absent."""
        ids = list(order_ids)
        if not ids:
            return {}
        orders = db.query(self.model).filter(self.model.id.in_(ids)).all()
        return {o.id: o for o in orders}


order_crud = CRUDOrder(Order)
