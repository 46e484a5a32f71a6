"""
Per-order conversation summaries for the customer and staff lists.

Summaries are computed on read; clients re-fetch them on their poll interval.
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from app.chat.party import Party
from app.crud import message_crud, order_crud
from app.crud.message_crud import OrderActivity
from app.schema.message import MessagePreview, OrderSummary

logger = logging.getLogger(__name__)


class ConversationService:

    def __init__(self, db: Session):
        self.db = db

    def get_orders_with_messages(self) -> List[OrderSummary]:
        """
        Staff view: every order with messages, unread = customer messages
        staff has not read. Sorted by order id ascending.
        """
        rows = message_crud.order_activity(self.db, unread_author=Party.CUSTOMER)
        summaries = self._summarize(rows)
        summaries.sort(key=lambda s: s.order_id)
        return summaries

    def get_user_conversations(self, user_id: int) -> List[OrderSummary]:
        """
        Customer view: the user's orders with messages, unread = staff
        messages the customer has not read. Most recent activity first.
        """
        rows = message_crud.order_activity(
            self.db, unread_author=Party.STAFF, user_id=user_id
        )
        summaries = self._summarize(rows)
        summaries.sort(key=lambda s: (s.date, s.order_id), reverse=True)
        return summaries

    def _summarize(self, rows: List[OrderActivity]) -> List[OrderSummary]:
        order_ids = [r.order_id for r in rows]
        orders = order_crud.get_many(self.db, order_ids=order_ids)
        latest_by_order = message_crud.latest_for_orders(self.db, order_ids=order_ids)
        summaries: List[OrderSummary] = []
        for row in rows:
            order = orders.get(row.order_id)
            if order is None:
                logger.warning("Messages reference missing order %s; skipped", row.order_id)
                continue
            latest = latest_by_order.get(row.order_id)
            preview: Optional[MessagePreview] = MessagePreview.from_message(latest) if latest else None
            summaries.append(
                OrderSummary(
                    order_id=order.id,
                    order_number=order.order_number,
                    user_id=order.user_id,
                    date=row.last_message_at or order.created_at,
                    unread_count=row.unread_count,
                    last_message=preview,
                )
            )
        return summaries
