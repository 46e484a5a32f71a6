"""
Message CRUD: the durable store behind order conversations.

Thread reads are oldest-first (chat order); list reads are newest-first.
Ties on created_at fall back to id so ordering is total.
"""
from datetime import datetime
from typing import Any, Dict, List, NamedTuple, Optional

from sqlalchemy import and_, case, desc, func
from sqlalchemy.orm import Session, selectinload

from app.chat.party import Party
from app.crud.base import CRUDBase
from app.model.message import Message


class OrderActivity(NamedTuple):
    """Per-order aggregate row: latest message time and unread count."""
    order_id: int
    last_message_at: Optional[datetime]
    unread_count: int


def _authored_by(party: Party):
    return Message.is_from_admin.is_(party.is_staff)


class CRUDMessage(CRUDBase[Message, Dict[str, Any], Dict[str, Any]]):

    def get_by_id(self, db: Session, *, message_id: int) -> Optional[Message]:
        return db.query(self.model).filter(self.model.id == message_id).first()

    def get_with_relations(self, db: Session, *, message_id: int) -> Optional[Message]:
        """Fetch a message with replies, user, order and parent loaded for display."""
        return (
            db.query(self.model)
            .options(
                selectinload(self.model.replies),
                selectinload(self.model.user),
                selectinload(self.model.order),
                selectinload(self.model.parent),
            )
            .filter(self.model.id == message_id)
            .first()
        )

    def list_for_user(self, db: Session, *, user_id: int) -> List[Message]:
        """Every message in the user's conversations (both authors), newest first."""
        return (
            db.query(self.model)
            .filter(self.model.user_id == user_id)
            .order_by(desc(self.model.created_at), desc(self.model.id))
            .all()
        )

    def list_for_order(self, db: Session, *, order_id: int) -> List[Message]:
        """The order thread, oldest first."""
        return (
            db.query(self.model)
            .filter(self.model.order_id == order_id)
            .order_by(self.model.created_at, self.model.id)
            .all()
        )

    def list_all(self, db: Session, *, user_id: Optional[int] = None) -> List[Message]:
        base = db.query(self.model)
        if user_id is not None:
            base = base.filter(self.model.user_id == user_id)
        return base.order_by(desc(self.model.created_at), desc(self.model.id)).all()

    def list_unread(
        self, db: Session, *, author: Party, user_id: Optional[int] = None
    ) -> List[Message]:
        """Unread messages written by `author`, newest first."""
        base = db.query(self.model).filter(
            _authored_by(author),
            self.model.is_read.is_(False),
        )
        if user_id is not None:
            base = base.filter(self.model.user_id == user_id)
        return base.order_by(desc(self.model.created_at), desc(self.model.id)).all()

    def count_unread(
        self, db: Session, *, author: Party, user_id: Optional[int] = None
    ) -> int:
        base = db.query(func.count(self.model.id)).filter(
            _authored_by(author),
            self.model.is_read.is_(False),
        )
        if user_id is not None:
            base = base.filter(self.model.user_id == user_id)
        return base.scalar() or 0

    def latest_for_orders(self, db: Session, *, order_ids: List[int]) -> Dict[int, Message]:
        """Newest message of each order, keyed by order id, in one query."""
        if not order_ids:
            return {}
        rank = func.row_number().over(
            partition_by=self.model.order_id,
            order_by=(desc(self.model.created_at), desc(self.model.id)),
        )
        ranked = (
            db.query(self.model.id.label("id"), rank.label("row_rank"))
            .filter(self.model.order_id.in_(order_ids))
            .subquery()
        )
        rows = (
            db.query(self.model)
            .join(ranked, self.model.id == ranked.c.id)
            .filter(ranked.c.row_rank == 1)
            .all()
        )
        return {m.order_id: m for m in rows}

    def order_activity(
        self, db: Session, *, unread_author: Party, user_id: Optional[int] = None
    ) -> List[OrderActivity]:
        """
        One row per order that has messages: latest message time and the
        count of unread messages written by `unread_author`.
        Restricted to one customer's conversations when user_id is given.
        """
        unread = func.sum(
            case(
                (and_(_authored_by(unread_author), self.model.is_read.is_(False)), 1),
                else_=0,
            )
        )
        query = (
            db.query(
                self.model.order_id,
                func.max(self.model.created_at),
                unread,
            )
            .filter(self.model.order_id.isnot(None))
        )
        if user_id is not None:
            query = query.filter(self.model.user_id == user_id)
        rows = query.group_by(self.model.order_id).all()
        return [
            OrderActivity(order_id=r[0], last_message_at=r[1], unread_count=int(r[2] or 0))
            for r in rows
        ]

    def mark_read(self, db: Session, *, message: Message) -> Message:
        """Flip one message to read. Already-read messages are left untouched."""
        if not message.is_read:
            message.is_read = True
            db.add(message)
            db.commit()
            db.refresh(message)
        return message

    def mark_order_read(self, db: Session, *, order_id: int, author: Party) -> int:
        """Flip every unread message on the order written by `author`. Returns rows changed."""
        count = (
            db.query(self.model)
            .filter(
                self.model.order_id == order_id,
                _authored_by(author),
                self.model.is_read.is_(False),
            )
            .update({self.model.is_read: True}, synchronize_session=False)
        )
        db.commit()
        return count


message_crud = CRUDMessage(Message)
