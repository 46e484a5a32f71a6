"""
Read-state transitions.

A reader only ever clears the other party's unread flag: customers mark
staff messages read, staff mark customer messages read.
"""
import logging

from sqlalchemy.orm import Session

from app.chat.party import Actor
from app.core.database import write_guard
from app.core.exceptions import Forbidden, NotFound
from app.crud import message_crud
from app.model.message import Message
from app.service.message_service import MessageService

logger = logging.getLogger(__name__)


class ReadStateService:

    def __init__(self, db: Session):
        self.db = db
        self.messages = MessageService(db)

    def mark_message_as_read(self, actor: Actor, message_id: int) -> Message:
        """Mark one message read. Idempotent for already-read messages."""
        msg = message_crud.get_by_id(self.db, message_id=message_id)
        if not msg:
            raise NotFound("Message")
        self.messages.ensure_conversation_access(actor, msg)
        if msg.author is not actor.party.counterpart:
            raise Forbidden(
                "Only the other party's messages can be marked as read.",
                code="NOT_COUNTERPART",
            )
        with write_guard(self.db, "mark message read"):
            message_crud.mark_read(self.db, message=msg)
        logger.info("Message %s marked read by %s %s", msg.id, actor.party.value, actor.user_id)
        return msg

    def mark_order_messages_as_read(self, actor: Actor, order_id: int) -> int:
        """Mark every unread message from the other party on the order. Returns rows changed."""
        self.messages.get_accessible_order(actor, order_id)
        with write_guard(self.db, "mark order read"):
            count = message_crud.mark_order_read(
                self.db, order_id=order_id, author=actor.party.counterpart
            )
        logger.info(
            "Order %s: %d %s messages marked read by %s",
            order_id, count, actor.party.counterpart.value, actor.user_id,
        )
        return count
