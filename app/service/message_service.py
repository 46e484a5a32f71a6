"""
Message service: authorization and persistence for order conversations.

Shared by the HTTP routes and the WebSocket gateway. Callers broadcast
after these methods return, so every event follows a completed write.
"""
from typing import List, Optional
import logging

from sqlalchemy.orm import Session

from app.chat.party import Actor
from app.core.database import write_guard
from app.core.exceptions import Forbidden, NotFound, ValidationFailed
from app.crud import message_crud, order_crud, user_crud
from app.model.message import Message
from app.model.order import Order
from app.schema.message import MessageCreateBody, ReplyBody

logger = logging.getLogger(__name__)

GENERAL_SUBJECT = "General inquiry"
REPLY_PREFIX = "Re: "


def order_subject(order: Order) -> str:
    return f"Order #{order.order_number}"


def reply_subject(subject: Optional[str]) -> str:
    subject = subject or ""
    if subject.lower().startswith(REPLY_PREFIX.lower()):
        return subject
    return f"{REPLY_PREFIX}{subject}"


def clean_content(content: Optional[str], image_url: Optional[str]) -> str:
    """Strip content; empty content is only allowed with an attached image."""
    text = (content or "").strip()
    if not text and not image_url:
        raise ValidationFailed(
            "Message content cannot be empty unless an image is attached.",
            field="content",
        )
    return text


class MessageService:
    """Message store operations scoped to the calling actor."""

    def __init__(self, db: Session):
        self.db = db

    # --- lookups / access checks ---

    def get_order(self, order_id: int) -> Order:
        order = order_crud.get_by_id(self.db, order_id=order_id)
        if not order:
            raise NotFound("Order")
        return order

    def get_accessible_order(self, actor: Actor, order_id: int) -> Order:
        """Order the actor may read and write: staff any, customers their own."""
        order = self.get_order(order_id)
        if not actor.is_admin and order.user_id != actor.user_id:
            raise Forbidden("You do not have access to this order.")
        return order

    @staticmethod
    def ensure_conversation_access(actor: Actor, message: Message) -> None:
        if not actor.is_admin and message.user_id != actor.user_id:
            raise Forbidden("You do not have access to this message.")

    # --- writes ---

    def create_message(self, actor: Actor, body: MessageCreateBody) -> Message:
        """Persist a new top-level message authored by the actor."""
        content = clean_content(body.content, body.image_url)
        if body.order_id is not None:
            order = self.get_accessible_order(actor, body.order_id)
            customer_id = order.user_id
            subject = body.subject or order_subject(order)
        else:
            customer_id = self._general_conversation_owner(actor, body.user_id)
            subject = body.subject or GENERAL_SUBJECT

        with write_guard(self.db, "create message"):
            msg = message_crud.create_from_dict(
                self.db,
                obj_in={
                    "user_id": customer_id,
                    "order_id": body.order_id,
                    "subject": subject.strip(),
                    "content": content,
                    "image_url": body.image_url,
                    "is_from_admin": actor.is_admin,
                    "is_read": False,
                },
            )
        logger.info(
            "Message %s created on order %s by %s %s",
            msg.id, msg.order_id, actor.party.value, actor.user_id,
        )
        return msg

    def _general_conversation_owner(self, actor: Actor, user_id: Optional[int]) -> int:
        if not actor.is_admin:
            return actor.user_id
        if user_id is None:
            raise ValidationFailed(
                "Staff messages need an orderId or the customer's userId.",
                field="userId",
            )
        if not user_crud.get(self.db, user_id):
            raise NotFound("User")
        return user_id

    def reply_to_message(self, actor: Actor, parent_id: int, body: ReplyBody) -> Message:
        """
        Reply in the parent's conversation; order and subject come from the parent.
        Threads are one level deep: replying to a reply attaches to its root.
        """
        parent = message_crud.get_by_id(self.db, message_id=parent_id)
        if not parent:
            raise NotFound("Message")
        if parent.parent_id is not None:
            parent = message_crud.get_by_id(self.db, message_id=parent.parent_id) or parent
        self.ensure_conversation_access(actor, parent)
        if parent.order_id is not None:
            self.get_accessible_order(actor, parent.order_id)
        content = clean_content(body.content, body.image_url)

        with write_guard(self.db, "reply to message"):
            msg = message_crud.create_from_dict(
                self.db,
                obj_in={
                    "user_id": parent.user_id,
                    "order_id": parent.order_id,
                    "parent_id": parent.id,
                    "subject": reply_subject(parent.subject),
                    "content": content,
                    "image_url": body.image_url,
                    "is_from_admin": actor.is_admin,
                    "is_read": False,
                },
            )
        logger.info("Reply %s to message %s on order %s", msg.id, parent.id, msg.order_id)
        return msg

    # --- reads ---

    def get_message(self, actor: Actor, message_id: int) -> Message:
        msg = message_crud.get_with_relations(self.db, message_id=message_id)
        if not msg:
            raise NotFound("Message")
        self.ensure_conversation_access(actor, msg)
        return msg

    def list_messages(self, actor: Actor) -> List[Message]:
        """Caller's conversation messages, newest first. Staff see every conversation."""
        if actor.is_admin:
            return message_crud.list_all(self.db)
        return message_crud.list_for_user(self.db, user_id=actor.user_id)

    def get_order_thread(self, actor: Actor, order_id: int) -> List[Message]:
        self.get_accessible_order(actor, order_id)
        return message_crud.list_for_order(self.db, order_id=order_id)

    def unread_count(self, actor: Actor) -> int:
        """Messages from the other party the caller has not read yet."""
        if actor.is_admin:
            return message_crud.count_unread(self.db, author=actor.party.counterpart)
        return message_crud.count_unread(
            self.db, author=actor.party.counterpart, user_id=actor.user_id
        )

    def list_all(self, user_id: Optional[int] = None) -> List[Message]:
        return message_crud.list_all(self.db, user_id=user_id)

    def list_unread_from_customers(self, actor: Actor, user_id: Optional[int] = None) -> List[Message]:
        return message_crud.list_unread(
            self.db, author=actor.party.counterpart, user_id=user_id
        )
