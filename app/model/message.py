"""
Message model. One row per message in a customer conversation.

user_id is always the customer side of the conversation, also for rows
written by staff, so a customer + order pair maps to exactly one thread.
"""
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship, validates
from app.core.database import Base
from app.chat.party import Party


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_order_created", "order_id", "created_at"),
        Index("ix_messages_order_unread", "order_id", "is_from_admin", "is_read"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=True, index=True)
    parent_id = Column(Integer, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True, index=True)
    subject = Column(String, nullable=False)
    content = Column(Text, nullable=False, default="")
    image_url = Column(String, nullable=True)
    is_from_admin = Column(Boolean, nullable=False, default=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", backref="messages")
    order = relationship("Order", back_populates="messages")
    parent = relationship("Message", remote_side="Message.id", back_populates="replies")
    replies = relationship(
        "Message",
        back_populates="parent",
        order_by=lambda: [Message.created_at, Message.id],
    )

    @validates("is_from_admin")
    def _freeze_author(self, key, value):
        if self.id is not None and self.is_from_admin is not None and value != self.is_from_admin:
            raise ValueError("is_from_admin cannot change after creation")
        return value

    @validates("order_id")
    def _freeze_order(self, key, value):
        if self.id is not None and self.order_id is not None and value != self.order_id:
            raise ValueError("order_id cannot be reassigned")
        return value

    @property
    def author(self) -> Party:
        return Party.from_admin_flag(bool(self.is_from_admin))

    def __repr__(self) -> str:
        return f"<Message id={self.id} order_id={self.order_id} author={self.author.value}>"
