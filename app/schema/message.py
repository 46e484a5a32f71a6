"""
Message schemas: HTTP bodies/responses and socket payloads.
Wire format is camelCase; Python attributes stay snake_case.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

MAX_CONTENT_LENGTH = 10_000
PREVIEW_LENGTH = 200


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# --- Requests ---


class MessageCreateBody(CamelModel):
    """Body for POST /messages and POST /admin/orders/{order_id}/messages."""
    subject: Optional[str] = Field(None, max_length=255)
    content: str = Field("", max_length=MAX_CONTENT_LENGTH)
    order_id: Optional[int] = None
    image_url: Optional[str] = None
    # Only honoured for staff writing a general (order-less) message.
    user_id: Optional[int] = None


class ReplyBody(CamelModel):
    """Body for POST /messages/{id}/reply."""
    content: str = Field("", max_length=MAX_CONTENT_LENGTH)
    image_url: Optional[str] = None


# --- Responses ---


class UserBrief(CamelModel):
    id: int
    email: str
    name: Optional[str] = None


class OrderBrief(CamelModel):
    id: int
    order_number: str
    user_id: int
    status: Optional[str] = None
    created_at: Optional[datetime] = None


class MessageResponse(CamelModel):
    """Single message as stored."""
    id: int
    user_id: int
    order_id: Optional[int] = None
    parent_id: Optional[int] = None
    subject: str
    content: str
    image_url: Optional[str] = None
    is_from_admin: bool
    is_read: bool
    created_at: datetime


class MessageDetail(MessageResponse):
    """Message with resolved replies, user, order and parent."""
    replies: List[MessageResponse] = []
    user: Optional[UserBrief] = None
    order: Optional[OrderBrief] = None
    parent: Optional[MessageResponse] = None


class MessagePreview(CamelModel):
    """Latest-message snippet for conversation lists."""
    id: int
    content: str
    is_from_admin: bool
    created_at: datetime

    @classmethod
    def from_message(cls, msg) -> "MessagePreview":
        content = msg.content or ""
        if len(content) > PREVIEW_LENGTH:
            content = content[:PREVIEW_LENGTH] + "..."
        return cls(
            id=msg.id,
            content=content,
            is_from_admin=msg.is_from_admin,
            created_at=msg.created_at,
        )


class OrderSummary(CamelModel):
    """One order that has messages, for customer and staff conversation lists."""
    order_id: int
    order_number: str
    user_id: int
    date: datetime
    unread_count: int = 0
    last_message: Optional[MessagePreview] = None


class UnreadCountResponse(CamelModel):
    count: int


class MarkReadResponse(CamelModel):
    success: bool = True
    count: int = 0


class MessagingConfigResponse(CamelModel):
    poll_interval_seconds: int


class ImageUploadResponse(CamelModel):
    image_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
