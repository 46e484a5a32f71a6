"""
WebSocket frame models.

Client -> server frames are validated per `type`; server -> client frames
are built by the helpers in app/chat/events.py.
"""
from typing import Optional

from pydantic import Field

from app.schema.message import CamelModel, MAX_CONTENT_LENGTH


class InboundFrame(CamelModel):
    """Envelope: only `type` is read before dispatch."""
    type: str


class AuthFrame(CamelModel):
    type: str = "auth"
    user_id: Optional[int] = None
    is_admin: Optional[bool] = None


class SubscribeFrame(CamelModel):
    type: str = "subscribe"
    order_id: int


class SendMessageFrame(CamelModel):
    type: str = "message"
    content: str = Field("", max_length=MAX_CONTENT_LENGTH)
    order_id: int
    parent_id: Optional[int] = None
    image_url: Optional[str] = None
    subject: Optional[str] = None


class MarkReadFrame(CamelModel):
    type: str = "mark_read"
    message_id: int
