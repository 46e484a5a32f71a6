"""
Messages API: order conversations between customers and staff (REST).
Every mutation is persisted first, then pushed to the order's live subscribers.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, UploadFile, status
from sqlalchemy.orm import Session

from app.chat import events
from app.chat.connection_manager import ConnectionManager
from app.chat.party import Actor
from app.core.config import settings
from app.core.database import get_db
from app.core.dependencies import get_connection_manager, get_current_actor
from app.model.message import Message
from app.schema.message import (
    ImageUploadResponse,
    MarkReadResponse,
    MessageCreateBody,
    MessageDetail,
    MessageResponse,
    MessagingConfigResponse,
    OrderSummary,
    ReplyBody,
    UnreadCountResponse,
)
from app.service.conversation_service import ConversationService
from app.service.image_service import store_message_image
from app.service.message_service import MessageService
from app.service.read_state_service import ReadStateService

router = APIRouter()
orders_router = APIRouter()
logger = logging.getLogger(__name__)


async def broadcast_new_message(manager: ConnectionManager, msg: Message) -> None:
    if msg.order_id is not None:
        await manager.broadcast(msg.order_id, events.new_message(msg))


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    body: MessageCreateBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Create a message authored by the caller (staff flag from the caller's role)."""
    msg = MessageService(db).create_message(actor, body)
    await broadcast_new_message(manager, msg)
    return MessageResponse.model_validate(msg)


@router.get("", response_model=List[MessageResponse])
async def list_messages(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Caller's conversation messages, newest first."""
    return [MessageResponse.model_validate(m) for m in MessageService(db).list_messages(actor)]


@router.get("/conversations", response_model=List[OrderSummary])
async def list_conversations(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """The caller's orders that have messages, most recent activity first. Staff get the admin list."""
    service = ConversationService(db)
    if actor.is_admin:
        return service.get_orders_with_messages()
    return service.get_user_conversations(actor.user_id)


@router.get("/config", response_model=MessagingConfigResponse)
async def messaging_config(actor: Actor = Depends(get_current_actor)):
    """Client settings: how often lists should be re-fetched."""
    return MessagingConfigResponse(poll_interval_seconds=settings.MESSAGE_POLL_INTERVAL_SECONDS)


@router.get("/unread/count", response_model=UnreadCountResponse)
async def unread_count(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Messages from the other party not yet read by the caller."""
    return UnreadCountResponse(count=MessageService(db).unread_count(actor))


@router.post("/images", response_model=ImageUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_message_image(
    actor: Actor = Depends(get_current_actor),
    file: UploadFile = File(...),
):
    """Upload an image to attach to a message; send the returned imageUrl with the message."""
    content = await file.read()
    url, meta = store_message_image(actor.user_id, content)
    return ImageUploadResponse(
        image_url=url,
        width=meta["width"],
        height=meta["height"],
        format=meta["format"],
    )


@router.post("/mark-read-by-order/{order_id}", response_model=MarkReadResponse)
async def mark_read_by_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Mark every unread message from the other party on the order as read."""
    count = ReadStateService(db).mark_order_messages_as_read(actor, order_id)
    await manager.broadcast(order_id, events.messages_read(order_id, count))
    return MarkReadResponse(success=True, count=count)


@router.get("/{message_id}", response_model=MessageDetail)
async def get_message(
    message_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """One message with its replies, user, order and parent."""
    return MessageDetail.model_validate(MessageService(db).get_message(actor, message_id))


@router.post("/{message_id}/reply", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def reply_to_message(
    message_id: int,
    body: ReplyBody,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    msg = MessageService(db).reply_to_message(actor, message_id, body)
    await broadcast_new_message(manager, msg)
    return MessageResponse.model_validate(msg)


@router.patch("/{message_id}/read", response_model=MessageResponse)
async def mark_message_read(
    message_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    msg = ReadStateService(db).mark_message_as_read(actor, message_id)
    if msg.order_id is not None:
        await manager.broadcast(msg.order_id, events.message_read(msg))
    return MessageResponse.model_validate(msg)


# --- Order thread ---

@orders_router.get("/{order_id}/messages", response_model=List[MessageResponse])
async def get_order_messages(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """Full order thread, oldest first. Owner or staff only."""
    return [
        MessageResponse.model_validate(m)
        for m in MessageService(db).get_order_thread(actor, order_id)
    ]
