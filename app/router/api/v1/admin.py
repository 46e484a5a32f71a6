"""
Staff console API: all conversations, unread triage, per-order replies.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.chat import events
from app.chat.connection_manager import ConnectionManager
from app.chat.party import Actor
from app.core.database import get_db
from app.core.dependencies import get_connection_manager, require_admin
from app.router.api.v1.messages import broadcast_new_message
from app.schema.message import (
    MarkReadResponse,
    MessageCreateBody,
    MessageResponse,
    OrderSummary,
)
from app.service.conversation_service import ConversationService
from app.service.message_service import MessageService
from app.service.read_state_service import ReadStateService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/messages", response_model=List[MessageResponse])
async def list_all_messages(
    user_id: Optional[int] = Query(None, alias="userId"),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Every message, newest first; optionally one customer's conversations."""
    return [MessageResponse.model_validate(m) for m in MessageService(db).list_all(user_id=user_id)]


@router.get("/messages/unread", response_model=List[MessageResponse])
async def list_unread_messages(
    user_id: Optional[int] = Query(None, alias="userId"),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Customer messages staff has not read yet, newest first."""
    msgs = MessageService(db).list_unread_from_customers(actor, user_id=user_id)
    return [MessageResponse.model_validate(m) for m in msgs]


@router.get("/orders-with-messages", response_model=List[OrderSummary])
async def orders_with_messages(
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Orders that have messages, by order id, with staff-side unread counts."""
    return ConversationService(db).get_orders_with_messages()


@router.post(
    "/orders/{order_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_order_message(
    order_id: int,
    body: MessageCreateBody,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    """Staff message on an order; the conversation stays keyed to the order's customer."""
    body = body.model_copy(update={"order_id": order_id, "user_id": None})
    msg = MessageService(db).create_message(actor, body)
    await broadcast_new_message(manager, msg)
    return MessageResponse.model_validate(msg)


@router.post("/orders/{order_id}/messages/mark-read", response_model=MarkReadResponse)
async def mark_order_messages_read(
    order_id: int,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
    manager: ConnectionManager = Depends(get_connection_manager),
):
    count = ReadStateService(db).mark_order_messages_as_read(actor, order_id)
    await manager.broadcast(order_id, events.messages_read(order_id, count))
    return MarkReadResponse(success=True, count=count)
