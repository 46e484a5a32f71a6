"""
Order chat WebSocket.

One endpoint, JSON text frames tagged by `type`. Identity comes from the
session token presented at the handshake (?token=, bearer header or session
cookie); the client's `auth` frame only confirms it. Connection states:
connected -> authenticated -> authenticated + subscribed to one order.
"""
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from app.chat import events
from app.chat.connection_manager import ConnectionManager
from app.chat.party import Actor, Party
from app.core.config import settings
from app.core.database import SessionLocal, read_guard
from app.core.exceptions import AppException, NotAuthenticated, StoreUnavailable, ValidationFailed
from app.core.middleware import load_session
from app.crud import message_crud
from app.schema.message import MessageCreateBody, ReplyBody
from app.schema.socket import (
    AuthFrame,
    InboundFrame,
    MarkReadFrame,
    SendMessageFrame,
    SubscribeFrame,
)
from app.service.message_service import MessageService
from app.service.read_state_service import ReadStateService

router = APIRouter()
logger = logging.getLogger(__name__)


class ChatConnection:
    """Handles the frames of one socket connection."""

    def __init__(self, manager: ConnectionManager, connection_id: str, session: Dict[str, Any]):
        self.manager = manager
        self.connection_id = connection_id
        self.session = session
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[None]]] = {
            "auth": self.on_auth,
            "subscribe": self.on_subscribe,
            "unsubscribe": self.on_unsubscribe,
            "message": self.on_message,
            "mark_read": self.on_mark_read,
        }

    async def reply(self, event: Dict[str, Any]) -> None:
        await self.manager.send(self.connection_id, event)

    async def send_error(self, message: str, code: str = "ERROR") -> None:
        await self.reply(events.error(message, code))

    def actor(self) -> Actor:
        sub = self.manager.get(self.connection_id)
        if sub is None or not sub.is_authenticated:
            raise NotAuthenticated("Send an auth frame before this action.")
        return Actor(user_id=sub.user_id, party=Party.from_admin_flag(sub.is_admin))

    async def handle(self, raw: str) -> None:
        try:
            obj = json.loads(raw)
        except json.JSONDecodeError:
            await self.send_error("Frame must be valid JSON.", "INVALID_JSON")
            return
        if not isinstance(obj, dict):
            await self.send_error("Frame must be a JSON object.", "INVALID_FRAME")
            return
        try:
            frame_type = InboundFrame.model_validate(obj).type
        except ValidationError:
            await self.send_error("Missing required field: type.", "INVALID_FRAME")
            return
        handler = self._handlers.get(frame_type)
        if handler is None:
            await self.send_error(
                "Expected type: auth, subscribe, unsubscribe, message or mark_read.",
                "UNKNOWN_TYPE",
            )
            return
        try:
            await handler(obj)
        except ValidationError as e:
            logger.warning("Rejected %s frame on %s: %s", frame_type, self.connection_id, e)
            await self.send_error(f"Invalid {frame_type} frame.", "INVALID_FRAME")
        except AppException as e:
            logger.warning("%s frame on %s failed: %s", frame_type, self.connection_id, e.code)
            await self.send_error(e.message, e.code)
        except SQLAlchemyError:
            logger.exception("Store error on %s frame from %s", frame_type, self.connection_id)
            await self.send_error(StoreUnavailable.message, StoreUnavailable.code)

    async def on_auth(self, obj: Dict[str, Any]) -> None:
        frame = AuthFrame.model_validate(obj)
        if not self.session:
            await self.reply(events.auth_response(False))
            raise NotAuthenticated("Connect with a valid session token to authenticate.")
        actor = Actor.from_session(self.session)
        claimed_other_user = frame.user_id is not None and frame.user_id != actor.user_id
        claimed_other_role = frame.is_admin is not None and frame.is_admin != actor.is_admin
        if claimed_other_user or claimed_other_role:
            logger.warning(
                "Auth claim mismatch on %s: session user %s, claimed %s/%s",
                self.connection_id, actor.user_id, frame.user_id, frame.is_admin,
            )
            await self.reply(events.auth_response(False))
            return
        await self.manager.authenticate(self.connection_id, actor.user_id, actor.is_admin)
        await self.reply(events.auth_response(True, userId=actor.user_id, isAdmin=actor.is_admin))

    async def on_subscribe(self, obj: Dict[str, Any]) -> None:
        actor = self.actor()
        frame = SubscribeFrame.model_validate(obj)
        db = SessionLocal()
        try:
            service = MessageService(db)
            with read_guard(db, "check order access"):
                service.get_accessible_order(actor, frame.order_id)
            previous = self.manager.get(self.connection_id).order_id
            # Subscribe before reading history so nothing committed in between is missed
            await self.manager.subscribe(self.connection_id, frame.order_id)
            try:
                with read_guard(db, "load order history"):
                    thread = service.get_order_thread(actor, frame.order_id)
            except StoreUnavailable:
                await self._restore_subscription(previous)
                raise
            await self.reply(events.history(frame.order_id, thread))
        finally:
            db.close()

    async def _restore_subscription(self, order_id: Optional[int]) -> None:
        if order_id is None:
            await self.manager.unsubscribe(self.connection_id)
        else:
            await self.manager.subscribe(self.connection_id, order_id)

    async def on_unsubscribe(self, obj: Dict[str, Any]) -> None:
        self.actor()
        previous = await self.manager.unsubscribe(self.connection_id)
        await self.reply(events.unsubscribed(previous))

    async def on_message(self, obj: Dict[str, Any]) -> None:
        actor = self.actor()
        frame = SendMessageFrame.model_validate(obj)
        db = SessionLocal()
        try:
            service = MessageService(db)
            if frame.parent_id is not None:
                with read_guard(db, "load parent message"):
                    parent = message_crud.get_by_id(db, message_id=frame.parent_id)
                if parent is not None and parent.order_id != frame.order_id:
                    raise ValidationFailed(
                        "parentId belongs to a different order.", field="parentId"
                    )
                with read_guard(db, "reply to message"):
                    msg = service.reply_to_message(
                        actor,
                        frame.parent_id,
                        ReplyBody(content=frame.content, image_url=frame.image_url),
                    )
            else:
                with read_guard(db, "create message"):
                    msg = service.create_message(
                        actor,
                        MessageCreateBody(
                            content=frame.content,
                            order_id=frame.order_id,
                            image_url=frame.image_url,
                            subject=frame.subject,
                        ),
                    )
            await self.manager.broadcast(msg.order_id, events.new_message(msg))
        finally:
            db.close()

    async def on_mark_read(self, obj: Dict[str, Any]) -> None:
        actor = self.actor()
        frame = MarkReadFrame.model_validate(obj)
        db = SessionLocal()
        try:
            with read_guard(db, "mark message read"):
                msg = ReadStateService(db).mark_message_as_read(actor, frame.message_id)
            if msg.order_id is not None:
                await self.manager.broadcast(msg.order_id, events.message_read(msg))
        finally:
            db.close()


@router.websocket("/ws")
async def websocket_chat(websocket: WebSocket):
    """Live order chat: auth, subscribe to one order, send messages and read receipts."""
    manager: ConnectionManager = websocket.app.state.connection_manager
    await websocket.accept()
    _, session = load_session(websocket)
    connection_id = manager.new_connection_id()
    await manager.register(connection_id, websocket)
    conn = ChatConnection(manager, connection_id, session)
    await conn.reply(events.welcome(settings.MESSAGE_POLL_INTERVAL_SECONDS))
    try:
        while True:
            data = await websocket.receive_text()
            await conn.handle(data)
    except WebSocketDisconnect:
        logger.debug("Connection %s disconnected", connection_id)
    except Exception as e:
        logger.warning("WebSocket closed: %s", e)
    finally:
        await manager.unregister(connection_id)
