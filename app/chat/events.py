"""
Server -> client event payloads for the order chat socket.
"""
from typing import Any, Dict, Iterable

from app.model.message import Message
from app.schema.message import MessageResponse

NEW_MESSAGE = "new_message"
MESSAGE_READ = "message_read"
MESSAGES_READ = "messages_read"


def message_to_payload(msg: Message) -> Dict[str, Any]:
    """Serialize a message for responses and broadcasts (camelCase, JSON-safe)."""
    return MessageResponse.model_validate(msg).model_dump(mode="json", by_alias=True)


def welcome(poll_interval_seconds: int) -> Dict[str, Any]:
    return {
        "type": "welcome",
        "message": "Connected to order messaging.",
        "pollIntervalSeconds": poll_interval_seconds,
    }


def auth_response(success: bool, **identity: Any) -> Dict[str, Any]:
    return {"type": "auth_response", "success": success, **identity}


def history(order_id: int, messages: Iterable[Message]) -> Dict[str, Any]:
    return {
        "type": "history",
        "orderId": order_id,
        "messages": [message_to_payload(m) for m in messages],
    }


def unsubscribed(order_id) -> Dict[str, Any]:
    return {"type": "unsubscribed", "orderId": order_id}


def new_message(msg: Message) -> Dict[str, Any]:
    return {"type": NEW_MESSAGE, "message": message_to_payload(msg)}


def message_read(msg: Message) -> Dict[str, Any]:
    return {"type": MESSAGE_READ, "messageId": msg.id, "orderId": msg.order_id}


def messages_read(order_id: int, count: int) -> Dict[str, Any]:
    return {"type": MESSAGES_READ, "orderId": order_id, "count": count}


def error(message: str, code: str = "ERROR") -> Dict[str, Any]:
    return {"type": "error", "code": code, "message": message}
