import asyncio
import json

from starlette.websockets import WebSocketState

from app.chat.connection_manager import ConnectionManager


class FakeWebSocket:
    def __init__(self, fail: bool = False):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.sent = []
        self.fail = fail

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(text))

    def close(self) -> None:
        self.client_state = WebSocketState.DISCONNECTED


def run(coro):
    return asyncio.run(coro)


def test_register_starts_unauthenticated_and_unsubscribed():
    manager = ConnectionManager()
    sub = run(manager.register("c1", FakeWebSocket()))

    assert len(manager) == 1
    assert sub.user_id is None
    assert sub.order_id is None
    assert not sub.is_authenticated


def test_authenticate_binds_identity():
    manager = ConnectionManager()
    run(manager.register("c1", FakeWebSocket()))

    assert run(manager.authenticate("c1", 7, False)) is True
    assert manager.get("c1").user_id == 7
    assert run(manager.authenticate("missing", 7, False)) is False


def test_broadcast_reaches_only_subscribers_of_that_order():
    manager = ConnectionManager()
    a, b, c = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.register("a", a)
        await manager.register("b", b)
        await manager.register("c", c)
        await manager.subscribe("a", 42)
        await manager.subscribe("b", 42)
        await manager.subscribe("c", 43)
        return await manager.broadcast(42, {"type": "new_message", "message": {"id": 1}})

    assert run(scenario()) == 2
    assert a.sent == b.sent == [{"type": "new_message", "message": {"id": 1}}]
    assert c.sent == []


def test_subscribe_replaces_previous_order():
    manager = ConnectionManager()
    ws = FakeWebSocket()

    async def scenario():
        await manager.register("a", ws)
        await manager.subscribe("a", 42)
        await manager.subscribe("a", 43)
        await manager.broadcast(42, {"type": "new_message", "order": 42})
        await manager.broadcast(43, {"type": "new_message", "order": 43})

    run(scenario())
    assert ws.sent == [{"type": "new_message", "order": 43}]
    assert [s.connection_id for s in manager.subscribers(42)] == []


def test_broadcast_skips_closed_and_failing_connections():
    manager = ConnectionManager()
    closed, broken, ok = FakeWebSocket(), FakeWebSocket(fail=True), FakeWebSocket()
    closed.close()

    async def scenario():
        for cid, ws in (("closed", closed), ("broken", broken), ("ok", ok)):
            await manager.register(cid, ws)
            await manager.subscribe(cid, 42)
        return await manager.broadcast(42, {"type": "messages_read", "orderId": 42})

    assert run(scenario()) == 1
    assert closed.sent == []
    assert ok.sent == [{"type": "messages_read", "orderId": 42}]
    # Stale entries stay until their own disconnect
    assert len(manager) == 3


def test_broadcast_with_no_subscribers_is_silent():
    manager = ConnectionManager()
    assert run(manager.broadcast(42, {"type": "new_message"})) == 0


def test_unsubscribe_and_unregister():
    manager = ConnectionManager()
    ws = FakeWebSocket()

    async def scenario():
        await manager.register("a", ws)
        await manager.subscribe("a", 42)
        previous = await manager.unsubscribe("a")
        await manager.broadcast(42, {"type": "new_message"})
        await manager.unregister("a")
        return previous

    assert run(scenario()) == 42
    assert ws.sent == []
    assert len(manager) == 0
    assert manager.get("a") is None
