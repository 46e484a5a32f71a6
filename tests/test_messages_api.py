from app.model.message import Message
from tests.conftest import (
    ADMIN_ID,
    CUSTOMER_ID,
    ORDER_ID,
    OTHER_CUSTOMER_ID,
    OTHER_ORDER_ID,
    auth,
)


def test_requires_session(client):
    assert client.get("/api/messages").status_code == 401
    assert client.post("/api/messages", json={"content": "hi"}).status_code == 401
    resp = client.get("/api/messages", headers={"Authorization": "Bearer unknown"})
    assert resp.status_code == 401
    assert resp.json()["detail"]["code"] == "SESSION_EXPIRED"


def test_session_cookie_is_accepted(client):
    client.cookies.set("session", f"tok-{CUSTOMER_ID}")
    try:
        assert client.get("/api/messages").status_code == 200
    finally:
        client.cookies.clear()


def test_customer_creates_order_message(client):
    resp = client.post(
        "/api/messages",
        json={"content": "  Where is my order?  ", "orderId": ORDER_ID},
        headers=auth(CUSTOMER_ID),
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["content"] == "Where is my order?"
    assert body["subject"] == "Order #JW-1042"
    assert body["userId"] == CUSTOMER_ID
    assert body["orderId"] == ORDER_ID
    assert body["isFromAdmin"] is False
    assert body["isRead"] is False


def test_staff_message_keeps_customer_as_conversation_owner(client):
    resp = client.post(
        "/api/messages",
        json={"content": "We are on it", "orderId": ORDER_ID},
        headers=auth(ADMIN_ID),
    )

    assert resp.status_code == 201
    assert resp.json()["userId"] == CUSTOMER_ID
    assert resp.json()["isFromAdmin"] is True


def test_empty_content_needs_an_image(client):
    resp = client.post(
        "/api/messages", json={"content": "   ", "orderId": ORDER_ID}, headers=auth(CUSTOMER_ID)
    )
    assert resp.status_code == 400
    assert resp.json()["detail"]["field"] == "content"

    resp = client.post(
        "/api/messages",
        json={"content": "", "orderId": ORDER_ID, "imageUrl": "/uploads/message-images/x.png"},
        headers=auth(CUSTOMER_ID),
    )
    assert resp.status_code == 201


def test_general_message_without_order(client):
    resp = client.post("/api/messages", json={"content": "Do you resize rings?"}, headers=auth(CUSTOMER_ID))

    assert resp.status_code == 201
    assert resp.json()["orderId"] is None
    assert resp.json()["subject"] == "General inquiry"

    resp = client.post("/api/messages", json={"content": "Hello"}, headers=auth(ADMIN_ID))
    assert resp.status_code == 400

    resp = client.post(
        "/api/messages", json={"content": "Yes we do", "userId": CUSTOMER_ID}, headers=auth(ADMIN_ID)
    )
    assert resp.status_code == 201
    assert resp.json()["userId"] == CUSTOMER_ID


def test_unknown_order_is_404(client):
    resp = client.post("/api/messages", json={"content": "hi", "orderId": 999}, headers=auth(CUSTOMER_ID))
    assert resp.status_code == 404


def test_non_owner_is_forbidden_for_every_write(client, add_message):
    parent = add_message(order_id=ORDER_ID, user_id=CUSTOMER_ID)
    headers = auth(OTHER_CUSTOMER_ID)

    create = client.post("/api/messages", json={"content": "hi", "orderId": ORDER_ID}, headers=headers)
    reply = client.post(f"/api/messages/{parent.id}/reply", json={"content": "hi"}, headers=headers)
    bulk = client.post(f"/api/messages/mark-read-by-order/{ORDER_ID}", headers=headers)
    thread = client.get(f"/api/orders/{ORDER_ID}/messages", headers=headers)
    single = client.get(f"/api/messages/{parent.id}", headers=headers)

    assert [r.status_code for r in (create, reply, bulk, thread, single)] == [403] * 5


def test_reply_inherits_order_and_subject(client, add_message):
    parent = add_message(order_id=ORDER_ID)

    resp = client.post(
        f"/api/messages/{parent.id}/reply", json={"content": "Shipped yesterday"}, headers=auth(ADMIN_ID)
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["parentId"] == parent.id
    assert body["orderId"] == ORDER_ID
    assert body["userId"] == CUSTOMER_ID
    assert body["subject"] == "Re: Order thread"
    assert body["isFromAdmin"] is True

    again = client.post(
        f"/api/messages/{body['id']}/reply", json={"content": "Thanks"}, headers=auth(CUSTOMER_ID)
    )
    assert again.json()["subject"] == "Re: Order thread"


def test_reply_to_a_reply_attaches_to_the_root(client, add_message):
    root = add_message(order_id=ORDER_ID)
    first = client.post(
        f"/api/messages/{root.id}/reply", json={"content": "Shipped"}, headers=auth(ADMIN_ID)
    ).json()

    resp = client.post(
        f"/api/messages/{first['id']}/reply", json={"content": "Thanks!"}, headers=auth(CUSTOMER_ID)
    )

    assert resp.status_code == 201
    assert resp.json()["parentId"] == root.id
    assert resp.json()["orderId"] == ORDER_ID
    detail = client.get(f"/api/messages/{root.id}", headers=auth(CUSTOMER_ID)).json()
    assert [r["content"] for r in detail["replies"]] == ["Shipped", "Thanks!"]


def test_reply_to_missing_message(client):
    resp = client.post("/api/messages/999/reply", json={"content": "hi"}, headers=auth(ADMIN_ID))
    assert resp.status_code == 404


def test_get_message_with_replies(client, add_message):
    parent = add_message(minutes=0)
    add_message(minutes=1, from_admin=True, parent_id=parent.id, content="reply")

    resp = client.get(f"/api/messages/{parent.id}", headers=auth(CUSTOMER_ID))

    assert resp.status_code == 200
    body = resp.json()
    assert [r["content"] for r in body["replies"]] == ["reply"]
    assert body["order"]["orderNumber"] == "JW-1042"
    assert body["user"]["id"] == CUSTOMER_ID
    assert client.get("/api/messages/999", headers=auth(CUSTOMER_ID)).status_code == 404


def test_list_and_thread_ordering(client, add_message):
    add_message(minutes=2, content="b")
    add_message(minutes=1, content="a")
    add_message(minutes=3, from_admin=True, content="c")
    add_message(order_id=OTHER_ORDER_ID, user_id=OTHER_CUSTOMER_ID, content="not yours")

    mine = client.get("/api/messages", headers=auth(CUSTOMER_ID)).json()
    thread = client.get(f"/api/orders/{ORDER_ID}/messages", headers=auth(ADMIN_ID)).json()

    assert [m["content"] for m in mine] == ["c", "b", "a"]
    assert [m["content"] for m in thread] == ["a", "b", "c"]


def test_mark_single_read_only_by_counterpart(client, add_message):
    from_customer = add_message(from_admin=False)
    from_staff = add_message(from_admin=True)

    assert client.patch(f"/api/messages/{from_customer.id}/read", headers=auth(CUSTOMER_ID)).status_code == 403
    assert client.patch(f"/api/messages/{from_staff.id}/read", headers=auth(ADMIN_ID)).status_code == 403

    resp = client.patch(f"/api/messages/{from_staff.id}/read", headers=auth(CUSTOMER_ID))
    assert resp.status_code == 200
    assert resp.json()["isRead"] is True
    assert client.patch(f"/api/messages/{from_staff.id}/read", headers=auth(CUSTOMER_ID)).status_code == 200


def test_unread_count_for_each_side(client, add_message):
    add_message(from_admin=True)
    add_message(from_admin=True)
    add_message(from_admin=False)

    customer_count = client.get("/api/messages/unread/count", headers=auth(CUSTOMER_ID)).json()
    staff_count = client.get("/api/messages/unread/count", headers=auth(ADMIN_ID)).json()

    assert customer_count == {"count": 2}
    assert staff_count == {"count": 1}


def test_messaging_config_exposes_poll_interval(client):
    resp = client.get("/api/messages/config", headers=auth(CUSTOMER_ID))
    assert resp.json() == {"pollIntervalSeconds": 5}


def test_customer_conversations(client, add_message):
    add_message(from_admin=True)

    resp = client.get("/api/messages/conversations", headers=auth(CUSTOMER_ID))

    assert resp.status_code == 200
    [summary] = resp.json()
    assert summary["orderId"] == ORDER_ID
    assert summary["orderNumber"] == "JW-1042"
    assert summary["unreadCount"] == 1


def test_admin_routes_require_staff(client):
    for path in ("/api/admin/messages", "/api/admin/messages/unread", "/api/admin/orders-with-messages"):
        resp = client.get(path, headers=auth(CUSTOMER_ID))
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == "ADMIN_REQUIRED"
    resp = client.post(f"/api/admin/orders/{ORDER_ID}/messages", json={"content": "x"}, headers=auth(CUSTOMER_ID))
    assert resp.status_code == 403


def test_admin_message_lists(client, add_message):
    add_message(minutes=1, content="dana unread")
    add_message(minutes=2, content="dana read", read=True)
    add_message(order_id=OTHER_ORDER_ID, user_id=OTHER_CUSTOMER_ID, minutes=3, content="eli unread")

    everything = client.get("/api/admin/messages", headers=auth(ADMIN_ID)).json()
    danas = client.get(f"/api/admin/messages?userId={CUSTOMER_ID}", headers=auth(ADMIN_ID)).json()
    unread = client.get("/api/admin/messages/unread", headers=auth(ADMIN_ID)).json()
    unread_eli = client.get(f"/api/admin/messages/unread?userId={OTHER_CUSTOMER_ID}", headers=auth(ADMIN_ID)).json()

    assert [m["content"] for m in everything] == ["eli unread", "dana read", "dana unread"]
    assert [m["content"] for m in danas] == ["dana read", "dana unread"]
    assert [m["content"] for m in unread] == ["eli unread", "dana unread"]
    assert [m["content"] for m in unread_eli] == ["eli unread"]


def test_admin_order_message_and_mark_read(client, add_message, db):
    add_message(from_admin=False)

    sent = client.post(
        f"/api/admin/orders/{ORDER_ID}/messages", json={"content": "Packed and ready"}, headers=auth(ADMIN_ID)
    )
    summaries = client.get("/api/admin/orders-with-messages", headers=auth(ADMIN_ID)).json()
    marked = client.post(f"/api/admin/orders/{ORDER_ID}/messages/mark-read", headers=auth(ADMIN_ID))

    assert sent.status_code == 201
    assert sent.json()["userId"] == CUSTOMER_ID
    assert summaries[0]["unreadCount"] == 1
    assert marked.json() == {"success": True, "count": 1}
    db.expire_all()
    staff_msg = db.get(Message, sent.json()["id"])
    assert staff_msg.is_read is False


def test_order_scenario_end_to_end(client):
    """Customer asks, staff replies, customer reads the reply."""
    question = client.post(
        "/api/messages",
        json={"content": "Where is my order?", "orderId": ORDER_ID},
        headers=auth(CUSTOMER_ID),
    ).json()
    answer = client.post(
        f"/api/messages/{question['id']}/reply",
        json={"content": "Shipped yesterday"},
        headers=auth(ADMIN_ID),
    ).json()

    assert answer["parentId"] == question["id"]
    assert client.get("/api/messages/unread/count", headers=auth(CUSTOMER_ID)).json() == {"count": 1}

    marked = client.post(f"/api/messages/mark-read-by-order/{ORDER_ID}", headers=auth(CUSTOMER_ID))

    assert marked.json() == {"success": True, "count": 1}
    assert client.get("/api/messages/unread/count", headers=auth(CUSTOMER_ID)).json() == {"count": 0}
    # Staff still has the customer's question unread
    assert client.get("/api/messages/unread/count", headers=auth(ADMIN_ID)).json() == {"count": 1}


def test_health_reports_live_connections(client):
    assert client.get("/health").json() == {"status": "ok", "liveConnections": 0}


def test_staff_conversations_are_the_admin_list(client, add_message):
    add_message(order_id=OTHER_ORDER_ID, user_id=OTHER_CUSTOMER_ID)
    add_message(order_id=ORDER_ID)

    summaries = client.get("/api/messages/conversations", headers=auth(ADMIN_ID)).json()

    assert [s["orderId"] for s in summaries] == [ORDER_ID, OTHER_ORDER_ID]
    assert all(s["unreadCount"] == 1 for s in summaries)
