"""
Shared fixtures: in-memory SQLite, seeded users/orders, stubbed Redis sessions.

Environment must be set before any app module is imported.
"""
import os
import tempfile

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="messaging-uploads-")
os.environ["DEBUG"] = "false"

from datetime import datetime, timedelta
from typing import Dict

import pytest
from fastapi.testclient import TestClient

from app.chat.connection_manager import ConnectionManager
from app.chat.party import Actor, Party
from app.core.database import Base, SessionLocal, engine
from app.model import Message, Order, User
import app.core.middleware as middleware
from main import app as fastapi_app

CUSTOMER_ID = 7
OTHER_CUSTOMER_ID = 8
ADMIN_ID = 1
ORDER_ID = 42
OTHER_ORDER_ID = 43
SECOND_ORDER_ID = 44

SESSIONS: Dict[str, dict] = {
    f"tok-{CUSTOMER_ID}": {"user_id": CUSTOMER_ID, "email": "dana@example.com", "is_admin": False},
    f"tok-{OTHER_CUSTOMER_ID}": {"user_id": OTHER_CUSTOMER_ID, "email": "eli@example.com", "is_admin": False},
    f"tok-{ADMIN_ID}": {"user_id": ADMIN_ID, "email": "staff@example.com", "is_admin": True},
}

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0)


def auth(user_id: int) -> dict:
    return {"Authorization": f"Bearer tok-{user_id}"}


customer = Actor(user_id=CUSTOMER_ID, party=Party.CUSTOMER)
other_customer = Actor(user_id=OTHER_CUSTOMER_ID, party=Party.CUSTOMER)
staff = Actor(user_id=ADMIN_ID, party=Party.STAFF)


@pytest.fixture(autouse=True)
def fake_sessions(monkeypatch):
    monkeypatch.setattr(middleware, "get_session", lambda token: SESSIONS.get(token))


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        session.add_all([
            User(id=ADMIN_ID, email="staff@example.com", is_admin=True),
            User(id=CUSTOMER_ID, email="dana@example.com", name="Dana"),
            User(id=OTHER_CUSTOMER_ID, email="eli@example.com", name="Eli"),
        ])
        session.flush()
        session.add_all([
            Order(id=ORDER_ID, order_number="JW-1042", user_id=CUSTOMER_ID, created_at=BASE_TIME),
            Order(id=OTHER_ORDER_ID, order_number="JW-1043", user_id=OTHER_CUSTOMER_ID, created_at=BASE_TIME),
            Order(id=SECOND_ORDER_ID, order_number="JW-1044", user_id=CUSTOMER_ID, created_at=BASE_TIME),
        ])
        session.commit()
        yield session
    finally:
        session.close()


@pytest.fixture
def add_message(db):
    """Insert a message directly, with an explicit timestamp offset in minutes."""
    def _add(order_id=ORDER_ID, user_id=CUSTOMER_ID, from_admin=False, read=False,
             minutes=0, content="hello", parent_id=None):
        msg = Message(
            user_id=user_id,
            order_id=order_id,
            parent_id=parent_id,
            subject="Order thread",
            content=content,
            is_from_admin=from_admin,
            is_read=read,
            created_at=BASE_TIME + timedelta(minutes=minutes),
        )
        db.add(msg)
        db.commit()
        db.refresh(msg)
        return msg
    return _add


@pytest.fixture
def manager():
    fastapi_app.state.connection_manager = ConnectionManager()
    return fastapi_app.state.connection_manager


@pytest.fixture
def client(db, manager):
    with TestClient(fastapi_app) as c:
        yield c
        # Release the session before lifespan shutdown disposes the shared connection
        db.close()
