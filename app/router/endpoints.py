"""
API Router - all endpoints.
"""
from fastapi import APIRouter
from app.router.api.v1 import admin, chat, messages

api_router = APIRouter(prefix="/api")

api_router.include_router(
    messages.router,
    prefix="/messages",
    tags=["Messages"],
)

api_router.include_router(
    messages.orders_router,
    prefix="/orders",
    tags=["Messages"],
)

api_router.include_router(
    admin.router,
    prefix="/admin",
    tags=["Admin"],
)

api_router.include_router(
    chat.router,
    tags=["Chat"],
)
