"""
Jewelry storefront order-messaging backend entry point.

REST under /api, the live order chat socket at /api/ws.
"""
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import text
from app.chat.connection_manager import ConnectionManager
from app.core.config import settings
from app.core.database import Base, engine
from app.core.middleware import SessionMiddleware
from app.router.endpoints import api_router
from app.session.session_layer import init_redis
import logging
import uvicorn

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _connect_session_store() -> None:
    try:
        init_redis(
            host=settings.REDIS_HOST,
            port=settings.REDIS_PORT,
            db=settings.REDIS_DB,
            session_ttl=settings.SESSION_TTL
        )
        logger.info(f"Session store ready at {settings.REDIS_HOST}:{settings.REDIS_PORT}")
    except Exception as e:
        logger.error(f"Redis initialization failed: {e}")


def _check_message_store() -> None:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Message store reachable")

        # Migrations own the schema outside DEBUG (alembic upgrade head)
        if settings.DEBUG:
            from app.model import User, Order, Message  # noqa: F401
            Base.metadata.create_all(bind=engine)
            logger.info("Tables users/orders/messages ensured (DEBUG mode)")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting order messaging...")
    _connect_session_store()
    _check_message_store()

    yield

    manager: ConnectionManager = app.state.connection_manager
    logger.info("Shutting down with %d live chat connections", len(manager))
    engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    lifespan=lifespan,
)

# One broker per process; handlers reach it through get_connection_manager
app.state.connection_manager = ConnectionManager()

app.add_middleware(SessionMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)

# Locally stored message images (when S3 is not configured)
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR), name="uploads")


@app.get("/health")
async def health():
    return {"status": "ok", "liveConnections": len(app.state.connection_manager)}


if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
