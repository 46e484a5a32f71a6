"""
Session layer - Redis-backed token store shared with the storefront auth service.

A session value is JSON: {"user_id": int, "email": str, "is_admin": bool}.
"""
from typing import Optional, Dict, Any
import logging
import json
import secrets
import redis

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX = "session:"

_redis_pool: Optional[redis.ConnectionPool] = None
_redis_client: Optional[redis.Redis] = None
_session_ttl: int = 86400


def init_redis(host: str, port: int, db: int, session_ttl: int = 86400) -> None:
    """Initialize Redis connection pool. Call once at app startup."""
    global _redis_pool, _redis_client, _session_ttl
    _redis_pool = redis.ConnectionPool(
        host=host,
        port=port,
        db=db,
        decode_responses=True,
        max_connections=10
    )
    _redis_client = redis.Redis(connection_pool=_redis_pool)
    _session_ttl = session_ttl
    logger.info(f"Redis initialized: {host}:{port}/{db}, TTL: {session_ttl}s")


def _get_redis_client() -> redis.Redis:
    """Get Redis client. Raises if not initialized."""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


def _key(token: str) -> str:
    return f"{SESSION_KEY_PREFIX}{token}"


def create_session(token: str, user_data: Dict[str, Any]) -> None:
    """Store token -> user data with TTL."""
    client = _get_redis_client()
    client.setex(_key(token), _session_ttl, json.dumps(user_data))
    logger.info(f"Session created for user_id={user_data.get('user_id')}")


def issue_session(user_id: int, email: str, is_admin: bool = False) -> str:
    """Mint a new random token for a user and store its session. Returns the token."""
    token = secrets.token_urlsafe(32)
    create_session(token, {"user_id": user_id, "email": email, "is_admin": is_admin})
    return token


def get_session(token: str) -> Optional[Dict[str, Any]]:
    """Get user data for a token, or None when missing/expired."""
    client = _get_redis_client()
    data = client.get(_key(token))
    if data:
        return json.loads(data)
    return None


def remove_session(token: str) -> bool:
    """Remove token from Redis (logout)."""
    client = _get_redis_client()
    result = client.delete(_key(token))
    if result > 0:
        logger.info("Session removed for token")
        return True
    return False


def extract_token(auth_header: Optional[str]) -> Optional[str]:
    """Extract bearer token from an Authorization header."""
    if not auth_header:
        return None

    parts = auth_header.split(" ")
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None

    return parts[1]
