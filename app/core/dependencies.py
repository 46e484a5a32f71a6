"""
FastAPI dependencies for route protection and shared services.
"""
from fastapi import Request, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Any, Dict, Optional

from app.chat.connection_manager import ConnectionManager
from app.chat.party import Actor
from app.core.exceptions import AdminRequired, NotAuthenticated, SessionExpired

# Security scheme for OpenAPI docs. auto_error=False so cookie sessions also work.
bearer_scheme = HTTPBearer(
    scheme_name="Bearer",
    description="Session token issued by the storefront auth service",
    auto_error=False,
)


async def validate_session(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """
    Validates session loaded by middleware.

    Returns:
        Session dict with user_id, email, is_admin

    Raises:
        NotAuthenticated: No token provided
        SessionExpired: Token not found in Redis
    """
    if not request.state.token:
        raise NotAuthenticated()

    if not request.state.session:
        raise SessionExpired()

    return request.state.session


async def get_current_actor(
    current_user: Dict[str, Any] = Depends(validate_session),
) -> Actor:
    return Actor.from_session(current_user)


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise AdminRequired()
    return actor


def get_connection_manager(request: Request) -> ConnectionManager:
    """The broker owned by the application instance."""
    return request.app.state.connection_manager
