"""
Session Middleware - loads session from Redis for each request.
"""
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import HTTPConnection, Request
from starlette.responses import Response
from typing import Any, Callable, Dict, Optional, Tuple
from app.core.config import settings
from app.session import extract_token, get_session


def load_session(conn: HTTPConnection) -> Tuple[Optional[str], Dict[str, Any]]:
    """
    Resolve (token, session) for an HTTP request or WebSocket handshake.

    Token sources, first match wins: Authorization bearer header,
    ?token= query parameter, session cookie.
    """
    token = (
        extract_token(conn.headers.get("authorization"))
        or conn.query_params.get("token")
        or conn.cookies.get(settings.SESSION_COOKIE_NAME)
    )
    if not token:
        return None, {}
    user_data = get_session(token)
    if not user_data:
        return token, {}
    return token, user_data


class SessionMiddleware(BaseHTTPMiddleware):
    """Attaches request.state.token / request.state.session."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        token, session = load_session(request)
        request.state.token = token
        request.state.session = session
        return await call_next(request)
