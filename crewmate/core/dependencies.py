"""
Dependency providers for FastAPI.

The identity provider issues bearer tokens; the caller's user id is the
token's `sub` claim and is trusted as given.
"""

from fastapi import Request, WebSocket
from typing import Optional
import logging

from crewmate.core.exceptions import AuthenticationError
from crewmate.core.jwt import decode_token

logger = logging.getLogger(__name__)


def _user_id_from_token(token: str) -> Optional[int]:
    payload = decode_token(token)
    if not payload or "sub" not in payload:
        return None
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        logger.warning(f"Token subject is not a user id: {payload['sub']!r}")
        return None


async def get_current_user_id(request: Request) -> int:
    """
    Resolve the caller's user id from the Authorization header.

    Raises:
        AuthenticationError: missing, invalid or expired token
    """
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError("Bearer token required")

    user_id = _user_id_from_token(auth_header[len("Bearer "):])
    if user_id is None:
        raise AuthenticationError("Invalid authentication token")
    return user_id


async def get_websocket_user_id(websocket: WebSocket) -> Optional[int]:
    """
    Resolve a stream subscriber from the Authorization header or a `token`
    query parameter (browsers cannot set headers on WebSocket upgrades).

    Returns None when the token is missing or invalid.
    """
    auth_header = websocket.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):]
    else:
        token = websocket.query_params.get("token", "")
    if not token:
        return None
    return _user_id_from_token(token)
