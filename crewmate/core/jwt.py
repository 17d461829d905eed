"""JWT issue / verify utilities (access tokens carry the user id as `sub`)"""
from datetime import timedelta
from typing import Dict, Any, Optional
import jwt

from crewmate.config import get_settings
from crewmate.core.clock import utcnow


def _build_payload(subject: str, expires_minutes: int) -> Dict[str, Any]:
    now = utcnow()
    return {
        "sub": subject,
        "iat": now,
        "exp": now + timedelta(minutes=expires_minutes),
    }


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    security = get_settings().security
    minutes = expires_minutes or security.access_token_minutes
    return jwt.encode(_build_payload(str(user_id), minutes), security.jwt_secret, algorithm=security.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any] | None:
    security = get_settings().security
    try:
        return jwt.decode(token, security.jwt_secret, algorithms=[security.jwt_algorithm])
    except jwt.PyJWTError:
        return None
