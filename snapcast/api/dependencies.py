# snapcast/api/dependencies.py

import logging
import uuid

from fastapi import Depends, Request
from jose import JWTError, jwt

from snapcast.core.config import settings
from snapcast.core.exceptions import AuthenticationRequired
from snapcast.models.auth import SessionUser

logger = logging.getLogger(__name__)

JWT_ALGORITHMS = ["HS256"]


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if auth_header:
        scheme, _, token = auth_header.partition(" ")
        if scheme.lower() == "bearer" and token.strip():
            return token.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def decode_session_token(token: str) -> SessionUser | None:
    """Verifies a Supabase access token. Any defect means "no session"."""
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=JWT_ALGORITHMS,
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        return None

    try:
        user_id = uuid.UUID(str(payload.get("sub")))
    except ValueError:
        logger.warning("Session token carries a malformed 'sub' claim")
        return None
    return SessionUser(user_id=user_id, email=payload.get("email"))


def resolve_session(request: Request) -> SessionUser | None:
    """Returns the verified principal for this request, or None. Never raises."""
    token = _extract_token(request)
    if not token:
        return None
    return decode_session_token(token)


def get_current_user(user: SessionUser | None = Depends(resolve_session)) -> SessionUser:
    if user is None:
        raise AuthenticationRequired()
    return user
