"""Supabase JWT authentication."""

from uuid import UUID

from fastapi import status
from jose import JWTError, jwt

from src.api.core.constants import JWT_ALGORITHM, JWT_AUDIENCE
from src.api.core.exceptions.base import UpblockException
from src.api.core.messages import MessageCode
from src.core.context import AuthenticatedUserContext
from src.utils.settings.auth import AuthSettings
from src.utils.logger import get_logger

logger = get_logger(__name__)


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise UpblockException(
            MessageCode.AUTH_REQUIRED,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Missing Authorization header"},
        )

    auth_parts = authorization.split(" ")
    if len(auth_parts) != 2 or auth_parts[0].lower() != "bearer" or not auth_parts[1]:
        raise UpblockException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_401_UNAUTHORIZED,
            {"description": "Authorization header must be 'Bearer <token>'"},
        )
    return auth_parts[1]


def handle_jwt_auth(token: str, secret: str | None = None) -> AuthenticatedUserContext:
    """Verify a Supabase access token and build the user context."""
    try:
        payload = jwt.decode(
            token,
            secret if secret is not None else AuthSettings().SUPABASE_JWT_SECRET,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
        )
    except JWTError as e:
        logger.error(f"JWT decoding failed: {e}")
        raise UpblockException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_403_FORBIDDEN,
            {"description": "Invalid or expired authentication token"},
        )

    if payload.get("role") == "anon" or payload.get("is_anonymous"):
        raise UpblockException(
            MessageCode.INSUFFICIENT_PERMISSIONS,
            status.HTTP_403_FORBIDDEN,
            {"description": "Anonymous access not permitted"},
        )

    try:
        user_id = UUID(str(payload.get("sub", "")))
    except ValueError:
        raise UpblockException(
            MessageCode.INVALID_TOKEN,
            status.HTTP_403_FORBIDDEN,
            {"description": "Token subject is not a user id"},
        )

    return AuthenticatedUserContext(
        user_id=user_id, email=payload.get("email"), claims=payload
    )
