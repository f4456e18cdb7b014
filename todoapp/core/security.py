"""Identity provider: resolves the current user from a JWT cookie or bearer token."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
import jwt
from fastapi import Request
from .config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str


def create_jwt_token(data: dict, expires_delta: timedelta = timedelta(hours=1)) -> str:
    """
    Creates a JWT (JSON Web Token) with the provided data and expiration time.

    Args:
        data (dict): The payload data to be encoded in the JWT. The user id
            goes in the ``sub`` claim.
        expires_delta (timedelta, optional): The time until the token expires.
            Defaults to 1 hour.

    Returns:
        str: The encoded JWT string.
    """
    to_encode = data.copy()
    expire = datetime.utcnow() + expires_delta
    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow()
    })
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_jwt_token(token: str) -> dict:
    """Decodes and validates a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or improperly formatted.
    """
    return jwt.decode(
        token,
        settings.SECRET_KEY,
        algorithms=[settings.ALGORITHM]
    )


def _token_from_request(request: Request) -> Optional[str]:
    token = request.cookies.get(settings.AUTH_COOKIE_NAME)
    if token:
        return token
    authorization = request.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


class RequestIdentityProvider:
    """Reads the session token attached to an HTTP request."""

    def __init__(self, request: Request):
        self.request = request

    async def get_current_user(self) -> Optional[CurrentUser]:
        token = _token_from_request(self.request)
        if not token:
            return None
        try:
            payload = decode_jwt_token(token)
        except jwt.InvalidTokenError as e:
            logger.info(f"Rejected auth token: {str(e)}")
            return None

        user_id = payload.get("sub")
        if not user_id:
            return None
        return CurrentUser(id=str(user_id))


class StaticIdentityProvider:
    """Identity provider with a fixed answer, for scripts and tests."""

    def __init__(self, user_id: Optional[str]):
        self.user = CurrentUser(id=user_id) if user_id else None

    async def get_current_user(self) -> Optional[CurrentUser]:
        return self.user


def get_identity_provider(request: Request) -> RequestIdentityProvider:
    """FastAPI dependency returning the identity provider for this request"""
    return RequestIdentityProvider(request)
