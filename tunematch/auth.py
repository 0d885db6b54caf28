from datetime import datetime, timedelta
from typing import Optional
import logging

import jwt
import pytz
from fastapi import HTTPException, Request, status
from pydantic import BaseModel, Field

from tunematch.core.config import settings
from tunematch.errors import AuthenticationError

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


class TokenPayload(BaseModel):
    """Decoded session token claims."""

    sub: str = Field(..., description="Internal profile id")
    spotify_id: str = Field(..., description="Spotify user id")
    iat: int = Field(..., description="Issued at time (Unix timestamp)")
    exp: int = Field(..., description="Expiration time (Unix timestamp)")

    @property
    def user_id(self) -> Optional[int]:
        return int(self.sub) if self.sub.isdigit() else None


def create_access_token(
    user_id: int,
    spotify_id: str,
    expires_delta: Optional[timedelta] = None,
    now: Optional[datetime] = None
) -> str:
    """
    Create a signed session token.

    Args:
        user_id: Internal profile id
        spotify_id: Spotify user id of the profile
        expires_delta: Lifetime override, defaults to ACCESS_TOKEN_EXPIRE_MINUTES
        now: Issue time override

    Returns:
        Encoded JWT
    """
    issued_at = now or datetime.now(pytz.UTC)
    expire = issued_at + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {
        "sub": str(user_id),
        "spotify_id": spotify_id,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp())
    }
    logger.debug(f"Creating access token for user {user_id} (expires {expire.isoformat()})")
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    """
    Verify signature and expiry of a session token.

    Raises:
        AuthenticationError: If the token is expired, tampered or malformed
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require": ["sub", "exp", "iat"]}
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Rejected session token: expired")
        raise AuthenticationError("Token has expired")
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected session token: invalid ({e})")
        raise AuthenticationError("Invalid token")

    try:
        return TokenPayload(**payload)
    except ValueError as e:
        logger.warning(f"Rejected session token: incomplete claims ({e})")
        raise AuthenticationError("Invalid token")


def extract_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    """Return the token part of a ``Bearer <token>`` header, if any."""
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


async def get_current_user(request: Request) -> TokenPayload:
    """
    Get the current authenticated user from the JWT token in the request.

    Both a missing and an invalid token produce the same 401 response;
    only the log line tells them apart.

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication Failed",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        logger.warning(f"No bearer token on {request.method} {request.url.path}")
        raise credentials_exception

    try:
        user = decode_access_token(token)
    except AuthenticationError:
        raise credentials_exception

    request.state.user = user
    return user
