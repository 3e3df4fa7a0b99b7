"""Bearer token extraction and JWT validation."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Mapping, Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from tubely.core.config import settings
from tubely.core.exceptions import AuthenticationError

TOKEN_ISSUER = "tubely-access"
ALGORITHM = "HS256"


class MissingTokenError(AuthenticationError):
    """Raised when no bearer token is present."""

    pass


class InvalidTokenError(AuthenticationError):
    """Raised when a token fails validation."""

    pass


def create_access_token(
    user_id: uuid.UUID,
    secret: str,
    expires_in: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for a user.

    Args:
        user_id: User UUID, stored as the subject
        secret: HMAC signing secret
        expires_in: Token lifetime (settings default when omitted)

    Returns:
        str: Encoded JWT
    """
    if expires_in is None:
        expires_in = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    now = datetime.now(timezone.utc)
    payload = {
        "iss": TOKEN_ISSUER,
        "sub": str(user_id),
        "iat": now,
        "exp": now + expires_in,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def validate_jwt(token: str, secret: str) -> uuid.UUID:
    """Validate a token and return the user ID it was issued to.

    Raises:
        InvalidTokenError: Bad signature, expired, wrong issuer or subject
    """
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], issuer=TOKEN_ISSUER)
    except JWTError as e:
        raise InvalidTokenError(f"Couldn't validate JWT: {e}") from e

    try:
        return uuid.UUID(payload["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Couldn't validate JWT: invalid subject") from e


def get_bearer_token(headers: Mapping[str, str]) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        MissingTokenError: Header absent or not a bearer credential
    """
    auth_header = headers.get("authorization") or headers.get("Authorization")
    if not auth_header:
        raise MissingTokenError("Couldn't find JWT: no authorization header")

    scheme, _, token = auth_header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise MissingTokenError("Couldn't find JWT: malformed authorization header")
    return token


async def get_current_user_id(request: Request) -> uuid.UUID:
    """FastAPI dependency resolving the authenticated user ID."""
    app_settings = getattr(request.app.state, "settings", settings)
    try:
        token = get_bearer_token(request.headers)
        return validate_jwt(token, app_settings.SECRET_KEY)
    except AuthenticationError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )
