"""Authentication helpers: bearer tokens and JWT validation."""

from tubely.modules.auth.jwt import (
    InvalidTokenError,
    MissingTokenError,
    create_access_token,
    get_bearer_token,
    get_current_user_id,
    validate_jwt,
)

__all__ = [
    "InvalidTokenError",
    "MissingTokenError",
    "create_access_token",
    "get_bearer_token",
    "get_current_user_id",
    "validate_jwt",
]
