"""Caller identity.

The services never trust ids sent by the client; they ask an identity
resolver who is calling. In the API that is a Supabase access token.
"""

from dataclasses import dataclass
from typing import Protocol

from jose import JWTError, jwt

from .config import Settings
from .errors import UnauthenticatedError


@dataclass(frozen=True)
class CurrentUser:
    """The authenticated caller."""

    id: str
    email: str | None = None
    role: str | None = None


class IdentityResolver(Protocol):
    """Protocol for resolving the current caller."""

    def current_user(self) -> CurrentUser:
        """Return the caller, or raise UnauthenticatedError."""
        ...


def decode_access_token(token: str, settings: Settings) -> dict:
    """Verify a Supabase-issued JWT and return its claims."""
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as e:
        raise UnauthenticatedError("Invalid or expired token") from e


class TokenIdentityResolver:
    """Resolves the caller from a bearer token."""

    def __init__(self, token: str | None, settings: Settings):
        self._token = token
        self._settings = settings

    def current_user(self) -> CurrentUser:
        if not self._token:
            raise UnauthenticatedError("Not authenticated")
        claims = decode_access_token(self._token, self._settings)
        user_id = claims.get("sub")
        if not user_id:
            raise UnauthenticatedError("Invalid token payload")
        # Supabase puts the app role in user_metadata; "role" is the Postgres role
        metadata = claims.get("user_metadata") or {}
        return CurrentUser(
            id=user_id,
            email=claims.get("email"),
            role=metadata.get("role") or claims.get("role"),
        )


class StaticIdentityResolver:
    """Resolver with a fixed caller, for tools and tests."""

    def __init__(self, user: CurrentUser | None):
        self._user = user

    def current_user(self) -> CurrentUser:
        if self._user is None:
            raise UnauthenticatedError("Not authenticated")
        return self._user
