"""Authentication dependencies for the shiftpay API."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import Settings, get_settings
from ..errors import UnauthenticatedError
from ..identity import CurrentUser, TokenIdentityResolver

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Resolve the caller from the bearer token."""
    token = credentials.credentials if credentials else None
    try:
        return TokenIdentityResolver(token, settings).current_user()
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


Caller = Annotated[CurrentUser, Depends(get_current_user)]


async def require_admin(
    user: Caller,
    settings: Annotated[Settings, Depends(get_settings)],
) -> CurrentUser:
    """Allow only users listed in ``admin_user_ids``."""
    if user.id not in settings.admin_user_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


AdminUser = Annotated[CurrentUser, Depends(require_admin)]
