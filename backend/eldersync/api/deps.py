"""
Shared request dependencies.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..core.exceptions import Unauthorized
from ..models import User
from ..services.context import AppContext

# Bearer token security; a missing token is reported by get_current_user
security = HTTPBearer(auto_error=False)


def get_context(request: Request) -> AppContext:
    """The context built at startup."""
    return request.app.state.context


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    context: AppContext = Depends(get_context),
) -> User:
    """
    Dependency to get the current caregiver from the bearer token.

    Raises:
        Unauthorized: If the token is missing or rejected by the identity provider
    """
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Token not provided")
    return await context.identity.authenticate(credentials.credentials)


async def get_current_user_id(user: User = Depends(get_current_user)) -> str:
    """Dependency to get the current caregiver's id."""
    return user.id
