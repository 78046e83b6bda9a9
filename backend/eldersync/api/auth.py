"""
Authentication API endpoints.
"""

import logging

from fastapi import APIRouter, Depends, status

from ..models import LoginRequest, SignupRequest, Token, User
from ..services.context import AppContext
from .deps import get_context, get_current_user

router = APIRouter(prefix="/auth", tags=["authentication"])
logger = logging.getLogger(__name__)


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    payload: SignupRequest,
    context: AppContext = Depends(get_context),
):
    """
    Create a caregiver account and log it in.

    Args:
        payload: Email, password and display name

    Returns:
        The new user with its access (and, when available, refresh) token
    """
    logger.info("Signup requested")
    user, token = await context.identity.signup(payload.email, payload.password, payload.name)
    return {
        "user": user,
        "access_token": token.access_token,
        "token_type": token.token_type,
        "refresh_token": token.refresh_token,
    }


@router.post("/login", response_model=Token)
async def login(
    payload: LoginRequest,
    context: AppContext = Depends(get_context),
):
    """
    Login and get access token.

    Raises:
        Unauthorized: If the credentials are rejected
    """
    return await context.identity.login(payload.email, payload.password)


@router.get("/me")
async def get_me(user: User = Depends(get_current_user)):
    """Current caregiver."""
    return {"user": user}
