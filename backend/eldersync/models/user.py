"""
User Model - Defines the caregiver account data structure.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from .metrics import CamelModel


class SignupRequest(BaseModel):
    """Account creation payload."""
    email: EmailStr
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    """Password login payload."""
    email: EmailStr
    password: str


class User(CamelModel):
    """Caregiver account as returned to clients."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    created_at: Optional[datetime] = None


class Token(BaseModel):
    """Access token response model."""
    access_token: str
    token_type: str = "bearer"
    refresh_token: Optional[str] = None


class TokenData(BaseModel):
    """Token payload data."""
    user_id: Optional[str] = None
    email: Optional[str] = None
