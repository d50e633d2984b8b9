"""Pydantic schemas for public key endpoints."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class RegisterKeyRequest(BaseModel):
    """Request model for registering the caller's public key."""
    public_key: str


class PublicKeyResponse(BaseModel):
    user_id: str
    public_key: str
    updated_at: Optional[datetime] = None
