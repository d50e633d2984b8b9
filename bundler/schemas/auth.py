"""Pydantic schemas for account and API key endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class CredentialsRequest(BaseModel):
    """Username and password, used both to open an account and to sign in."""
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ApiKeyResponse(BaseModel):
    """A freshly issued API key and the moment it stops being accepted."""
    user_id: str
    api_key: str
    expires_at: datetime
