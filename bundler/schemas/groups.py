"""Pydantic schemas for file group endpoints."""

from datetime import datetime

from pydantic import BaseModel


class CreateGroupResponse(BaseModel):
    """Response model for file group creation."""
    file_group_id: str
    created_at: datetime


class AddFileResponse(BaseModel):
    """Response model for a file added to a group."""
    file_id: str
    file_group_id: str
    name: str
    size: int
