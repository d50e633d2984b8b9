"""Pydantic schemas for bundling and download link endpoints."""

from typing import List, Optional

from pydantic import AwareDatetime, BaseModel, Field

from common.constants import SECRET_MAX_LENGTH, SECRET_MIN_LENGTH


class BundleFileGroupRequest(BaseModel):
    """
    Request model for bundling a file group.

    ``expired_at`` must carry a timezone offset. ``user_ids`` turns on the
    multi-recipient envelope; the owner is always added to it.
    """
    file_group_id: str
    expired_at: AwareDatetime
    passcode: str = Field(min_length=SECRET_MIN_LENGTH, max_length=SECRET_MAX_LENGTH)
    download_password: Optional[str] = Field(
        default=None, min_length=SECRET_MIN_LENGTH, max_length=SECRET_MAX_LENGTH
    )
    user_ids: Optional[List[str]] = None


class BundleFileGroupResponse(BaseModel):
    """Response model for a bundled file group."""
    expired_at: AwareDatetime
    download_url: str


class RemintLinkRequest(BaseModel):
    download_password: Optional[str] = Field(
        default=None, min_length=SECRET_MIN_LENGTH, max_length=SECRET_MAX_LENGTH
    )


class DownloadLinkResponse(BaseModel):
    download_url: str
