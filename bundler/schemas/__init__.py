"""Pydantic schemas for API requests and responses."""

from bundler.schemas.auth import CredentialsRequest, ApiKeyResponse
from bundler.schemas.bundle import (
    BundleFileGroupRequest,
    BundleFileGroupResponse,
    RemintLinkRequest,
    DownloadLinkResponse
)
from bundler.schemas.groups import CreateGroupResponse, AddFileResponse
from bundler.schemas.keys import RegisterKeyRequest, PublicKeyResponse
from bundler.schemas.common import ErrorResponse

__all__ = [
    "CredentialsRequest",
    "ApiKeyResponse",
    "BundleFileGroupRequest",
    "BundleFileGroupResponse",
    "RemintLinkRequest",
    "DownloadLinkResponse",
    "CreateGroupResponse",
    "AddFileResponse",
    "RegisterKeyRequest",
    "PublicKeyResponse",
    "ErrorResponse"
]
