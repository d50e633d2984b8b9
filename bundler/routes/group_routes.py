"""File group API routes: grouping, uploads, bundling and download links."""

import asyncio

from fastapi import APIRouter, Depends, File, UploadFile, status

from bundler.auth import get_current_user
from bundler.schemas.bundle import (
    BundleFileGroupRequest,
    BundleFileGroupResponse,
    DownloadLinkResponse,
    RemintLinkRequest
)
from bundler.schemas.groups import AddFileResponse, CreateGroupResponse
from bundler.services.bundle_service import BundleService
from bundler.services.group_service import GroupService

router = APIRouter(prefix="/groups", tags=["File Groups"])


@router.post("", response_model=CreateGroupResponse, status_code=status.HTTP_201_CREATED)
async def create_group(current_user: str = Depends(get_current_user)):
    """
    Create an empty file group owned by the caller.

    Returns:
        - file_group_id: UUID of the new group
        - created_at: Creation timestamp
    """
    group = GroupService().create_group(current_user)
    return CreateGroupResponse(file_group_id=group.group_id, created_at=group.created_at)


@router.post("/bundle", response_model=BundleFileGroupResponse, status_code=status.HTTP_201_CREATED)
async def bundle_file_group(
    request: BundleFileGroupRequest,
    current_user: str = Depends(get_current_user)
):
    """
    Seal a file group into one encrypted archive and mint its download link.

    Parameters:
        - file_group_id: Group to bundle (must be owned by the caller)
        - expired_at: Expiry of the artifact, ISO-8601 with timezone
        - passcode: Archive passcode (6-100 characters)
        - download_password: Optional pin protecting the download link (6-100 characters)
        - user_ids: Optional users to wrap the archive for; the caller is always included
        - Authorization header: Bearer <api_key> (required)

    Returns:
        - expired_at: Echo of the requested expiry
        - download_url: Short link to the artifact

    Raises:
        - 400: Invalid request or empty group
        - 401: Invalid or missing API Key
        - 409: Group missing, not owned, already bundled, or changed concurrently
        - 500: Archive or encryption failure
    """
    bundle_service = BundleService()
    result = await bundle_service.bundle_group(
        group_id=request.file_group_id,
        requester_id=current_user,
        expired_at=request.expired_at,
        passcode=request.passcode,
        download_password=request.download_password,
        user_ids=request.user_ids,
    )

    return BundleFileGroupResponse(expired_at=result.expired_at, download_url=result.download_url)


@router.post("/{group_id}/files", response_model=AddFileResponse, status_code=status.HTTP_201_CREATED)
async def add_file(
    group_id: str,
    file: UploadFile = File(...),
    current_user: str = Depends(get_current_user)
):
    """
    Upload one member file into an open group.

    Parameters:
        - file: File to upload (multipart/form-data)
        - Authorization header: Bearer <api_key> (required)

    Raises:
        - 400: Upload without a file name
        - 401: Invalid or missing API Key
        - 409: Group missing, not owned or already bundled
    """
    group_service = GroupService()
    item = await asyncio.to_thread(
        group_service.add_file, group_id, current_user, file.filename, file.file
    )

    return AddFileResponse(
        file_id=item.item_id,
        file_group_id=item.group_id,
        name=item.realname,
        size=item.size,
    )


@router.post("/{group_id}/links", response_model=DownloadLinkResponse, status_code=status.HTTP_201_CREATED)
async def remint_link(
    group_id: str,
    request: RemintLinkRequest,
    current_user: str = Depends(get_current_user)
):
    """
    Mint the download link of a bundled group that has none.

    Raises:
        - 401: Invalid or missing API Key
        - 409: Group not bundled by the caller, or a link already exists
    """
    bundle_service = BundleService()
    url = await asyncio.to_thread(
        bundle_service.remint_link, group_id, current_user, request.download_password
    )
    return DownloadLinkResponse(download_url=url)
