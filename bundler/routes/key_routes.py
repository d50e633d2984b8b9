"""Public key API routes."""

from fastapi import APIRouter, Depends

from bundler.auth import get_current_user
from bundler.schemas.keys import PublicKeyResponse, RegisterKeyRequest
from bundler.services.key_service import KeyService

router = APIRouter(prefix="/keys", tags=["Keys"])


@router.put("", response_model=PublicKeyResponse)
async def register_key(
    request: RegisterKeyRequest,
    current_user: str = Depends(get_current_user)
):
    """
    Register or replace the caller's X25519 public key.

    Parameters:
        - public_key: Base64 encoded 32-byte X25519 public key
        - Authorization header: Bearer <api_key> (required)

    Raises:
        - 400: Malformed public key
        - 401: Invalid or missing API Key
    """
    key = KeyService().register_key(current_user, request.public_key)
    return PublicKeyResponse(user_id=key.user_id, public_key=key.public_key, updated_at=key.updated_at)


@router.get("/{user_id}", response_model=PublicKeyResponse)
async def get_key(user_id: str, current_user: str = Depends(get_current_user)):
    """
    Look up the public key a user has registered.

    Raises:
        - 401: Invalid or missing API Key
        - 404: No key registered for the user
    """
    key = KeyService().get_key(user_id)
    return PublicKeyResponse(user_id=key.user_id, public_key=key.public_key, updated_at=key.updated_at)
