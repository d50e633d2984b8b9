"""Account routes: sign-up and sign-in, both answered with an expiring API key."""

from fastapi import APIRouter, Request, status

from bundler.schemas.auth import ApiKeyResponse, CredentialsRequest
from bundler.services.auth_service import AuthService
from bundler.types import ApiKeyGrant

router = APIRouter(prefix="/auth", tags=["Accounts"])


def _grant_response(request: Request, grant: ApiKeyGrant) -> ApiKeyResponse:
    request.state.user_id = grant.user_id
    return ApiKeyResponse(user_id=grant.user_id, api_key=grant.api_key, expires_at=grant.expires_at)


@router.post("/register", response_model=ApiKeyResponse, status_code=status.HTTP_201_CREATED)
async def register(body: CredentialsRequest, request: Request):
    """
    Open a SealBox account.

    The account owns the file groups it creates and can later publish an
    X25519 public key so others may bundle for it.

    Returns:
        - user_id: Identifier other owners list in ``user_ids`` when bundling
        - api_key: Bearer key for every other endpoint
        - expires_at: When the key lapses; sign in again for a new one

    Raises:
        - 400: Username taken, or an empty username/password
    """
    grant = AuthService().register_user(body.username, body.password)
    return _grant_response(request, grant)


@router.post("/login", response_model=ApiKeyResponse)
async def login(body: CredentialsRequest, request: Request):
    """
    Exchange a username and password for a new API key.

    The previous key stops working immediately.

    Raises:
        - 401: Unknown username or wrong password
    """
    grant = AuthService().login_user(body.username, body.password)
    return _grant_response(request, grant)
