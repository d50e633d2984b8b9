"""Authentication and secret hashing utilities."""

import base64
import hashlib
import uuid
from typing import Optional

import bcrypt
from fastapi import Header, Request

from bundler import config
from bundler.exceptions import InvalidAPIKeyError
from bundler.repositories.user_repository import UserRepository
from bundler.utils import utcnow


def _prehash(secret: str) -> bytes:
    # bcrypt only reads the first 72 bytes; secrets may be up to 100 characters
    digest = hashlib.sha256(secret.encode('utf-8')).digest()
    return base64.b64encode(digest)


def hash_secret(secret: str, rounds: Optional[int] = None) -> str:
    """
    Hash a password, passcode or download pin using bcrypt.

    Args:
        secret: Plain text secret to hash
        rounds: bcrypt cost factor, defaults to BCRYPT_ROUNDS

    Returns:
        Bcrypt hash of the secret
    """
    salt = bcrypt.gensalt(rounds=rounds or config.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(_prehash(secret), salt)
    return hashed.decode('utf-8')


def verify_secret(secret: str, secret_hash: str) -> bool:
    """
    Verify a secret against a hash produced by hash_secret.

    Args:
        secret: Plain text secret to verify
        secret_hash: Bcrypt hash to verify against

    Returns:
        True if the secret matches the hash, False otherwise
    """
    return bcrypt.checkpw(_prehash(secret), secret_hash.encode('utf-8'))


def generate_api_key() -> str:
    """
    Generate a new API Key with the configured prefix.

    Returns:
        API Key string in format: {prefix}{uuid4 hex}
    """
    return f"{config.API_KEY_PREFIX}{uuid.uuid4().hex}"


async def get_current_user(request: Request, authorization: str = Header(None)) -> str:
    """
    FastAPI dependency to validate an API Key and extract user_id.

    Args:
        authorization: Authorization header value (format: "Bearer <api_key>")

    Returns:
        user_id of the authenticated user

    Raises:
        InvalidAPIKeyError: header missing, key unknown or expired
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise InvalidAPIKeyError("Invalid authorization header format")

    api_key = authorization[len("Bearer "):].strip()

    user = UserRepository.get_by_api_key(api_key)
    if user is None:
        raise InvalidAPIKeyError("Unknown API key")

    if user.api_key_expires_at is not None and user.api_key_expires_at < utcnow():
        raise InvalidAPIKeyError("API key expired")

    request.state.user_id = user.user_id
    return user.user_id
