"""Authentication service for business logic."""

import sqlite3
from datetime import timedelta

from common.logging_config import get_logger
from bundler import config
from bundler.auth import generate_api_key, hash_secret, verify_secret
from bundler.exceptions import InvalidCredentialsError, UserAlreadyExistsError
from bundler.repositories.user_repository import UserRepository
from bundler.types import ApiKeyGrant
from bundler.utils import generate_uuid, utcnow

logger = get_logger(__name__)


class AuthService:
    def __init__(self):
        self.user_repo = UserRepository()

    def _key_expiry(self):
        return utcnow() + timedelta(hours=config.API_KEY_TTL_HOURS)

    def register_user(self, username: str, password: str) -> ApiKeyGrant:
        logger.info(f"Attempting to register user: {username}")
        if self.user_repo.get_by_username(username) is not None:
            logger.warning(f"Registration failed: username '{username}' already exists")
            raise UserAlreadyExistsError(f"Username '{username}' already exists")

        user_id = generate_uuid()
        api_key = generate_api_key()
        expires_at = self._key_expiry()

        try:
            self.user_repo.create_user(
                user_id=user_id,
                username=username,
                password_hash=hash_secret(password),
                api_key=api_key,
                api_key_expires_at=expires_at,
                created_at=utcnow(),
            )
        except sqlite3.IntegrityError:
            logger.warning(f"Registration failed due to integrity error: username '{username}'")
            raise UserAlreadyExistsError(f"Username '{username}' already exists")

        logger.info(f"Successfully registered user: {username} [user_id={user_id}]")
        return ApiKeyGrant(user_id=user_id, api_key=api_key, expires_at=expires_at)

    def login_user(self, username: str, password: str) -> ApiKeyGrant:
        """
        Rotate the API key of a user whose password checks out.

        Raises:
            InvalidCredentialsError: Unknown username or wrong password
        """
        logger.info(f"Login attempt for user: {username}")
        user = self.user_repo.get_by_username(username)
        if user is None or not verify_secret(password, user.password_hash):
            logger.warning(f"Login failed for username '{username}'")
            raise InvalidCredentialsError("Invalid username or password")

        api_key = generate_api_key()
        expires_at = self._key_expiry()
        self.user_repo.update_api_key(user.user_id, api_key, expires_at)
        logger.info(f"Successfully logged in user: {username} [user_id={user.user_id}]")
        return ApiKeyGrant(user_id=user.user_id, api_key=api_key, expires_at=expires_at)
