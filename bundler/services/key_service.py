"""Key service: registration and lookup of recipient public keys."""

from common.logging_config import get_logger
from bundler.archive.identities import parse_public_key
from bundler.exceptions import PublicKeyNotFoundError, ValidationError
from bundler.repositories.user_key_repository import UserKey, UserKeyRepository
from bundler.utils import utcnow

logger = get_logger(__name__)


class KeyService:
    def __init__(self):
        self.key_repo = UserKeyRepository()

    def register_key(self, user_id: str, public_key: str) -> UserKey:
        public_key = public_key.strip()
        try:
            parse_public_key(public_key)
        except ValueError as e:
            logger.warning(f"Rejected public key [user_id={user_id}]: {e}")
            raise ValidationError(f"Invalid public key: {e}") from e

        return self.key_repo.upsert_key(user_id, public_key, utcnow())

    def get_key(self, user_id: str) -> UserKey:
        key = self.key_repo.get_key(user_id)
        if key is None:
            raise PublicKeyNotFoundError(f"No public key registered for user {user_id}")
        return key
