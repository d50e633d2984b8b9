"""Repository layer for data access."""

from bundler.repositories.user_repository import UserRepository
from bundler.repositories.user_key_repository import UserKeyRepository
from bundler.repositories.group_repository import GroupRepository
from bundler.repositories.short_link_repository import ShortLinkRepository

__all__ = [
    "UserRepository",
    "UserKeyRepository",
    "GroupRepository",
    "ShortLinkRepository",
]
