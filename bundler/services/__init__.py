"""Service layer for business logic."""

from bundler.services.auth_service import AuthService
from bundler.services.bundle_service import BundleService
from bundler.services.group_service import GroupService
from bundler.services.key_service import KeyService

__all__ = [
    "AuthService",
    "BundleService",
    "GroupService",
    "KeyService",
]
