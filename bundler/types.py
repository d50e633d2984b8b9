"""Bundler-specific data type definitions."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List


@dataclass(frozen=True)
class BundleResult:
    """
    Outcome of a successful bundle request.
    """
    group_id: str
    expired_at: datetime
    download_url: str
    file_key: str
    recipients: List[str] = field(default_factory=list)
    skipped_files: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ApiKeyGrant:
    user_id: str
    api_key: str
    expires_at: datetime
