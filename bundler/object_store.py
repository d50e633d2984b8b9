"""Client for the remote object store that holds finished artifacts."""

from datetime import datetime, timezone
from email.utils import format_datetime
from typing import BinaryIO, Optional, Protocol

import aiohttp

from common.logging_config import get_logger
from bundler import config
from bundler.exceptions import ObjectStoreError

logger = get_logger(__name__)


class ObjectStore(Protocol):
    async def put_object(self, key: str, body: BinaryIO, expires: Optional[datetime]) -> None:
        ...


class HttpObjectStore:
    """
    Object store reached over plain HTTP PUT (S3-compatible path-style URLs).

    The artifact expiry travels as an ``Expires`` header so the store can
    apply its own lifecycle rules.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        bucket: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.base_url = (base_url or config.OBJECT_STORE_URL).rstrip("/")
        self.bucket = bucket or config.OBJECT_STORE_BUCKET
        self.timeout_seconds = timeout_seconds or config.OBJECT_STORE_TIMEOUT_SECONDS

    def object_url(self, key: str) -> str:
        return f"{self.base_url}/{self.bucket}/{key}"

    async def put_object(self, key: str, body: BinaryIO, expires: Optional[datetime]) -> None:
        """
        PUT an open binary file as object ``key``.

        aiohttp streams ``body`` in chunks and sizes the request from the file.

        Raises:
            ObjectStoreError: Transport failure or a non-2xx answer
        """
        headers = {"Content-Type": "application/octet-stream"}
        if expires is not None:
            headers["Expires"] = format_datetime(expires.astimezone(timezone.utc), usegmt=True)

        url = self.object_url(key)
        try:
            async with aiohttp.ClientSession() as session:
                async with session.put(
                    url,
                    data=body,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
                ) as resp:
                    if resp.status >= 300:
                        reply = await resp.text()
                        raise ObjectStoreError(
                            f"PUT {url} failed: status={resp.status} body={reply[:200]}"
                        )
        except aiohttp.ClientError as e:
            raise ObjectStoreError(f"PUT {url} failed: {e}") from e

        logger.debug(f"Stored object {key} at {url}")
