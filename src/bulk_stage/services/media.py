"""Client for the remote media store.

The store keeps uploaded images (avatars, community logos and banners, post
images). It exposes two operations over HTTP:

- ``POST /media`` stores bytes and answers with the public URL and a reference
- ``DELETE /media/{reference}`` removes an object; 404 means it is already gone

Removal that happens as a consequence of a database change is best-effort and
runs after the database commit; see :func:`cleanup_media`.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from urllib.parse import quote

import httpx

from bulk_stage.core.errors import UpstreamFailure
from bulk_stage.core.settings import settings

logger = logging.getLogger(__name__)

HTTP_NOT_FOUND = 404


class MediaStoreError(UpstreamFailure):
    """Raised when the media store rejects a request or cannot be reached."""


class MediaStoreDisabledError(MediaStoreError):
    """Raised when media operations are attempted without a configured store."""


class RemovalResult(str, enum.Enum):
    OK = "ok"
    NOT_FOUND_REMOTE = "not_found_remote"


@dataclass(frozen=True)
class StoredMedia:
    """Public URL and opaque reference of a stored object."""

    url: str
    reference: str


@dataclass(frozen=True)
class MediaStoreConfig:
    """Connection options for :class:`HttpMediaStore`."""

    enabled: bool
    base_url: str | None
    api_key: str | None
    timeout_seconds: float


def load_media_config() -> MediaStoreConfig:
    """Build configuration object from global settings."""
    return MediaStoreConfig(
        enabled=settings.media_store_enabled,
        base_url=settings.media_store_base_url,
        api_key=settings.media_store_api_key,
        timeout_seconds=float(settings.media_store_timeout_seconds),
    )


class MediaStore(Protocol):
    """Interface the API layer depends on."""

    @property
    def enabled(self) -> bool: ...

    async def store(
        self,
        data: bytes,
        *,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredMedia: ...

    async def remove(self, reference: str) -> RemovalResult: ...


class HttpMediaStore:
    """HTTP client wrapper for the media store."""

    def __init__(
        self,
        config: MediaStoreConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_media_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise MediaStoreDisabledError("Media store is not configured")

        async with self._client_lock:
            if self._client is None:
                headers = {}
                if self.config.api_key:
                    headers["Authorization"] = f"Bearer {self.config.api_key}"
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers=headers,
                    transport=self._transport,
                )
        return self._client

    async def store(
        self,
        data: bytes,
        *,
        folder: str,
        filename: str,
        content_type: str,
    ) -> StoredMedia:
        """Upload ``data`` and return where it lives.

        Args:
            data: Raw file content.
            folder: Logical folder in the store (avatars, communities, posts).
            filename: Original file name, forwarded for content sniffing.
            content_type: MIME type reported by the client.

        Returns:
            URL and reference of the stored object.

        Raises:
            MediaStoreError: On transport errors, non-success answers or a
                malformed response body.
        """
        client = await self._ensure_client()
        try:
            response = await client.post(
                "/media",
                data={"folder": folder},
                files={"file": (filename, data, content_type)},
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Media upload to %s failed: %s", folder, exc)
            raise MediaStoreError("Media upload failed") from exc
        except ValueError as exc:
            raise MediaStoreError("Media store returned an invalid response") from exc

        url = body.get("url") if isinstance(body, dict) else None
        reference = body.get("reference") if isinstance(body, dict) else None
        if not url or not reference:
            raise MediaStoreError("Media store response is missing url or reference")
        return StoredMedia(url=url, reference=reference)

    async def remove(self, reference: str) -> RemovalResult:
        """Delete an object. An object that is already gone counts as removed.

        Raises:
            MediaStoreError: On transport errors or unexpected status codes.
        """
        client = await self._ensure_client()
        try:
            response = await client.delete(f"/media/{quote(reference, safe='')}")
        except httpx.HTTPError as exc:
            raise MediaStoreError(f"Media removal failed for {reference}") from exc

        if response.status_code == HTTP_NOT_FOUND:
            return RemovalResult.NOT_FOUND_REMOTE
        if response.is_success:
            return RemovalResult.OK
        raise MediaStoreError(
            f"Media removal for {reference} answered {response.status_code}"
        )

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


async def cleanup_media(store: MediaStore, references: Iterable[str | None]) -> None:
    """Remove ``references`` from the store, logging instead of raising.

    Called after the database change that orphaned the objects has committed;
    the committed state is already consistent, so failures are only logged.
    """
    pending = [ref for ref in references if ref]
    if not pending:
        return
    if not store.enabled:
        logger.debug("Media store disabled; skipping cleanup of %d objects", len(pending))
        return
    for reference in pending:
        try:
            result = await store.remove(reference)
        except MediaStoreError as exc:
            logger.warning("Could not remove media %s: %s", reference, exc)
            continue
        if result is RemovalResult.NOT_FOUND_REMOTE:
            logger.info("Media %s was already absent from the store", reference)


class _MediaStoreSingleton:
    """Singleton wrapper for HttpMediaStore."""

    _instance: HttpMediaStore | None = None

    @classmethod
    def get_instance(cls) -> HttpMediaStore:
        if cls._instance is None:
            cls._instance = HttpMediaStore()
        return cls._instance


def get_media_store() -> HttpMediaStore:
    """Return a singleton media store client."""
    return _MediaStoreSingleton.get_instance()
