# mypy: ignore-errors
# tests/services/test_media.py
"""Tests for the media store client and post-commit cleanup."""

import logging

import httpx
import pytest

from bulk_stage.services.media import (
    HttpMediaStore,
    MediaStoreConfig,
    MediaStoreDisabledError,
    MediaStoreError,
    RemovalResult,
    StoredMedia,
    cleanup_media,
)

CONFIG = MediaStoreConfig(
    enabled=True,
    base_url="https://media.test",
    api_key="media-key",
    timeout_seconds=5,
)


def _store(handler) -> HttpMediaStore:
    return HttpMediaStore(CONFIG, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_store_posts_multipart_and_parses_reference() -> None:
    """Uploads go to /media with the API key and return url plus reference."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = request.read()
        return httpx.Response(201, json={"url": "https://cdn.test/a.png", "reference": "ref-a"})

    store = _store(handler)
    stored = await store.store(b"\x89PNG", folder="avatars", filename="a.png", content_type="image/png")
    await store.close()

    assert stored == StoredMedia(url="https://cdn.test/a.png", reference="ref-a")
    assert seen["method"] == "POST"
    assert seen["path"] == "/media"
    assert seen["auth"] == "Bearer media-key"
    assert b"avatars" in seen["body"]
    assert b"a.png" in seen["body"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, json={"url": "https://cdn.test/x"}),
        httpx.Response(200, text="not json"),
    ],
)
async def test_store_failures_raise(response) -> None:
    """Error answers and malformed bodies raise MediaStoreError."""
    store = _store(lambda request: response)
    with pytest.raises(MediaStoreError):
        await store.store(b"x", folder="posts", filename="x.png", content_type="image/png")


@pytest.mark.asyncio
async def test_transport_error_raises() -> None:
    """Connection failures surface as MediaStoreError."""

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(MediaStoreError):
        await _store(handler).remove("ref")


@pytest.mark.asyncio
async def test_remove_statuses() -> None:
    """204 is OK, 404 is NOT_FOUND_REMOTE, anything else is an error."""
    statuses = {"gone": 404, "live": 204, "broken": 502}

    def handler(request):
        return httpx.Response(statuses[request.url.path.rsplit("/", 1)[-1]])

    store = _store(handler)
    assert await store.remove("live") is RemovalResult.OK
    assert await store.remove("gone") is RemovalResult.NOT_FOUND_REMOTE
    with pytest.raises(MediaStoreError):
        await store.remove("broken")


@pytest.mark.asyncio
async def test_remove_quotes_reference() -> None:
    """References with slashes are sent as one path segment."""
    paths = []

    def handler(request):
        paths.append(request.url.raw_path)
        return httpx.Response(204)

    await _store(handler).remove("communities/4/logo.png")
    assert paths == [b"/media/communities%2F4%2Flogo.png"]


@pytest.mark.asyncio
async def test_disabled_store_refuses() -> None:
    """Without a base URL the client is disabled."""
    store = HttpMediaStore(MediaStoreConfig(False, None, None, 5))
    with pytest.raises(MediaStoreDisabledError):
        await store.store(b"x", folder="posts", filename="x", content_type="image/png")


@pytest.mark.asyncio
async def test_cleanup_logs_failures_without_raising(mocker, caplog) -> None:
    """Cleanup keeps going after a failed removal and logs a warning."""
    store = mocker.AsyncMock()
    store.enabled = True
    store.remove.side_effect = [MediaStoreError("down"), RemovalResult.NOT_FOUND_REMOTE]

    with caplog.at_level(logging.INFO, logger="bulk_stage.services.media"):
        await cleanup_media(store, ["ref-1", None, "ref-2"])

    assert [call.args[0] for call in store.remove.await_args_list] == ["ref-1", "ref-2"]
    assert any(r.levelno == logging.WARNING and "ref-1" in r.getMessage() for r in caplog.records)
    assert any("already absent" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_cleanup_skips_disabled_store(mocker) -> None:
    """A disabled store is never called."""
    store = mocker.AsyncMock()
    store.enabled = False
    await cleanup_media(store, ["ref-1"])
    store.remove.assert_not_awaited()
