# mypy: ignore-errors
# tests/v1/test_users.py
"""Tests for profile, avatar, feed, dashboard and public account endpoints."""

from fastapi import status

from bulk_stage.models import MembershipRole
from bulk_stage.services import accounts as accounts_module


def test_get_and_update_profile(client, member, outsider, auth_headers) -> None:
    """Profile updates apply partially and keep handles unique."""
    headers = auth_headers(member)
    assert client.get("/api/v1/me/profile", headers=headers).json()["legacy_kind"] == "CREW"

    response = client.put("/api/v1/me/profile", json={"bio": "Reader"}, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["bio"] == "Reader"
    assert response.json()["handle"] == member.handle

    taken = client.put("/api/v1/me/profile", json={"handle": outsider.handle}, headers=headers)
    assert taken.status_code == status.HTTP_409_CONFLICT


def test_avatar_upload_and_delete(client, member, auth_headers, media_store) -> None:
    """Avatar replacement removes the previous object from the store."""
    headers = auth_headers(member)
    first = client.patch(
        "/api/v1/me/avatar", files={"image": ("me.png", b"one", "image/png")}, headers=headers
    )
    assert first.status_code == status.HTTP_200_OK
    assert first.json()["avatar_url"].startswith("https://cdn.test/avatars/")

    client.patch(
        "/api/v1/me/avatar", files={"image": ("me2.png", b"two", "image/png")}, headers=headers
    )
    assert len(media_store.objects) == 1

    cleared = client.delete("/api/v1/me/avatar", headers=headers)
    assert cleared.json()["avatar_url"] is None
    assert media_store.objects == {}


def test_avatar_too_large(client, member, auth_headers, mocker) -> None:
    """Uploads over the limit answer 413."""
    mocker.patch("bulk_stage.api.v1.dependencies.settings.media_max_upload_bytes", 4)
    response = client.patch(
        "/api/v1/me/avatar",
        files={"image": ("big.png", b"too many bytes", "image/png")},
        headers=auth_headers(member),
    )
    assert response.status_code == status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


def test_feed_lists_member_communities(client, community, private_community, creator, member, auth_headers, add_member, add_post) -> None:
    """The feed covers every membership, private ones included, and redacts premium."""
    add_member(member, community)
    add_member(member, private_community)
    add_post(creator, community, title="Public news")
    add_post(creator, private_community, title="Inner news", premium=True)

    response = client.get("/api/v1/me/feed", headers=auth_headers(member))
    assert response.status_code == status.HTTP_200_OK
    items = {item["title"]: item for item in response.json()}
    assert set(items) == {"Public news", "Inner news"}
    assert items["Inner news"]["redacted"] is True
    assert items["Public news"]["redacted"] is False


def test_dashboard_requires_elevated(client, member, auth_headers) -> None:
    """Standard accounts are refused."""
    response = client.get("/api/v1/me/dashboard", headers=auth_headers(member))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_dashboard_counters(client, db_session, elevated, member, auth_headers, add_member) -> None:
    """Elevated accounts see counters for communities they created."""
    headers = auth_headers(elevated)
    created = client.post("/api/v1/communities/", json={"name": "Studio"}, headers=headers).json()
    client.post(f"/api/v1/communities/{created['id']}/subscription", headers=auth_headers(member))
    post = client.post(
        f"/api/v1/communities/{created['id']}/posts",
        json={"title": "Drop", "content": "Body", "premium": True},
        headers=headers,
    ).json()
    client.post(f"/api/v1/posts/{post['id']}/react", headers=auth_headers(member))
    client.post(
        f"/api/v1/posts/{post['id']}/comments", json={"content": "Wow"}, headers=auth_headers(member)
    )

    response = client.get("/api/v1/me/dashboard", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["total_communities_created"] == 1
    [stats] = data["communities"]
    assert stats["name"] == "Studio"
    assert (stats["member_count"], stats["post_count"]) == (2, 1)
    assert (stats["total_likes"], stats["total_comments"], stats["premium_subscribers"]) == (1, 1, 1)


def test_public_profile_counters(client, community, creator, add_post) -> None:
    """Public profiles expose activity counters."""
    add_post(creator, community)
    response = client.get(f"/api/v1/users/{creator.id}/profile")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert "email" not in data
    assert (data["created_communities"], data["memberships"], data["posts"]) == (1, 1, 1)
    assert client.get("/api/v1/users/999999/profile").status_code == status.HTTP_404_NOT_FOUND


def test_account_posts_respect_visibility(client, community, private_community, creator, member, auth_headers, add_member, add_post) -> None:
    """Private community posts are dropped for outsiders; premium is redacted."""
    add_post(creator, community, title="Open", premium=True)
    add_post(creator, private_community, title="Hidden")
    url = f"/api/v1/users/{creator.id}/posts"

    anonymous = client.get(url).json()
    assert [p["title"] for p in anonymous] == ["Open"]
    assert anonymous[0]["redacted"] is True

    add_member(member, private_community, MembershipRole.MODERATOR)
    titles = {p["title"] for p in client.get(url, headers=auth_headers(member)).json()}
    assert titles == {"Open", "Hidden"}


def test_account_communities_hide_private(client, community, private_community, creator, member, auth_headers, add_member) -> None:
    """Private memberships are only listed to people inside them."""
    url = f"/api/v1/users/{creator.id}/communities"
    assert [c["id"] for c in client.get(url).json()] == [community.id]

    add_member(member, private_community)
    ids = {c["id"] for c in client.get(url, headers=auth_headers(member)).json()}
    assert ids == {community.id, private_community.id}


def test_profile_handle_taken_after_stale_check(client, member, outsider, auth_headers, mocker) -> None:
    """A handle claimed between the check and the update answers 409."""
    mocker.patch.object(accounts_module, "_ensure_unique")
    response = client.put("/api/v1/me/profile", json={"handle": outsider.handle}, headers=auth_headers(member))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert client.get("/api/v1/me/profile", headers=auth_headers(member)).json()["handle"] == member.handle
