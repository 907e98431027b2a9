# mypy: ignore-errors
# tests/v1/test_scenarios.py
"""End-to-end walkthroughs across memberships, roles and premium content."""

from fastapi import status


def _register(client, handle: str, kind: str = "standard") -> tuple[int, dict]:
    response = client.post(
        "/api/v1/auth/register",
        json={
            "email": f"{handle}@example.com",
            "handle": handle,
            "display_name": handle.title(),
            "password": "scenario-password",
            "kind": kind,
        },
    )
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    return data["account"]["id"], {"Authorization": f"Bearer {data['access_token']}"}


def test_premium_publishing_walkthrough(client) -> None:
    """A moderator granted premium rights publishes; readers see it per access."""
    _, owner = _register(client, "owner")
    mod_id, mod = _register(client, "moddy")
    _, reader = _register(client, "reader")
    _, fan = _register(client, "superfan")

    community = client.post("/api/v1/communities/", json={"name": "Zine Club"}, headers=owner).json()
    base = f"/api/v1/communities/{community['id']}"

    client.post(f"{base}/members", headers=mod)
    client.post(f"{base}/members", headers=reader)
    client.patch(f"{base}/members/{mod_id}/role", json={"role": "moderator"}, headers=owner)
    grant = client.patch(
        f"{base}/members/{mod_id}/premium-permission",
        json={"can_publish_premium": True},
        headers=owner,
    )
    assert grant.json()["can_publish_premium"] is True

    post = client.post(
        f"{base}/posts",
        json={"title": "Issue #1", "content": "Exclusive interview", "premium": True},
        headers=mod,
    )
    assert post.status_code == status.HTTP_201_CREATED
    post_url = f"/api/v1/posts/{post.json()['id']}"

    assert client.get(post_url, headers=owner).json()["content"] == "Exclusive interview"
    assert client.get(post_url, headers=reader).status_code == status.HTTP_403_FORBIDDEN
    assert client.get(post_url).status_code == status.HTTP_401_UNAUTHORIZED
    assert client.get(f"{base}/posts", headers=reader).json()[0]["redacted"] is True

    client.post(f"{base}/subscription", headers=fan)
    assert client.get(post_url, headers=fan).json()["content"] == "Exclusive interview"

    client.patch(f"{base}/members/{mod_id}/role", json={"role": "member"}, headers=owner)
    again = client.post(
        f"{base}/posts",
        json={"title": "Issue #2", "content": "More", "premium": True},
        headers=mod,
    )
    assert again.status_code == status.HTTP_403_FORBIDDEN


def test_private_community_walkthrough(client, media_store) -> None:
    """A private community stays hidden until joined and vanishes on delete."""
    _, owner = _register(client, "keeper", kind="OG")
    _, guest = _register(client, "guest")

    community = client.post(
        "/api/v1/communities/",
        json={"name": "Back Room", "is_public": False},
        headers=owner,
    ).json()
    base = f"/api/v1/communities/{community['id']}"
    client.patch(f"{base}/banner", files={"image": ("b.png", b"banner", "image/png")}, headers=owner)
    post = client.post(
        f"{base}/posts", json={"title": "Minutes", "content": "Agenda", "premium": True}, headers=owner
    ).json()

    assert client.get(base, headers=guest).status_code == status.HTTP_403_FORBIDDEN
    assert client.get(f"{base}/posts", headers=guest).status_code == status.HTTP_404_NOT_FOUND
    assert client.get(f"/api/v1/posts/{post['id']}", headers=guest).status_code == (
        status.HTTP_403_FORBIDDEN
    )
    assert client.get("/api/v1/search", params={"q": "back room"}).json()["communities"] == []

    assert client.post(f"{base}/members", headers=guest).status_code == status.HTTP_201_CREATED
    listing = client.get(f"{base}/posts", headers=guest).json()
    assert listing[0]["redacted"] is True

    client.post(f"/api/v1/posts/{post['id']}/comments", json={"content": "Noted"}, headers=guest)
    client.post(f"/api/v1/posts/{post['id']}/react", headers=guest)

    assert client.delete(base, headers=owner).status_code == status.HTTP_204_NO_CONTENT
    assert client.get(base, headers=owner).status_code == status.HTTP_404_NOT_FOUND
    assert client.get(f"/api/v1/posts/{post['id']}").status_code == status.HTTP_404_NOT_FOUND
    assert media_store.objects == {}
    assert client.get("/api/v1/me/feed", headers=guest).json() == []
