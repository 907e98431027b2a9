# src/bulk_stage/services/visibility.py
"""Visibility policy for posts and private communities."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from bulk_stage.core.settings import settings
from bulk_stage.models import Post
from bulk_stage.services.decisions import ALLOW, Allow, Deny, DenyReason, unauthorized
from bulk_stage.services.identity import IdentityContext


class ViewMode(str, enum.Enum):
    """Whether a post is read on its own or as part of a listing."""

    DETAIL = "detail"
    LISTING = "listing"


@dataclass(frozen=True)
class Full:
    """The requester sees the post as stored."""

    post: Post

    @property
    def content(self) -> str:
        return self.post.content

    @property
    def redacted(self) -> bool:
        return False


@dataclass(frozen=True)
class Redacted:
    """The requester sees metadata only; the body is replaced by a placeholder."""

    post: Post
    placeholder: str

    @property
    def content(self) -> str:
        return self.placeholder

    @property
    def redacted(self) -> bool:
        return True


Visibility = Full | Redacted | Deny


def community_gate(ctx: IdentityContext, mode: ViewMode) -> Allow | Deny:
    """Apply the private community gate.

    Outsiders of a private community get ``NOT_FOUND`` from listings, so the
    community's existence is not disclosed, and ``FORBIDDEN`` when they address
    it directly by id.
    """
    if ctx.community_is_public or ctx.is_member or ctx.is_community_creator:
        return ALLOW
    if mode is ViewMode.LISTING:
        return Deny(DenyReason.NOT_FOUND, "Community not found")
    return Deny(DenyReason.FORBIDDEN, "This community is private")


def has_premium_access(post: Post, ctx: IdentityContext) -> bool:
    """Author, creator, moderator or a premium unlock for the post's community."""
    return (
        ctx.is_author_of_target
        or ctx.is_community_creator
        or ctx.is_moderator
        or ctx.is_premium_unlocked(post.community_id)
    )


def resolve_visibility(
    post: Post,
    ctx: IdentityContext,
    mode: ViewMode,
    *,
    placeholder: str | None = None,
) -> Visibility:
    """Decide what ``ctx`` may see of ``post``.

    The community gate runs first, so a private community hides its posts before
    any premium rule applies. Listings never fail on premium items; they redact.

    Args:
        post: The post being read. ``ctx`` must target it (see ``for_author``).
        ctx: Requester context resolved for the post's community.
        mode: Detail or listing.
        placeholder: Replacement body; defaults to ``settings.premium_placeholder``.

    Returns:
        ``Full``, ``Redacted`` or ``Deny``.
    """
    gate = community_gate(ctx, mode)
    if isinstance(gate, Deny):
        return gate
    if not post.premium:
        return Full(post)
    if has_premium_access(post, ctx):
        return Full(post)
    if mode is ViewMode.DETAIL and not ctx.authenticated:
        return unauthorized("Sign in to read premium content")
    if mode is ViewMode.LISTING:
        return Redacted(post, placeholder or settings.premium_placeholder)
    return Deny(DenyReason.FORBIDDEN, "Subscribe to this community to read premium content")
