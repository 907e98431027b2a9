# src/bulk_stage/services/authorization.py
"""Mutation authorization: one rule table, one entry point.

Handlers never compare roles themselves. They resolve an
:class:`~bulk_stage.services.identity.IdentityContext` and call :func:`authorize`.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass

from bulk_stage.models import AccountKind
from bulk_stage.services.decisions import ALLOW, Allow, Deny, forbidden, unauthorized
from bulk_stage.services.identity import IdentityContext


class Action(str, enum.Enum):
    """Guarded operations."""

    CREATE_POST = "create_post"
    MARK_POST_PREMIUM = "mark_post_premium"
    EDIT_POST = "edit_post"
    DELETE_POST = "delete_post"
    CREATE_COMMENT = "create_comment"
    EDIT_COMMENT = "edit_comment"
    DELETE_COMMENT = "delete_comment"
    TOGGLE_REACTION = "toggle_reaction"
    UPDATE_COMMUNITY = "update_community"
    DELETE_COMMUNITY = "delete_community"
    VIEW_CREATOR_DASHBOARD = "view_creator_dashboard"


@dataclass(frozen=True)
class TargetContext:
    """Optional facts about the target that the actor context does not carry.

    ``author_id`` re-targets authorship when the actor context was resolved for a
    different resource (for example the post while editing one of its comments).
    """

    author_id: int | None = None


Rule = Callable[[IdentityContext], bool]


def _is_creator(ctx: IdentityContext) -> bool:
    return ctx.is_community_creator


def _is_staff(ctx: IdentityContext) -> bool:
    return ctx.is_community_creator or ctx.is_moderator


def _is_author(ctx: IdentityContext) -> bool:
    return ctx.is_author_of_target


def _is_author_or_staff(ctx: IdentityContext) -> bool:
    return ctx.is_author_of_target or _is_staff(ctx)


def _is_member(ctx: IdentityContext) -> bool:
    return ctx.is_member


def _is_elevated(ctx: IdentityContext) -> bool:
    return ctx.account_kind is AccountKind.ELEVATED


def _may_publish_premium(ctx: IdentityContext) -> bool:
    return _is_elevated(ctx) or ctx.can_publish_premium


RULES: dict[Action, tuple[Rule, str]] = {
    Action.CREATE_POST: (
        _is_staff,
        "Only the community creator or a moderator can publish posts",
    ),
    Action.MARK_POST_PREMIUM: (
        _may_publish_premium,
        "You are not allowed to publish premium content",
    ),
    Action.EDIT_POST: (_is_author, "Only the author can edit this post"),
    Action.DELETE_POST: (
        _is_author_or_staff,
        "Only the author, the creator or a moderator can delete this post",
    ),
    Action.CREATE_COMMENT: (_is_member, "You must be a member of this community to comment"),
    Action.EDIT_COMMENT: (_is_author, "Only the author can edit this comment"),
    Action.DELETE_COMMENT: (
        _is_author_or_staff,
        "Only the author, the creator or a moderator can delete this comment",
    ),
    Action.TOGGLE_REACTION: (_is_member, "You must be a member of this community to react"),
    Action.UPDATE_COMMUNITY: (_is_creator, "Only the creator can update this community"),
    Action.DELETE_COMMUNITY: (_is_creator, "Only the creator can delete this community"),
    Action.VIEW_CREATOR_DASHBOARD: (
        _is_elevated,
        "The creator dashboard is only available to elevated accounts",
    ),
}


def authorize(
    action: Action,
    actor: IdentityContext,
    target: TargetContext | None = None,
) -> Allow | Deny:
    """Decide whether ``actor`` may perform ``action``.

    Never raises for a well-formed action; refusals come back as :class:`Deny`.

    Args:
        action: The guarded operation.
        actor: Resolved context of the requester.
        target: Extra target facts, if the context was resolved for another resource.

    Returns:
        ``ALLOW`` or a ``Deny`` carrying the reason and a human readable detail.
    """
    if not actor.authenticated:
        return unauthorized()
    if target is not None and target.author_id is not None:
        actor = actor.for_author(target.author_id)
    rule, message = RULES[action]
    if rule(actor):
        return ALLOW
    return forbidden(message)
