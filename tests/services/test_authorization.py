# mypy: ignore-errors
# tests/services/test_authorization.py
"""Tests for the mutation rule table."""

import pytest

from bulk_stage.models import AccountKind, MembershipRole
from bulk_stage.services.authorization import RULES, Action, TargetContext, authorize
from bulk_stage.services.decisions import ALLOW, Deny, DenyReason
from bulk_stage.services.identity import IdentityContext, MembershipFacts

COMMUNITY_ID = 7


def _ctx(
    *,
    role: MembershipRole | None = None,
    kind: AccountKind = AccountKind.STANDARD,
    author: bool = False,
    can_publish_premium: bool = False,
) -> IdentityContext:
    membership = MembershipFacts(role, can_publish_premium) if role else None
    return IdentityContext(
        account_id=1,
        account_kind=kind,
        community_id=COMMUNITY_ID,
        is_community_creator=role is MembershipRole.CREATOR,
        membership=membership,
        is_author_of_target=author,
    )


CREATOR = _ctx(role=MembershipRole.CREATOR)
MODERATOR = _ctx(role=MembershipRole.MODERATOR)
MEMBER = _ctx(role=MembershipRole.MEMBER)
OUTSIDER = _ctx()
AUTHOR = _ctx(role=MembershipRole.MEMBER, author=True)


def test_every_action_has_a_rule() -> None:
    """Each guarded action is present in the rule table."""
    assert set(RULES) == set(Action)


@pytest.mark.parametrize(
    ("action", "allowed", "denied"),
    [
        (Action.CREATE_POST, [CREATOR, MODERATOR], [MEMBER, OUTSIDER]),
        (Action.EDIT_POST, [AUTHOR], [CREATOR, MODERATOR, MEMBER]),
        (Action.DELETE_POST, [AUTHOR, CREATOR, MODERATOR], [MEMBER, OUTSIDER]),
        (Action.CREATE_COMMENT, [CREATOR, MODERATOR, MEMBER], [OUTSIDER]),
        (Action.EDIT_COMMENT, [AUTHOR], [CREATOR, MODERATOR]),
        (Action.DELETE_COMMENT, [AUTHOR, CREATOR, MODERATOR], [MEMBER]),
        (Action.TOGGLE_REACTION, [CREATOR, MEMBER], [OUTSIDER]),
        (Action.UPDATE_COMMUNITY, [CREATOR], [MODERATOR, MEMBER]),
        (Action.DELETE_COMMUNITY, [CREATOR], [MODERATOR, OUTSIDER]),
    ],
)
def test_rule_table(action, allowed, denied) -> None:
    """Allowed contexts pass and the rest are forbidden."""
    for ctx in allowed:
        assert authorize(action, ctx) == ALLOW
    for ctx in denied:
        decision = authorize(action, ctx)
        assert isinstance(decision, Deny)
        assert decision.reason is DenyReason.FORBIDDEN
        assert decision.detail


def test_premium_marking_needs_elevated_or_moderator_permission() -> None:
    """A non-elevated creator cannot mark posts premium; a permitted moderator can."""
    assert not authorize(Action.MARK_POST_PREMIUM, CREATOR)
    assert not authorize(Action.MARK_POST_PREMIUM, MODERATOR)
    assert authorize(
        Action.MARK_POST_PREMIUM,
        _ctx(role=MembershipRole.MODERATOR, can_publish_premium=True),
    )
    assert authorize(
        Action.MARK_POST_PREMIUM,
        _ctx(role=MembershipRole.CREATOR, kind=AccountKind.ELEVATED),
    )


def test_premium_flag_is_ignored_for_plain_members() -> None:
    """A stale flag on a member row does not grant premium publishing."""
    ctx = _ctx(role=MembershipRole.MEMBER, can_publish_premium=True)
    assert not ctx.can_publish_premium
    assert not authorize(Action.MARK_POST_PREMIUM, ctx)


def test_dashboard_requires_elevated_account() -> None:
    """Only elevated accounts see the creator dashboard."""
    standard = IdentityContext(account_id=1, account_kind=AccountKind.STANDARD)
    elevated = IdentityContext(account_id=1, account_kind=AccountKind.ELEVATED)
    assert authorize(Action.VIEW_CREATOR_DASHBOARD, elevated) == ALLOW
    assert authorize(Action.VIEW_CREATOR_DASHBOARD, standard).reason is DenyReason.FORBIDDEN


@pytest.mark.parametrize("action", list(Action))
def test_unauthenticated_is_unauthorized(action) -> None:
    """Anonymous requesters are never forbidden, only unauthorized."""
    decision = authorize(action, IdentityContext.anonymous())
    assert decision.reason is DenyReason.UNAUTHORIZED


def test_target_context_retargets_authorship() -> None:
    """Authorship follows the target author id, not the resolved resource."""
    ctx = _ctx(role=MembershipRole.MEMBER, author=True)
    assert not authorize(Action.EDIT_COMMENT, ctx, TargetContext(author_id=99))
    assert authorize(Action.EDIT_COMMENT, _ctx(), TargetContext(author_id=1))
