# mypy: ignore-errors
# tests/services/test_premium.py
"""Tests for the premium subscription ledger."""

import pytest
from sqlalchemy import func, select

from bulk_stage.core.errors import NotFoundError
from bulk_stage.models import Membership, MembershipRole, PremiumUnlock
from bulk_stage.services import premium as premium_module
from bulk_stage.services.membership import load_membership
from bulk_stage.services.premium import PremiumLedger


def test_subscribe_joins_and_unlocks(db_session, community, outsider) -> None:
    """Subscribing a non-member creates the membership and the unlock."""
    change = PremiumLedger(db_session).subscribe(outsider.id, community.id)

    assert change.subscribed and change.changed and change.joined
    row = load_membership(db_session, outsider.id, community.id)
    assert row.role is MembershipRole.MEMBER
    assert PremiumLedger(db_session).is_subscribed(outsider.id, community.id)


def test_subscribe_is_idempotent(db_session, community, member, add_member) -> None:
    """A second subscribe reports no change and keeps one unlock."""
    add_member(member, community)
    ledger = PremiumLedger(db_session)
    first = ledger.subscribe(member.id, community.id)
    second = ledger.subscribe(member.id, community.id)

    assert first.changed and not first.joined
    assert not second.changed
    assert ledger.is_subscribed(member.id, community.id)


def test_unsubscribe_keeps_membership(db_session, community, member, add_member) -> None:
    """Dropping the unlock leaves the membership in place."""
    add_member(member, community)
    ledger = PremiumLedger(db_session)
    ledger.subscribe(member.id, community.id)

    change = ledger.unsubscribe(member.id, community.id)

    assert change.changed and not change.subscribed
    assert not ledger.is_subscribed(member.id, community.id)
    assert load_membership(db_session, member.id, community.id) is not None
    assert not ledger.unsubscribe(member.id, community.id).changed


def test_subscribe_unknown_community(db_session, member) -> None:
    """Unknown communities raise NotFoundError."""
    with pytest.raises(NotFoundError):
        PremiumLedger(db_session).subscribe(member.id, 424242)


def test_concurrent_subscribe_reports_unchanged(
    db_session, community, member, add_member, mocker
) -> None:
    """A subscribe whose existence checks raced another subscribe still succeeds."""
    add_member(member, community)
    ledger = PremiumLedger(db_session)
    ledger.subscribe(member.id, community.id)
    db_session.expunge_all()

    # Simulate the other writer committing between the checks and the inserts.
    original_get = db_session.get

    def stale_get(entity, ident, **kwargs):
        if entity is PremiumUnlock:
            return None
        return original_get(entity, ident, **kwargs)

    mocker.patch.object(db_session, "get", side_effect=stale_get)
    mocker.patch.object(premium_module, "load_membership", return_value=None)

    change = ledger.subscribe(member.id, community.id)

    assert change.subscribed and not change.changed and not change.joined
    unlocks = db_session.scalar(
        select(func.count()).select_from(PremiumUnlock).where(
            PremiumUnlock.community_id == community.id
        )
    )
    memberships = db_session.scalar(
        select(func.count(Membership.id)).where(
            Membership.community_id == community.id, Membership.account_id == member.id
        )
    )
    assert unlocks == 1
    assert memberships == 1
