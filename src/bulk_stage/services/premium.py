# src/bulk_stage/services/premium.py
"""Premium subscription ledger.

A premium unlock is independent of membership: subscribing joins the community
as a member when needed, unsubscribing leaves the membership alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from bulk_stage.core.errors import ConflictError, NotFoundError, UpstreamFailure
from bulk_stage.db.session import atomic
from bulk_stage.models import Community, Membership, MembershipRole, PremiumUnlock
from bulk_stage.services.membership import load_membership

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubscriptionChange:
    """Outcome of a ledger operation."""

    community_id: int
    subscribed: bool
    changed: bool
    joined: bool = False


class PremiumLedger:
    """Add and remove premium unlocks for an account."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def is_subscribed(self, account_id: int, community_id: int) -> bool:
        return self.db.get(PremiumUnlock, (account_id, community_id)) is not None

    def subscribe(self, account_id: int, community_id: int) -> SubscriptionChange:
        """Unlock premium content; idempotent.

        A concurrent subscribe that commits first leaves this call with nothing
        to change, so a unique violation is reported as an unchanged subscription.

        Raises:
            NotFoundError: If the community does not exist.
            UpstreamFailure: If the database rejects the write.
        """
        try:
            with atomic(
                self.db, operation="premium subscribe", conflict="Already subscribed"
            ):
                self._require_community(community_id)
                joined = False
                if load_membership(self.db, account_id, community_id, lock=True) is None:
                    self.db.add(
                        Membership(
                            account_id=account_id,
                            community_id=community_id,
                            role=MembershipRole.MEMBER,
                        )
                    )
                    joined = True
                changed = False
                if self.db.get(PremiumUnlock, (account_id, community_id)) is None:
                    self.db.add(PremiumUnlock(account_id=account_id, community_id=community_id))
                    changed = True
                self.db.flush()
        except ConflictError as exc:
            if not self._unlock_exists(account_id, community_id):
                raise UpstreamFailure("premium subscribe failed") from exc
            logger.info(
                "Concurrent subscribe for account %s in community %s lost the race",
                account_id,
                community_id,
            )
            return SubscriptionChange(community_id, subscribed=True, changed=False)

        if changed:
            logger.info("Account %s subscribed to community %s", account_id, community_id)
        return SubscriptionChange(community_id, subscribed=True, changed=changed, joined=joined)

    def unsubscribe(self, account_id: int, community_id: int) -> SubscriptionChange:
        """Remove the premium unlock; idempotent and membership is untouched.

        Raises:
            NotFoundError: If the community does not exist.
            UpstreamFailure: If the database rejects the write.
        """
        with atomic(self.db, operation="premium unsubscribe"):
            self._require_community(community_id)
            unlock = self.db.get(PremiumUnlock, (account_id, community_id))
            changed = unlock is not None
            if unlock is not None:
                self.db.delete(unlock)
                self.db.flush()

        if changed:
            logger.info("Account %s unsubscribed from community %s", account_id, community_id)
        return SubscriptionChange(community_id, subscribed=False, changed=changed)

    def _unlock_exists(self, account_id: int, community_id: int) -> bool:
        stmt = select(PremiumUnlock.account_id).where(
            PremiumUnlock.account_id == account_id,
            PremiumUnlock.community_id == community_id,
        )
        return self.db.scalar(stmt) is not None

    def _require_community(self, community_id: int) -> Community:
        community = self.db.get(Community, community_id)
        if community is None:
            raise NotFoundError("community", community_id)
        return community
