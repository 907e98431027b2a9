# src/bulk_stage/services/identity.py
"""Identity context resolution.

Every authorization or visibility decision consumes an :class:`IdentityContext`:
the handful of facts about the requesting account relative to one community and,
optionally, one post or comment. The resolver builds it with a fixed set of
single-entity or small-set reads so a decision never triggers open-ended joins.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from bulk_stage.core.errors import NotFoundError
from bulk_stage.models import (
    Account,
    AccountKind,
    Comment,
    Community,
    Membership,
    MembershipRole,
    Post,
    PremiumUnlock,
)


@dataclass(frozen=True)
class MembershipFacts:
    """Role and premium flag of a membership row."""

    role: MembershipRole
    can_publish_premium: bool = False


@dataclass(frozen=True)
class IdentityContext:
    """Immutable facts about a requester relative to one target."""

    account_id: int | None
    account_kind: AccountKind | None = None
    community_id: int | None = None
    community_is_public: bool = True
    is_community_creator: bool = False
    membership: MembershipFacts | None = None
    is_author_of_target: bool = False
    premium_unlocks: frozenset[int] = field(default_factory=frozenset)

    @classmethod
    def anonymous(cls, community: Community | None = None) -> IdentityContext:
        """Context for a request without a verified identity."""
        if community is None:
            return cls(account_id=None)
        return cls(
            account_id=None,
            community_id=community.id,
            community_is_public=community.is_public,
        )

    @property
    def authenticated(self) -> bool:
        return self.account_id is not None

    @property
    def role(self) -> MembershipRole | None:
        return self.membership.role if self.membership else None

    @property
    def is_member(self) -> bool:
        """Any membership row, the creator's included."""
        return self.membership is not None

    @property
    def is_moderator(self) -> bool:
        return self.role is MembershipRole.MODERATOR

    @property
    def can_publish_premium(self) -> bool:
        return self.is_moderator and bool(
            self.membership and self.membership.can_publish_premium
        )

    def is_premium_unlocked(self, community_id: int) -> bool:
        return community_id in self.premium_unlocks

    def for_author(self, author_id: int) -> IdentityContext:
        """Return a copy targeting a resource written by ``author_id``.

        Listings resolve the community facts once and re-target them per item.
        """
        return dataclasses.replace(
            self,
            is_author_of_target=self.account_id is not None and author_id == self.account_id,
        )


class IdentityContextResolver:
    """Build identity contexts from the database.

    Args:
        db: Session used for the lookups.
        lock: Lock the requester's membership row (``SELECT ... FOR UPDATE``) so a
            check made inside a write transaction stays valid until commit.
    """

    def __init__(self, db: Session, *, lock: bool = False) -> None:
        self.db = db
        self.lock = lock

    def for_account(self, account_id: int | None) -> IdentityContext:
        """Context without a community target (dashboards, feeds)."""
        account = self._load_account(account_id)
        if account is None:
            return IdentityContext.anonymous()
        return IdentityContext(
            account_id=account.id,
            account_kind=account.kind,
            premium_unlocks=self._load_unlocks(account.id),
        )

    def for_community(
        self,
        account_id: int | None,
        community_id: int,
    ) -> tuple[Community, IdentityContext]:
        """Resolve the requester against a community.

        Raises:
            NotFoundError: If the community does not exist.
        """
        community = self.db.get(Community, community_id)
        if community is None:
            raise NotFoundError("community", community_id)
        return community, self._build(account_id, community, author_id=None)

    def for_post(
        self,
        account_id: int | None,
        post_id: int,
    ) -> tuple[Post, IdentityContext]:
        """Resolve the requester against a post and its community.

        Raises:
            NotFoundError: If the post does not exist.
        """
        post = self.db.get(Post, post_id)
        if post is None:
            raise NotFoundError("post", post_id)
        community = self.db.get(Community, post.community_id)
        if community is None:
            raise NotFoundError("community", post.community_id)
        return post, self._build(account_id, community, author_id=post.author_id)

    def for_comment(
        self,
        account_id: int | None,
        comment_id: int,
    ) -> tuple[Comment, Post, IdentityContext]:
        """Resolve the requester against a comment, its post and its community.

        Raises:
            NotFoundError: If the comment does not exist.
        """
        comment = self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("comment", comment_id)
        post = self.db.get(Post, comment.post_id)
        if post is None:
            raise NotFoundError("post", comment.post_id)
        community = self.db.get(Community, post.community_id)
        if community is None:
            raise NotFoundError("community", post.community_id)
        context = self._build(account_id, community, author_id=comment.author_id)
        return comment, post, context

    def _build(
        self,
        account_id: int | None,
        community: Community,
        *,
        author_id: int | None,
    ) -> IdentityContext:
        account = self._load_account(account_id)
        if account is None:
            return IdentityContext.anonymous(community)

        membership = self._load_membership(account.id, community.id)
        facts = (
            MembershipFacts(
                role=membership.role,
                can_publish_premium=membership.can_publish_premium,
            )
            if membership is not None
            else None
        )
        return IdentityContext(
            account_id=account.id,
            account_kind=account.kind,
            community_id=community.id,
            community_is_public=community.is_public,
            is_community_creator=community.creator_id == account.id,
            membership=facts,
            is_author_of_target=author_id is not None and author_id == account.id,
            premium_unlocks=self._load_unlocks(account.id),
        )

    def _load_account(self, account_id: int | None) -> Account | None:
        if account_id is None:
            return None
        return self.db.get(Account, account_id)

    def _load_membership(self, account_id: int, community_id: int) -> Membership | None:
        stmt = select(Membership).where(
            Membership.account_id == account_id,
            Membership.community_id == community_id,
        )
        if self.lock:
            stmt = stmt.with_for_update()
        return self.db.scalars(stmt).first()

    def _load_unlocks(self, account_id: int) -> frozenset[int]:
        rows = self.db.scalars(
            select(PremiumUnlock.community_id).where(PremiumUnlock.account_id == account_id)
        )
        return frozenset(rows)
