# src/bulk_stage/services/communities.py
"""Community lifecycle: creation, profile updates, media and cascading delete."""

from __future__ import annotations

import enum
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from bulk_stage.core.errors import ConflictError
from bulk_stage.db.session import atomic
from bulk_stage.models import (
    Account,
    Comment,
    Community,
    Membership,
    MembershipRole,
    Post,
    PremiumUnlock,
    Reaction,
)
from bulk_stage.schemas.community import CommunityCreate, CommunityUpdate
from bulk_stage.services.authorization import Action, authorize
from bulk_stage.services.decisions import Deny
from bulk_stage.services.identity import IdentityContextResolver
from bulk_stage.services.media import StoredMedia

logger = logging.getLogger(__name__)

NAME_TAKEN = "A community with this name already exists"


class MediaSlot(str, enum.Enum):
    """Image slots on a community profile."""

    LOGO = "logo"
    BANNER = "banner"

    @property
    def url_attr(self) -> str:
        return f"{self.value}_url"

    @property
    def ref_attr(self) -> str:
        return f"{self.value}_ref"


@dataclass(frozen=True)
class CascadeResult:
    """Rows removed by a cascading delete and the media left to clean up."""

    community_id: int
    posts: int
    comments: int
    reactions: int
    memberships: int
    premium_unlocks: int
    media_refs: tuple[str, ...]


@dataclass(frozen=True)
class CommunityStats:
    """Aggregates for the creator dashboard."""

    community: Community
    member_count: int
    post_count: int
    total_likes: int
    total_comments: int
    premium_subscribers: int


class CommunityService:
    """Write paths for communities. Every mutation re-checks authorization
    inside the transaction that performs it."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _ensure_name_free(self, name: str, *, exclude_id: int | None = None) -> None:
        stmt = select(Community.id).where(func.lower(Community.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Community.id != exclude_id)
        if self.db.scalars(stmt).first() is not None:
            raise ConflictError(NAME_TAKEN)

    def create(self, creator_id: int, data: CommunityCreate) -> Community:
        """Create a community and its creator membership atomically.

        Raises:
            ConflictError: If the name is taken.
            UpstreamFailure: If the database rejects the write.
        """
        self._ensure_name_free(data.name)
        community = Community(creator_id=creator_id, **data.model_dump())
        with atomic(self.db, operation="community creation", conflict=NAME_TAKEN):
            self.db.add(community)
            self.db.flush()
            self.db.add(
                Membership(
                    account_id=creator_id,
                    community_id=community.id,
                    role=MembershipRole.CREATOR,
                )
            )
        self.db.refresh(community)
        logger.info("Community %s created by account %s", community.id, creator_id)
        return community

    def update(
        self,
        actor_id: int,
        community_id: int,
        data: CommunityUpdate,
    ) -> Community | Deny:
        """Apply a partial profile update if the actor is the creator."""
        community, ctx = IdentityContextResolver(self.db, lock=True).for_community(
            actor_id, community_id
        )
        decision = authorize(Action.UPDATE_COMMUNITY, ctx)
        if isinstance(decision, Deny):
            return decision

        changes = data.model_dump(exclude_unset=True)
        if changes.get("name"):
            self._ensure_name_free(changes["name"], exclude_id=community.id)
        with atomic(self.db, operation="community update", conflict=NAME_TAKEN):
            for key, value in changes.items():
                if key in ("name", "is_public") and value is None:
                    continue
                setattr(community, key, value)
        self.db.refresh(community)
        return community

    def authorize_update(self, actor_id: int, community_id: int) -> Community | Deny:
        """Pre-flight check used before uploading media for a community."""
        community, ctx = IdentityContextResolver(self.db).for_community(actor_id, community_id)
        decision = authorize(Action.UPDATE_COMMUNITY, ctx)
        if isinstance(decision, Deny):
            return decision
        return community

    def set_media(
        self,
        actor_id: int,
        community_id: int,
        slot: MediaSlot,
        stored: StoredMedia | None,
    ) -> tuple[Community, str | None] | Deny:
        """Point ``slot`` at ``stored`` (or clear it).

        Returns:
            The community and the reference that was replaced, which the caller
            removes from the media store after this commit.
        """
        community, ctx = IdentityContextResolver(self.db, lock=True).for_community(
            actor_id, community_id
        )
        decision = authorize(Action.UPDATE_COMMUNITY, ctx)
        if isinstance(decision, Deny):
            return decision

        previous = getattr(community, slot.ref_attr)
        with atomic(self.db, operation=f"community {slot.value} update"):
            setattr(community, slot.url_attr, stored.url if stored else None)
            setattr(community, slot.ref_attr, stored.reference if stored else None)
        self.db.refresh(community)
        replaced = previous if previous and previous != getattr(community, slot.ref_attr) else None
        return community, replaced

    def delete(self, actor_id: int, community_id: int) -> CascadeResult | Deny:
        """Delete a community with its posts, comments, reactions, memberships
        and premium unlocks in a single transaction.

        Nothing is removed unless every statement succeeds. Media references are
        collected before the delete and returned for post-commit cleanup.

        Raises:
            NotFoundError: If the community does not exist.
            UpstreamFailure: If any statement fails; the transaction is rolled back.
        """
        community, ctx = IdentityContextResolver(self.db, lock=True).for_community(
            actor_id, community_id
        )
        decision = authorize(Action.DELETE_COMMUNITY, ctx)
        if isinstance(decision, Deny):
            return decision

        posts = self.db.execute(
            select(Post.id, Post.image_ref).where(Post.community_id == community_id)
        ).all()
        post_ids = [row.id for row in posts]
        media_refs = tuple(
            ref
            for ref in (community.logo_ref, community.banner_ref, *(row.image_ref for row in posts))
            if ref
        )

        with atomic(self.db, operation=f"community {community_id} delete"):
            reactions = self.db.execute(
                delete(Reaction).where(Reaction.post_id.in_(post_ids))
            ).rowcount
            comments = self.db.execute(
                delete(Comment).where(Comment.post_id.in_(post_ids))
            ).rowcount
            deleted_posts = self.db.execute(
                delete(Post).where(Post.community_id == community_id)
            ).rowcount
            unlocks = self.db.execute(
                delete(PremiumUnlock).where(PremiumUnlock.community_id == community_id)
            ).rowcount
            memberships = self.db.execute(
                delete(Membership).where(Membership.community_id == community_id)
            ).rowcount
            self.db.execute(delete(Community).where(Community.id == community_id))

        logger.info(
            "Community %s deleted: %d posts, %d comments, %d reactions, %d memberships",
            community_id,
            deleted_posts,
            comments,
            reactions,
            memberships,
        )
        return CascadeResult(
            community_id=community_id,
            posts=deleted_posts,
            comments=comments,
            reactions=reactions,
            memberships=memberships,
            premium_unlocks=unlocks,
            media_refs=media_refs,
        )

    def list_public(self, *, limit: int, offset: int = 0) -> Sequence[Community]:
        return self.db.scalars(
            select(Community)
            .where(Community.is_public.is_(True))
            .order_by(Community.created_at.desc(), Community.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

    def member_count(self, community_id: int) -> int:
        return self.db.scalar(
            select(func.count(Membership.id)).where(Membership.community_id == community_id)
        ) or 0

    def post_count(self, community_id: int) -> int:
        return self.db.scalar(
            select(func.count(Post.id)).where(Post.community_id == community_id)
        ) or 0

    def list_members(
        self,
        community_id: int,
        *,
        limit: int,
        offset: int = 0,
    ) -> Sequence[tuple[Membership, Account]]:
        rows = self.db.execute(
            select(Membership, Account)
            .join(Account, Account.id == Membership.account_id)
            .where(Membership.community_id == community_id)
            .order_by(Membership.joined_at, Membership.id)
            .offset(offset)
            .limit(limit)
        ).all()
        return [(row[0], row[1]) for row in rows]

    def communities_of(self, account_id: int) -> Sequence[Community]:
        """Communities the account holds any membership in."""
        return self.db.scalars(
            select(Community)
            .join(Membership, Membership.community_id == Community.id)
            .where(Membership.account_id == account_id)
            .order_by(Community.name)
        ).all()

    def dashboard(self, account_id: int) -> list[CommunityStats]:
        """Aggregates for every community the account created."""
        communities = self.db.scalars(
            select(Community)
            .where(Community.creator_id == account_id)
            .order_by(Community.created_at.desc(), Community.id.desc())
        ).all()
        stats: list[CommunityStats] = []
        for community in communities:
            likes = self.db.scalar(
                select(func.count(Reaction.id))
                .join(Post, Post.id == Reaction.post_id)
                .where(Post.community_id == community.id)
            )
            comments = self.db.scalar(
                select(func.count(Comment.id))
                .join(Post, Post.id == Comment.post_id)
                .where(Post.community_id == community.id)
            )
            subscribers = self.db.scalar(
                select(func.count()).select_from(PremiumUnlock).where(
                    PremiumUnlock.community_id == community.id
                )
            )
            stats.append(
                CommunityStats(
                    community=community,
                    member_count=self.member_count(community.id),
                    post_count=self.post_count(community.id),
                    total_likes=likes or 0,
                    total_comments=comments or 0,
                    premium_subscribers=subscribers or 0,
                )
            )
        return stats
