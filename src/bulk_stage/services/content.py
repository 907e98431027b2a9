"""Service-level helpers for posts, comments and reactions.

Write paths resolve the identity context with row locks and authorize inside the
transaction that writes. Read paths run every post through the visibility policy.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bulk_stage.core.errors import UpstreamFailure
from bulk_stage.db.session import atomic
from bulk_stage.models import (
    Comment,
    Community,
    Membership,
    MembershipRole,
    Post,
    PremiumUnlock,
    Reaction,
    ReactionKind,
)
from bulk_stage.schemas.post import (
    CommentCreate,
    CommentUpdate,
    PostCreate,
    PostResponse,
    PostUpdate,
)
from bulk_stage.services.authorization import Action, authorize
from bulk_stage.services.decisions import Deny
from bulk_stage.services.identity import IdentityContext, IdentityContextResolver
from bulk_stage.services.media import StoredMedia
from bulk_stage.services.visibility import (
    Full,
    Redacted,
    ViewMode,
    community_gate,
    resolve_visibility,
)

logger = logging.getLogger(__name__)


def like_pattern(term: str) -> str:
    """Case-insensitive substring pattern with LIKE wildcards escaped."""
    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


@dataclass(frozen=True)
class PostView:
    """A post as one requester may see it, with its counters."""

    visibility: Full | Redacted
    like_count: int = 0
    comment_count: int = 0
    viewer_has_liked: bool = False

    @property
    def post(self) -> Post:
        return self.visibility.post


def to_post_response(view: PostView) -> PostResponse:
    """Convert a visible post to its API schema."""
    post = view.post
    return PostResponse(
        id=post.id,
        community_id=post.community_id,
        author_id=post.author_id,
        title=post.title,
        content=view.visibility.content,
        premium=post.premium,
        redacted=view.visibility.redacted,
        image_url=post.image_url,
        like_count=view.like_count,
        comment_count=view.comment_count,
        viewer_has_liked=view.viewer_has_liked,
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


class ContentService:
    """Posts, comments and reactions."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # -- posts -------------------------------------------------------------

    def create_post(
        self,
        actor_id: int,
        community_id: int,
        data: PostCreate,
    ) -> Post | Deny:
        """Publish a post. Premium posts need the extra premium permission."""
        _, ctx = IdentityContextResolver(self.db, lock=True).for_community(
            actor_id, community_id
        )
        decision = authorize(Action.CREATE_POST, ctx)
        if isinstance(decision, Deny):
            return decision
        if data.premium:
            decision = authorize(Action.MARK_POST_PREMIUM, ctx)
            if isinstance(decision, Deny):
                return decision

        post = Post(
            community_id=community_id,
            author_id=actor_id,
            title=data.title,
            content=data.content,
            premium=data.premium,
        )
        with atomic(self.db, operation="post creation"):
            self.db.add(post)
        self.db.refresh(post)
        logger.info(
            "Post %s created in community %s (premium=%s)", post.id, community_id, post.premium
        )
        return post

    def update_post(self, actor_id: int, post_id: int, data: PostUpdate) -> Post | Deny:
        post, ctx = IdentityContextResolver(self.db, lock=True).for_post(actor_id, post_id)
        decision = authorize(Action.EDIT_POST, ctx)
        if isinstance(decision, Deny):
            return decision
        with atomic(self.db, operation="post update"):
            for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
                setattr(post, key, value)
        self.db.refresh(post)
        return post

    def authorize_post_edit(self, actor_id: int, post_id: int) -> Post | Deny:
        """Pre-flight check used before uploading a post image."""
        post, ctx = IdentityContextResolver(self.db).for_post(actor_id, post_id)
        decision = authorize(Action.EDIT_POST, ctx)
        if isinstance(decision, Deny):
            return decision
        return post

    def set_post_image(
        self,
        actor_id: int,
        post_id: int,
        stored: StoredMedia | None,
    ) -> tuple[Post, str | None] | Deny:
        """Attach or clear the post image; returns the replaced reference."""
        post, ctx = IdentityContextResolver(self.db, lock=True).for_post(actor_id, post_id)
        decision = authorize(Action.EDIT_POST, ctx)
        if isinstance(decision, Deny):
            return decision
        previous = post.image_ref
        with atomic(self.db, operation="post image update"):
            post.image_url = stored.url if stored else None
            post.image_ref = stored.reference if stored else None
        self.db.refresh(post)
        replaced = previous if previous and previous != post.image_ref else None
        return post, replaced

    def delete_post(self, actor_id: int, post_id: int) -> tuple[str, ...] | Deny:
        """Delete a post with its comments and reactions in one transaction.

        Returns:
            Media references to remove after the commit.

        Raises:
            UpstreamFailure: If any statement fails; nothing is deleted.
        """
        post, ctx = IdentityContextResolver(self.db, lock=True).for_post(actor_id, post_id)
        decision = authorize(Action.DELETE_POST, ctx)
        if isinstance(decision, Deny):
            return decision
        refs = (post.image_ref,) if post.image_ref else ()
        with atomic(self.db, operation=f"post {post_id} delete"):
            self.db.execute(delete(Reaction).where(Reaction.post_id == post_id))
            self.db.execute(delete(Comment).where(Comment.post_id == post_id))
            self.db.execute(delete(Post).where(Post.id == post_id))
        logger.info("Post %s deleted by account %s", post_id, actor_id)
        return refs

    def get_post(self, viewer_id: int | None, post_id: int) -> PostView | Deny:
        """Single post in detail mode."""
        post, ctx = IdentityContextResolver(self.db).for_post(viewer_id, post_id)
        visibility = resolve_visibility(post, ctx, ViewMode.DETAIL)
        if isinstance(visibility, Deny):
            return visibility
        counts = self._counts([post.id])
        return PostView(
            visibility,
            *counts.get(post.id, (0, 0)),
            viewer_has_liked=post.id in self._liked_by(viewer_id, [post.id]),
        )

    def list_community_posts(
        self,
        viewer_id: int | None,
        community_id: int,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[PostView] | Deny:
        """Posts of one community, newest first. The community gate runs first."""
        _, ctx = IdentityContextResolver(self.db).for_community(viewer_id, community_id)
        gate = community_gate(ctx, ViewMode.LISTING)
        if isinstance(gate, Deny):
            return gate
        posts = self.db.scalars(
            select(Post)
            .where(Post.community_id == community_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return self._views(posts, {community_id: ctx}, viewer_id)

    def list_author_posts(
        self,
        viewer_id: int | None,
        author_id: int,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[PostView]:
        """Posts written by ``author_id`` that the viewer may list."""
        posts = self.db.scalars(
            select(Post)
            .where(Post.author_id == author_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return self._views(
            posts, self._contexts(viewer_id, {p.community_id for p in posts}), viewer_id
        )

    def feed(self, viewer_id: int, *, limit: int, offset: int = 0) -> list[PostView]:
        """Newest posts from every community the viewer belongs to."""
        member_of = select(Membership.community_id).where(Membership.account_id == viewer_id)
        posts = self.db.scalars(
            select(Post)
            .where(Post.community_id.in_(member_of))
            .order_by(Post.created_at.desc(), Post.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
        return self._views(
            posts, self._contexts(viewer_id, {p.community_id for p in posts}), viewer_id
        )

    def search_posts(self, viewer_id: int | None, term: str, *, limit: int) -> list[PostView]:
        """Posts in public communities whose title or readable content contains ``term``.

        Premium bodies are only matched for viewers who may read them in full, so a
        hit never reveals what a redacted body says.
        """
        pattern = like_pattern(term)
        body_readable = Post.premium.is_(False)
        if viewer_id is not None:
            body_readable = body_readable | self._premium_readable(viewer_id)
        posts = self.db.scalars(
            select(Post)
            .join(Community, Community.id == Post.community_id)
            .where(
                Community.is_public.is_(True),
                func.lower(Post.title).like(pattern, escape="\\")
                | (body_readable & func.lower(Post.content).like(pattern, escape="\\")),
            )
            .order_by(Post.created_at.desc(), Post.id.desc())
            .limit(limit)
        ).all()
        return self._views(
            posts, self._contexts(viewer_id, {p.community_id for p in posts}), viewer_id
        )

    @staticmethod
    def _premium_readable(viewer_id: int) -> ColumnElement[bool]:
        """Posts whose premium body ``viewer_id`` reads in full.

        Creators hold a CREATOR membership, so the role check covers them.
        """
        unlocked = select(PremiumUnlock.community_id).where(PremiumUnlock.account_id == viewer_id)
        staff = select(Membership.community_id).where(
            Membership.account_id == viewer_id,
            Membership.role.in_((MembershipRole.CREATOR, MembershipRole.MODERATOR)),
        )
        return or_(
            Post.author_id == viewer_id,
            Post.community_id.in_(unlocked),
            Post.community_id.in_(staff),
        )

    def _contexts(
        self,
        viewer_id: int | None,
        community_ids: Iterable[int],
    ) -> dict[int, IdentityContext]:
        resolver = IdentityContextResolver(self.db)
        return {cid: resolver.for_community(viewer_id, cid)[1] for cid in community_ids}

    def _views(
        self,
        posts: Sequence[Post],
        contexts: dict[int, IdentityContext],
        viewer_id: int | None,
    ) -> list[PostView]:
        post_ids = [post.id for post in posts]
        counts = self._counts(post_ids)
        liked = self._liked_by(viewer_id, post_ids)
        views: list[PostView] = []
        for post in posts:
            ctx = contexts[post.community_id].for_author(post.author_id)
            visibility = resolve_visibility(post, ctx, ViewMode.LISTING)
            if isinstance(visibility, Deny):
                continue
            views.append(
                PostView(
                    visibility,
                    *counts.get(post.id, (0, 0)),
                    viewer_has_liked=post.id in liked,
                )
            )
        return views

    def _liked_by(self, viewer_id: int | None, post_ids: list[int]) -> set[int]:
        """Ids among ``post_ids`` that ``viewer_id`` has liked."""
        if viewer_id is None or not post_ids:
            return set()
        return set(
            self.db.scalars(
                select(Reaction.post_id).where(
                    Reaction.account_id == viewer_id,
                    Reaction.post_id.in_(post_ids),
                    Reaction.kind == ReactionKind.LIKE,
                )
            ).all()
        )

    def _counts(self, post_ids: list[int]) -> dict[int, tuple[int, int]]:
        if not post_ids:
            return {}
        likes = dict(
            self.db.execute(
                select(Reaction.post_id, func.count(Reaction.id))
                .where(Reaction.post_id.in_(post_ids), Reaction.kind == ReactionKind.LIKE)
                .group_by(Reaction.post_id)
            ).all()
        )
        comments = dict(
            self.db.execute(
                select(Comment.post_id, func.count(Comment.id))
                .where(Comment.post_id.in_(post_ids))
                .group_by(Comment.post_id)
            ).all()
        )
        return {pid: (likes.get(pid, 0), comments.get(pid, 0)) for pid in post_ids}

    # -- comments ----------------------------------------------------------

    def list_comments(self, viewer_id: int | None, post_id: int) -> Sequence[Comment] | Deny:
        """Comments of a post the viewer may read in full."""
        post, ctx = IdentityContextResolver(self.db).for_post(viewer_id, post_id)
        visibility = resolve_visibility(post, ctx, ViewMode.DETAIL)
        if isinstance(visibility, Deny):
            return visibility
        return self.db.scalars(
            select(Comment).where(Comment.post_id == post_id).order_by(Comment.created_at, Comment.id)
        ).all()

    def create_comment(
        self,
        actor_id: int,
        post_id: int,
        data: CommentCreate,
    ) -> Comment | Deny:
        _, ctx = IdentityContextResolver(self.db, lock=True).for_post(actor_id, post_id)
        decision = authorize(Action.CREATE_COMMENT, ctx)
        if isinstance(decision, Deny):
            return decision
        comment = Comment(post_id=post_id, author_id=actor_id, content=data.content)
        with atomic(self.db, operation="comment creation"):
            self.db.add(comment)
        self.db.refresh(comment)
        return comment

    def update_comment(
        self,
        actor_id: int,
        comment_id: int,
        data: CommentUpdate,
    ) -> Comment | Deny:
        comment, _, ctx = IdentityContextResolver(self.db, lock=True).for_comment(
            actor_id, comment_id
        )
        decision = authorize(Action.EDIT_COMMENT, ctx)
        if isinstance(decision, Deny):
            return decision
        with atomic(self.db, operation="comment update"):
            comment.content = data.content
        self.db.refresh(comment)
        return comment

    def delete_comment(self, actor_id: int, comment_id: int) -> int | Deny:
        comment, _, ctx = IdentityContextResolver(self.db, lock=True).for_comment(
            actor_id, comment_id
        )
        decision = authorize(Action.DELETE_COMMENT, ctx)
        if isinstance(decision, Deny):
            return decision
        with atomic(self.db, operation="comment delete"):
            self.db.delete(comment)
        return comment_id

    # -- reactions ---------------------------------------------------------

    def toggle_reaction(
        self,
        actor_id: int,
        post_id: int,
        kind: ReactionKind = ReactionKind.LIKE,
    ) -> tuple[bool, int] | Deny:
        """Flip the actor's reaction on a post.

        Returns:
            Whether the reaction now exists and the post's like count.
        """
        _, ctx = IdentityContextResolver(self.db, lock=True).for_post(actor_id, post_id)
        decision = authorize(Action.TOGGLE_REACTION, ctx)
        if isinstance(decision, Deny):
            return decision

        existing = self.db.scalars(
            select(Reaction).where(
                Reaction.account_id == actor_id,
                Reaction.post_id == post_id,
                Reaction.kind == kind,
            )
        ).first()
        try:
            if existing is not None:
                self.db.delete(existing)
                reacted = False
            else:
                self.db.add(Reaction(account_id=actor_id, post_id=post_id, kind=kind))
                reacted = True
            self.db.commit()
        except IntegrityError:
            # A concurrent toggle created the row first; the like exists.
            self.db.rollback()
            reacted = True
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise UpstreamFailure("reaction toggle failed") from exc

        likes = self._counts([post_id]).get(post_id, (0, 0))[0]
        return reacted, likes

