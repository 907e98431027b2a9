# src/bulk_stage/models/__init__.py
"""SQLAlchemy models for the Bulk Stage application."""

from .account import LEGACY_KIND_LABELS, Account, AccountKind, PremiumUnlock
from .community import Community, Membership, MembershipRole
from .post import Comment, Post, Reaction, ReactionKind

__all__ = [
    "Account", "AccountKind", "LEGACY_KIND_LABELS", "PremiumUnlock",
    "Community", "Membership", "MembershipRole",
    "Comment", "Post", "Reaction", "ReactionKind",
]
