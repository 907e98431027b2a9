"""Substring search over public communities, their posts and accounts."""
from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from bulk_stage.models import Account, Community
from bulk_stage.services.content import ContentService, PostView, like_pattern


@dataclass(frozen=True)
class SearchHits:
    communities: Sequence[Community]
    posts: list[PostView]
    accounts: Sequence[Account]


def search_communities(db: Session, term: str, *, limit: int) -> Sequence[Community]:
    pattern = like_pattern(term)
    return db.scalars(
        select(Community)
        .where(
            Community.is_public.is_(True),
            func.lower(Community.name).like(pattern, escape="\\")
            | func.lower(func.coalesce(Community.description, "")).like(pattern, escape="\\"),
        )
        .order_by(Community.name)
        .limit(limit)
    ).all()


def search_accounts(db: Session, term: str, *, limit: int) -> Sequence[Account]:
    pattern = like_pattern(term)
    return db.scalars(
        select(Account)
        .where(
            func.lower(Account.handle).like(pattern, escape="\\")
            | func.lower(Account.display_name).like(pattern, escape="\\")
        )
        .order_by(Account.handle)
        .limit(limit)
    ).all()


def run_search(db: Session, viewer_id: int | None, term: str, *, limit: int) -> SearchHits:
    """Search every entity type; premium post bodies are redacted for the viewer."""
    term = term.strip()
    return SearchHits(
        communities=search_communities(db, term, limit=limit),
        posts=ContentService(db).search_posts(viewer_id, term, limit=limit),
        accounts=search_accounts(db, term, limit=limit),
    )
