# src/bulk_stage/schemas/users.py
"""Schemas for account-centric views: dashboard, search results."""

from datetime import datetime

from pydantic import BaseModel

from .account import PublicProfile
from .community import CommunityResponse
from .post import PostResponse


class DashboardCommunity(BaseModel):
    """Counters for one community managed by the requester."""

    id: int
    name: str
    description: str | None
    is_public: bool
    logo_url: str | None
    banner_url: str | None
    created_at: datetime
    member_count: int
    post_count: int
    total_likes: int
    total_comments: int
    premium_subscribers: int


class CreatorDashboard(BaseModel):
    """Everything the creator dashboard renders."""

    total_communities_created: int
    communities: list[DashboardCommunity]


class SearchResults(BaseModel):
    """Matches grouped by entity type."""

    query: str
    communities: list[CommunityResponse]
    posts: list[PostResponse]
    users: list[PublicProfile]
