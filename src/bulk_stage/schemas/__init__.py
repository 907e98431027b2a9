# src/bulk_stage/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .account import (
    AccountRegister,
    AccountResponse,
    LoginRequest,
    ProfileUpdate,
    PublicProfile,
    TokenResponse,
)
from .community import (
    CommunityCreate,
    CommunityDetail,
    CommunityResponse,
    CommunityUpdate,
    CurrentMembership,
    MemberResponse,
    MembershipStateResponse,
    PremiumPermissionUpdate,
    RoleUpdate,
    SubscriptionResponse,
)
from .post import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    PostCreate,
    PostResponse,
    PostUpdate,
    ReactionResponse,
)
from .users import CreatorDashboard, DashboardCommunity, SearchResults

__all__ = [
    "AccountRegister", "AccountResponse", "LoginRequest", "ProfileUpdate",
    "PublicProfile", "TokenResponse",
    "CommunityCreate", "CommunityDetail", "CommunityResponse", "CommunityUpdate",
    "CurrentMembership", "MemberResponse", "MembershipStateResponse",
    "PremiumPermissionUpdate", "RoleUpdate", "SubscriptionResponse",
    "CommentCreate", "CommentResponse", "CommentUpdate",
    "PostCreate", "PostResponse", "PostUpdate", "ReactionResponse",
    "CreatorDashboard", "DashboardCommunity", "SearchResults",
]
