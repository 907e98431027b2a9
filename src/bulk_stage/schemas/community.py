# src/bulk_stage/schemas/community.py
"""Community and membership schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bulk_stage.models import MembershipRole


class CommunityCreate(BaseModel):
    """Schema for creating a new community."""

    name: str = Field(..., min_length=3, max_length=80)
    description: str | None = Field(None, max_length=2000)
    is_public: bool = True
    category: str | None = Field(None, max_length=60)
    primary_language: str | None = Field(None, max_length=16)
    secondary_language: str | None = Field(None, max_length=16)


class CommunityUpdate(BaseModel):
    """Partial update of the community profile."""

    name: str | None = Field(None, min_length=3, max_length=80)
    description: str | None = Field(None, max_length=2000)
    is_public: bool | None = None
    category: str | None = Field(None, max_length=60)
    primary_language: str | None = Field(None, max_length=16)
    secondary_language: str | None = Field(None, max_length=16)


class CommunityResponse(BaseModel):
    """Schema for community information returned by the API."""

    id: int
    name: str
    description: str | None
    is_public: bool
    category: str | None
    primary_language: str | None
    secondary_language: str | None
    creator_id: int
    logo_url: str | None
    banner_url: str | None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CurrentMembership(BaseModel):
    """The requester's relation to a community."""

    is_member: bool
    role: MembershipRole | None = None
    can_publish_premium: bool = False
    is_subscribed: bool = False


class CommunityDetail(CommunityResponse):
    """Community plus counters and the requester's membership."""

    member_count: int = 0
    post_count: int = 0
    current_membership: CurrentMembership | None = None


class MemberResponse(BaseModel):
    """One row of a community's member list."""

    account_id: int
    handle: str
    display_name: str
    avatar_url: str | None = None
    role: MembershipRole
    can_publish_premium: bool
    joined_at: datetime


class RoleUpdate(BaseModel):
    """New role for a member; the creator role cannot be assigned."""

    role: MembershipRole

    @field_validator("role")
    @classmethod
    def _assignable(cls, value: MembershipRole) -> MembershipRole:
        if value is MembershipRole.CREATOR:
            raise ValueError("The creator role cannot be assigned")
        return value


class PremiumPermissionUpdate(BaseModel):
    """Grant or revoke premium publishing for a moderator."""

    can_publish_premium: bool


class MembershipStateResponse(BaseModel):
    """Result of a membership transition."""

    account_id: int
    community_id: int
    role: MembershipRole | None
    can_publish_premium: bool
    changed: bool = True


class SubscriptionResponse(BaseModel):
    """Result of a premium ledger operation."""

    community_id: int
    subscribed: bool
    changed: bool
    joined: bool = False
