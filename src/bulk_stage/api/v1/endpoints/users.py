# src/bulk_stage/api/v1/endpoints/users.py
"""Profile, feed, dashboard and public account endpoints."""

from __future__ import annotations

from fastapi import APIRouter, File, UploadFile

from bulk_stage.api.v1.dependencies import (
    CurrentAccountDep,
    MediaStoreDep,
    OptionalAccountDep,
    SessionDep,
    raise_for_decision,
    read_image,
    viewer_id,
)
from bulk_stage.core.errors import BulkStageError
from bulk_stage.core.settings import settings
from bulk_stage.models import Account, Community
from bulk_stage.schemas.account import AccountResponse, ProfileUpdate, PublicProfile
from bulk_stage.schemas.community import CommunityResponse
from bulk_stage.schemas.post import PostResponse
from bulk_stage.schemas.users import CreatorDashboard, DashboardCommunity
from bulk_stage.services import accounts
from bulk_stage.services.authorization import Action, authorize
from bulk_stage.services.communities import CommunityService
from bulk_stage.services.content import ContentService, to_post_response
from bulk_stage.services.identity import IdentityContextResolver
from bulk_stage.services.media import cleanup_media
from bulk_stage.services.visibility import ViewMode, community_gate

router = APIRouter(tags=["users"])


@router.get("/me/profile", response_model=AccountResponse)
async def get_my_profile(current_account: CurrentAccountDep) -> Account:
    """Return the authenticated account."""
    return current_account


@router.put("/me/profile", response_model=AccountResponse)
async def update_my_profile(
    payload: ProfileUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Account:
    """Update handle, display name or bio."""
    return accounts.update_profile(db, current_account, payload)


@router.patch("/me/avatar", response_model=AccountResponse)
async def upload_avatar(
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
    image: UploadFile = File(...),
) -> Account:
    """Upload or replace the avatar."""
    data = await read_image(image)
    stored = await media.store(
        data,
        folder=settings.media_folder_avatars,
        filename=image.filename or f"avatar-{current_account.id}",
        content_type=image.content_type or "application/octet-stream",
    )
    try:
        replaced = accounts.set_avatar(db, current_account, stored)
    except BulkStageError:
        await cleanup_media(media, [stored.reference])
        raise
    await cleanup_media(media, [replaced])
    return current_account


@router.delete("/me/avatar", response_model=AccountResponse)
async def delete_avatar(
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> Account:
    """Remove the avatar."""
    replaced = accounts.set_avatar(db, current_account, None)
    await cleanup_media(media, [replaced])
    return current_account


@router.get("/me/feed", response_model=list[PostResponse])
async def get_my_feed(
    current_account: CurrentAccountDep,
    db: SessionDep,
    limit: int = settings.listing_default_limit,
    offset: int = 0,
) -> list[PostResponse]:
    """Newest posts from the communities the account belongs to."""
    views = ContentService(db).feed(current_account.id, limit=limit, offset=offset)
    return [to_post_response(view) for view in views]


@router.get("/me/dashboard", response_model=CreatorDashboard)
async def get_my_dashboard(
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> CreatorDashboard:
    """Counters for every community the account created (elevated accounts only)."""
    ctx = IdentityContextResolver(db).for_account(current_account.id)
    raise_for_decision(authorize(Action.VIEW_CREATOR_DASHBOARD, ctx))
    stats = CommunityService(db).dashboard(current_account.id)
    return CreatorDashboard(
        total_communities_created=len(stats),
        communities=[
            DashboardCommunity(
                id=item.community.id,
                name=item.community.name,
                description=item.community.description,
                is_public=item.community.is_public,
                logo_url=item.community.logo_url,
                banner_url=item.community.banner_url,
                created_at=item.community.created_at,
                member_count=item.member_count,
                post_count=item.post_count,
                total_likes=item.total_likes,
                total_comments=item.total_comments,
                premium_subscribers=item.premium_subscribers,
            )
            for item in stats
        ],
    )


@router.get("/users/{account_id}/profile", response_model=PublicProfile)
async def get_public_profile(account_id: int, db: SessionDep) -> PublicProfile:
    """Public profile with activity counters."""
    account = accounts.get_account(db, account_id)
    profile = PublicProfile.model_validate(account)
    return profile.model_copy(update=accounts.profile_counters(db, account.id))


@router.get("/users/{account_id}/posts", response_model=list[PostResponse])
async def get_account_posts(
    account_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
    limit: int = settings.listing_default_limit,
    offset: int = 0,
) -> list[PostResponse]:
    """Posts by an account, limited to what the requester may list."""
    accounts.get_account(db, account_id)
    requester_id = viewer_id(current_account)
    views = ContentService(db).list_author_posts(
        requester_id, account_id, limit=limit, offset=offset
    )
    return [to_post_response(view) for view in views]


@router.get("/users/{account_id}/communities", response_model=list[CommunityResponse])
async def get_account_communities(
    account_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
) -> list[Community]:
    """Communities an account belongs to, hiding private ones from outsiders."""
    accounts.get_account(db, account_id)
    requester_id = viewer_id(current_account)
    resolver = IdentityContextResolver(db)
    visible: list[Community] = []
    for community in CommunityService(db).communities_of(account_id):
        _, ctx = resolver.for_community(requester_id, community.id)
        if community_gate(ctx, ViewMode.LISTING):
            visible.append(community)
    return visible
