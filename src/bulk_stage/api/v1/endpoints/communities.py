# src/bulk_stage/api/v1/endpoints/communities.py
"""Community, membership and subscription endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, File, Response, UploadFile, status
from sqlalchemy.orm import Session

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
from bulk_stage.schemas.community import (
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
from bulk_stage.schemas.post import PostCreate, PostResponse
from bulk_stage.services.communities import CommunityService, MediaSlot
from bulk_stage.services.content import ContentService, PostView, to_post_response
from bulk_stage.services.decisions import Deny, Ok
from bulk_stage.services.identity import IdentityContextResolver
from bulk_stage.services.media import MediaStore, cleanup_media
from bulk_stage.services.membership import Transition, apply_membership_transition
from bulk_stage.services.premium import PremiumLedger
from bulk_stage.services.visibility import ViewMode, community_gate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/communities", tags=["communities"])


def _membership_response(result: Ok) -> MembershipStateResponse:
    state = result.state
    return MembershipStateResponse(
        account_id=state.account_id,
        community_id=state.community_id,
        role=state.role,
        can_publish_premium=state.can_publish_premium,
        changed=result.changed,
    )


def _transition(
    db: Session,
    account: Account,
    community_id: int,
    transition: Transition,
    target_account_id: int | None = None,
) -> MembershipStateResponse:
    _, ctx = IdentityContextResolver(db).for_community(account.id, community_id)
    result = raise_for_decision(
        apply_membership_transition(db, transition, ctx, target_account_id)
    )
    return _membership_response(result)


@router.get("/", response_model=list[CommunityResponse])
async def list_communities(
    db: SessionDep,
    limit: int = settings.listing_default_limit,
    offset: int = 0,
) -> list[Community]:
    """List public communities, newest first."""
    return list(CommunityService(db).list_public(limit=limit, offset=offset))


@router.post("/", response_model=CommunityResponse, status_code=status.HTTP_201_CREATED)
async def create_community(
    payload: CommunityCreate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Community:
    """Create a community; the requester becomes its creator."""
    return CommunityService(db).create(current_account.id, payload)


@router.get("/{community_id}", response_model=CommunityDetail)
async def get_community(
    community_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
) -> CommunityDetail:
    """Get a community; private ones are visible to members only."""
    account_id = viewer_id(current_account)
    community, ctx = IdentityContextResolver(db).for_community(account_id, community_id)
    raise_for_decision(community_gate(ctx, ViewMode.DETAIL))

    service = CommunityService(db)
    membership = None
    if ctx.authenticated:
        membership = CurrentMembership(
            is_member=ctx.is_member,
            role=ctx.role,
            can_publish_premium=ctx.can_publish_premium,
            is_subscribed=ctx.is_premium_unlocked(community.id),
        )
    return CommunityDetail(
        **CommunityResponse.model_validate(community).model_dump(),
        member_count=service.member_count(community.id),
        post_count=service.post_count(community.id),
        current_membership=membership,
    )


@router.put("/{community_id}", response_model=CommunityResponse)
async def update_community(
    community_id: int,
    payload: CommunityUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Community:
    """Update the community profile (creator only)."""
    return raise_for_decision(CommunityService(db).update(current_account.id, community_id, payload))


@router.delete(
    "/{community_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_community(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> Response:
    """Delete a community and everything in it (creator only)."""
    result = raise_for_decision(CommunityService(db).delete(current_account.id, community_id))
    await cleanup_media(media, result.media_refs)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- membership --------------------------------------------------------------


@router.post(
    "/{community_id}/members",
    response_model=MembershipStateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def join_community(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> MembershipStateResponse:
    """Join a community as a member."""
    return _transition(db, current_account, community_id, Transition.join())


@router.delete(
    "/{community_id}/members",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def leave_community(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Response:
    """Leave a community. The creator cannot leave."""
    _transition(db, current_account, community_id, Transition.leave())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{community_id}/members", response_model=list[MemberResponse])
async def list_members(
    community_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
    limit: int = settings.listing_default_limit,
    offset: int = 0,
) -> list[MemberResponse]:
    """List members. Private communities answer 404 to outsiders."""
    account_id = viewer_id(current_account)
    _, ctx = IdentityContextResolver(db).for_community(account_id, community_id)
    raise_for_decision(community_gate(ctx, ViewMode.LISTING))
    rows = CommunityService(db).list_members(community_id, limit=limit, offset=offset)
    return [
        MemberResponse(
            account_id=account.id,
            handle=account.handle,
            display_name=account.display_name,
            avatar_url=account.avatar_url,
            role=membership.role,
            can_publish_premium=membership.can_publish_premium,
            joined_at=membership.joined_at,
        )
        for membership, account in rows
    ]


@router.patch(
    "/{community_id}/members/{account_id}/role",
    response_model=MembershipStateResponse,
)
async def set_member_role(
    community_id: int,
    account_id: int,
    payload: RoleUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> MembershipStateResponse:
    """Promote or demote a member (creator only)."""
    return _transition(
        db, current_account, community_id, Transition.set_role(payload.role), account_id
    )


@router.patch(
    "/{community_id}/members/{account_id}/premium-permission",
    response_model=MembershipStateResponse,
)
async def set_premium_permission(
    community_id: int,
    account_id: int,
    payload: PremiumPermissionUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> MembershipStateResponse:
    """Allow or stop a moderator publishing premium posts (creator only)."""
    return _transition(
        db,
        current_account,
        community_id,
        Transition.set_premium_publish(payload.can_publish_premium),
        account_id,
    )


@router.delete(
    "/{community_id}/members/{account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_member(
    community_id: int,
    account_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Response:
    """Remove a member (creator only)."""
    _transition(db, current_account, community_id, Transition.remove(), account_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -- media ---------------------------------------------------------------------


async def _replace_media(
    slot: MediaSlot,
    community_id: int,
    image: UploadFile | None,
    account: Account,
    db: Session,
    media: MediaStore,
) -> Community:
    service = CommunityService(db)
    raise_for_decision(service.authorize_update(account.id, community_id))

    stored = None
    if image is not None:
        data = await read_image(image)
        stored = await media.store(
            data,
            folder=f"{settings.media_folder_communities}/{community_id}",
            filename=image.filename or slot.value,
            content_type=image.content_type or "application/octet-stream",
        )

    orphan = [stored.reference] if stored else []
    try:
        result = service.set_media(account.id, community_id, slot, stored)
    except BulkStageError:
        await cleanup_media(media, orphan)
        raise
    if isinstance(result, Deny):
        await cleanup_media(media, orphan)
        raise_for_decision(result)

    community, replaced = result
    await cleanup_media(media, [replaced])
    return community


@router.patch("/{community_id}/logo", response_model=CommunityResponse)
async def upload_logo(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
    image: UploadFile = File(...),
) -> Community:
    """Upload or replace the community logo."""
    return await _replace_media(MediaSlot.LOGO, community_id, image, current_account, db, media)


@router.delete("/{community_id}/logo", response_model=CommunityResponse)
async def delete_logo(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> Community:
    """Remove the community logo."""
    return await _replace_media(MediaSlot.LOGO, community_id, None, current_account, db, media)


@router.patch("/{community_id}/banner", response_model=CommunityResponse)
async def upload_banner(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
    image: UploadFile = File(...),
) -> Community:
    """Upload or replace the community banner."""
    return await _replace_media(MediaSlot.BANNER, community_id, image, current_account, db, media)


@router.delete("/{community_id}/banner", response_model=CommunityResponse)
async def delete_banner(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> Community:
    """Remove the community banner."""
    return await _replace_media(MediaSlot.BANNER, community_id, None, current_account, db, media)


# -- premium subscription ----------------------------------------------------


@router.post("/{community_id}/subscription", response_model=SubscriptionResponse)
async def subscribe(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> SubscriptionResponse:
    """Unlock premium content; joins the community as a member if needed."""
    change = PremiumLedger(db).subscribe(current_account.id, community_id)
    return SubscriptionResponse(**asdict(change))


@router.delete("/{community_id}/subscription", response_model=SubscriptionResponse)
async def unsubscribe(
    community_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> SubscriptionResponse:
    """Drop the premium unlock; membership is kept."""
    change = PremiumLedger(db).unsubscribe(current_account.id, community_id)
    return SubscriptionResponse(**asdict(change))


# -- posts -------------------------------------------------------------------


@router.get("/{community_id}/posts", response_model=list[PostResponse])
async def list_community_posts(
    community_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
    limit: int = settings.listing_default_limit,
    offset: int = 0,
) -> list[PostResponse]:
    """List posts; premium bodies are redacted for viewers without access."""
    account_id = viewer_id(current_account)
    views: list[PostView] = raise_for_decision(
        ContentService(db).list_community_posts(account_id, community_id, limit=limit, offset=offset)
    )
    return [to_post_response(view) for view in views]


@router.post(
    "/{community_id}/posts",
    response_model=PostResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_post(
    community_id: int,
    payload: PostCreate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> PostResponse:
    """Publish a post (creator or moderators; premium needs extra permission)."""
    service = ContentService(db)
    post = raise_for_decision(service.create_post(current_account.id, community_id, payload))
    return to_post_response(raise_for_decision(service.get_post(current_account.id, post.id)))
