# src/bulk_stage/api/v1/endpoints/posts.py
"""Post, comment and reaction endpoints."""

from __future__ import annotations

from collections.abc import Sequence

from fastapi import APIRouter, File, Response, UploadFile, status

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
from bulk_stage.models import Comment
from bulk_stage.schemas.post import (
    CommentCreate,
    CommentResponse,
    CommentUpdate,
    PostResponse,
    PostUpdate,
    ReactionResponse,
)
from bulk_stage.services.content import ContentService, to_post_response
from bulk_stage.services.decisions import Deny
from bulk_stage.services.media import cleanup_media

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
) -> PostResponse:
    """Get a single post. Premium posts need premium access."""
    view = raise_for_decision(ContentService(db).get_post(viewer_id(current_account), post_id))
    return to_post_response(view)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    payload: PostUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> PostResponse:
    """Edit title or content (author only)."""
    service = ContentService(db)
    raise_for_decision(service.update_post(current_account.id, post_id, payload))
    return to_post_response(raise_for_decision(service.get_post(current_account.id, post_id)))


@router.delete(
    "/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_post(
    post_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> Response:
    """Delete a post with its comments and reactions."""
    refs = raise_for_decision(ContentService(db).delete_post(current_account.id, post_id))
    await cleanup_media(media, refs)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/{post_id}/image", response_model=PostResponse)
async def upload_post_image(
    post_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
    image: UploadFile = File(...),
) -> PostResponse:
    """Attach or replace the post image (author only)."""
    service = ContentService(db)
    raise_for_decision(service.authorize_post_edit(current_account.id, post_id))
    data = await read_image(image)
    stored = await media.store(
        data,
        folder=settings.media_folder_posts,
        filename=image.filename or f"post-{post_id}",
        content_type=image.content_type or "application/octet-stream",
    )
    try:
        result = service.set_post_image(current_account.id, post_id, stored)
    except BulkStageError:
        await cleanup_media(media, [stored.reference])
        raise
    if isinstance(result, Deny):
        await cleanup_media(media, [stored.reference])
        raise_for_decision(result)
    _, replaced = result
    await cleanup_media(media, [replaced])
    return to_post_response(raise_for_decision(service.get_post(current_account.id, post_id)))


@router.delete("/{post_id}/image", response_model=PostResponse)
async def delete_post_image(
    post_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
    media: MediaStoreDep,
) -> PostResponse:
    """Remove the post image (author only)."""
    service = ContentService(db)
    _, replaced = raise_for_decision(service.set_post_image(current_account.id, post_id, None))
    await cleanup_media(media, [replaced])
    return to_post_response(raise_for_decision(service.get_post(current_account.id, post_id)))


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    post_id: int,
    current_account: OptionalAccountDep,
    db: SessionDep,
) -> Sequence[Comment]:
    """List comments of a post the requester can read."""
    return raise_for_decision(
        ContentService(db).list_comments(viewer_id(current_account), post_id)
    )


@router.post(
    "/{post_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    post_id: int,
    payload: CommentCreate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Comment:
    """Comment on a post (members only)."""
    return raise_for_decision(
        ContentService(db).create_comment(current_account.id, post_id, payload)
    )


@router.post("/{post_id}/react", response_model=ReactionResponse)
async def toggle_reaction(
    post_id: int,
    response: Response,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> ReactionResponse:
    """Like or unlike a post. Answers 201 when the like was added."""
    reacted, like_count = raise_for_decision(
        ContentService(db).toggle_reaction(current_account.id, post_id)
    )
    response.status_code = status.HTTP_201_CREATED if reacted else status.HTTP_200_OK
    return ReactionResponse(post_id=post_id, reacted=reacted, like_count=like_count)
