# src/bulk_stage/api/v1/endpoints/comments.py
"""Comment edit and delete endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Response, status

from bulk_stage.api.v1.dependencies import CurrentAccountDep, SessionDep, raise_for_decision
from bulk_stage.models import Comment
from bulk_stage.schemas.post import CommentResponse, CommentUpdate
from bulk_stage.services.content import ContentService

router = APIRouter(prefix="/comments", tags=["comments"])


@router.put("/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Comment:
    """Edit a comment (author only)."""
    return raise_for_decision(
        ContentService(db).update_comment(current_account.id, comment_id, payload)
    )


@router.delete(
    "/{comment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def delete_comment(
    comment_id: int,
    current_account: CurrentAccountDep,
    db: SessionDep,
) -> Response:
    """Delete a comment (author, creator or moderator)."""
    raise_for_decision(ContentService(db).delete_comment(current_account.id, comment_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
