# src/bulk_stage/api/v1/endpoints/search.py
"""Global search endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query

from bulk_stage.api.v1.dependencies import OptionalAccountDep, SessionDep, viewer_id
from bulk_stage.core.settings import settings
from bulk_stage.schemas.account import PublicProfile
from bulk_stage.schemas.community import CommunityResponse
from bulk_stage.schemas.users import SearchResults
from bulk_stage.services.content import to_post_response
from bulk_stage.services.search import run_search

router = APIRouter(prefix="/search", tags=["search"])


@router.get("", response_model=SearchResults)
async def search(
    q: Annotated[str, Query(min_length=settings.search_min_length, max_length=100)],
    current_account: OptionalAccountDep,
    db: SessionDep,
) -> SearchResults:
    """Search public communities, their posts and accounts by substring."""
    requester_id = viewer_id(current_account)
    hits = run_search(db, requester_id, q, limit=settings.search_result_limit)
    return SearchResults(
        query=q,
        communities=[CommunityResponse.model_validate(c) for c in hits.communities],
        posts=[to_post_response(view) for view in hits.posts],
        users=[PublicProfile.model_validate(a) for a in hits.accounts],
    )
