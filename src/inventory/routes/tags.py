from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.inventory.db import get_session
from src.inventory.responses import ApiResponse, success_envelope
from src.inventory.schemas import TagSuggestion, TagVocabulary
from src.inventory.services.tags import SUGGESTION_LIMIT, tag_suggestions, tag_vocabulary

router = APIRouter(tags=["Tags"])


# PUBLIC_INTERFACE
@router.get("/tags", summary="Tag vocabulary", response_model=ApiResponse[TagVocabulary])
async def list_tags_endpoint(session: AsyncSession = Depends(get_session)) -> ApiResponse[TagVocabulary]:
    """All tag keys with their known values, plus the 20 most used key/value pairs."""
    return success_envelope(TagVocabulary(**await tag_vocabulary(session)))


# PUBLIC_INTERFACE
@router.get("/tags/suggestions", summary="Tag autocomplete", response_model=ApiResponse[List[TagSuggestion]])
async def tag_suggestions_endpoint(
    q: Optional[str] = Query(None, description="Text contained in the tag key or value"),
    limit: int = Query(SUGGESTION_LIMIT, ge=1, le=50, description="Maximum number of suggestions"),
    session: AsyncSession = Depends(get_session),
) -> ApiResponse[List[TagSuggestion]]:
    """Suggest ``key:value`` pairs for a filter box. Exact key or value matches are listed first."""
    rows = await tag_suggestions(session, q, limit=limit)
    return success_envelope([TagSuggestion(**row) for row in rows])
