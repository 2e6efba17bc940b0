"""Single post lookup."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from civic_stage.api.v1.dependencies import AvailableContextDep
from civic_stage.schemas import ContentItem

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("/{post_id}", response_model=ContentItem)
async def get_post(post_id: str, context: AvailableContextDep) -> ContentItem:
    """Return one cached post by id."""
    item = context.cache.get_post(post_id)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Post not found")
    return item
