"""Response schemas for the read-only feed endpoints."""

from pydantic import BaseModel

from civic_stage.schemas.post import ContentItem


class TrendingTag(BaseModel):
    tag: str
    count: int


class TrendingOut(BaseModel):
    """Trending hashtags and the hottest posts of the current feed."""

    tags: list[TrendingTag]
    hot: list[ContentItem]
