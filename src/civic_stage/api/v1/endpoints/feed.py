"""Feed endpoints projecting the cached posts."""

from __future__ import annotations

from fastapi import APIRouter, Query

from civic_stage.api.v1.dependencies import AvailableContextDep
from civic_stage.schemas import ContentItem, TrendingOut, TrendingTag
from civic_stage.sync.projection import ALL, FeedFilter, hot_topics, project_feed, trending_tags

router = APIRouter(prefix="/feed", tags=["feed"])


@router.get("", response_model=list[ContentItem])
async def get_feed(
    context: AvailableContextDep,
    search: str = Query("", max_length=200),
    type: str = Query(ALL),
    division: str = Query(ALL),
    district: str = Query(ALL),
) -> list[ContentItem]:
    """Return cached posts matching the filter, newest first."""
    feed_filter = FeedFilter(search=search, type=type, division=division, district=district)
    return project_feed(context.cache.posts, feed_filter)


@router.get("/trending", response_model=TrendingOut)
async def get_trending(
    context: AvailableContextDep,
    tags: int = Query(5, ge=1, le=50),
    hot: int = Query(4, ge=1, le=50),
) -> TrendingOut:
    """Return the most used hashtags and the most discussed posts."""
    posts = context.cache.posts
    return TrendingOut(
        tags=[TrendingTag(tag=tag, count=count) for tag, count in trending_tags(posts, tags)],
        hot=hot_topics(posts, hot),
    )
