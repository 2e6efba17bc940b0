"""Validation and document construction for new posts."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field

from civic_stage.core.locations import BANGLADESH_LOCATIONS, districts_of
from civic_stage.db.time import now_ms
from civic_stage.schemas import (
    ALL_DISTRICTS,
    NATIONAL_DIVISION,
    PostCategory,
    PostType,
    SiteSettings,
)
from civic_stage.services.analysis import AnalysisResult
from civic_stage.sync.projection import extract_hashtags

MIN_POLL_OPTIONS = 2


class DraftValidationError(ValueError):
    """Raised when a draft cannot be published as written."""


class Analyzer(Protocol):
    async def analyze(self, text: str) -> AnalysisResult: ...


class PostDraft(BaseModel):
    """What a citizen filled into the compose form."""

    type: PostType = PostType.ISSUE
    title: str = ""
    body: str = ""
    division: str = ""
    district: str = ""
    poll_options: list[str] = Field(default_factory=list)
    category: PostCategory | None = None
    analyze: bool = False

    model_config = ConfigDict(frozen=True)


def validate_draft(draft: PostDraft) -> list[dict[str, Any]]:
    """Check ``draft`` and return its poll options as documents.

    Raises:
        DraftValidationError: if the draft is missing a title, a poll has fewer
            than two options, or the location is unknown.
    """
    if not draft.title.strip():
        raise DraftValidationError("A title is required.")

    options: list[dict[str, Any]] = []
    if draft.type is PostType.POLL:
        texts = [text.strip() for text in draft.poll_options if text.strip()]
        if len(texts) < MIN_POLL_OPTIONS:
            raise DraftValidationError("Please provide at least 2 poll options.")
        options = [{"id": f"o{idx + 1}", "text": text, "votes": 0} for idx, text in enumerate(texts)]

    if draft.division and draft.division not in BANGLADESH_LOCATIONS:
        raise DraftValidationError(f"Unknown division: {draft.division}")
    if draft.district:
        if not draft.division:
            raise DraftValidationError("A district requires a division.")
        if draft.district not in districts_of(draft.division):
            raise DraftValidationError(
                f"Unknown district {draft.district} in division {draft.division}"
            )
    return options


async def build_post_document(
    draft: PostDraft,
    *,
    author_id: str,
    author: str,
    analyzer: Analyzer | None = None,
    site_settings: SiteSettings | None = None,
    timestamp: int | None = None,
) -> dict[str, Any]:
    """Validate ``draft`` and return the document to add to ``posts``."""
    options = validate_draft(draft)
    site_settings = site_settings or SiteSettings()

    category = draft.category or PostCategory.OTHER
    ai_analysis: str | None = None
    if draft.analyze and analyzer is not None and site_settings.ai_analysis_enabled:
        result = await analyzer.analyze(draft.body or draft.title)
        ai_analysis = result.suggestion
        if draft.category is None:
            category = result.category

    return {
        "type": draft.type.value,
        "title": draft.title.strip(),
        "body": draft.body,
        "author": author,
        "author_id": author_id,
        "category": category.value,
        "timestamp": timestamp if timestamp is not None else now_ms(),
        "upvotes": 0,
        "downvotes": 0,
        "shares": 0,
        "upvoters": [],
        "downvoters": [],
        "division": draft.division or NATIONAL_DIVISION,
        "district": draft.district or ALL_DISTRICTS,
        "hashtags": extract_hashtags(f"{draft.title} {draft.body}"),
        "ai_analysis": ai_analysis,
        "comments": [],
        "solutions": [],
        "poll_options": options,
    }
