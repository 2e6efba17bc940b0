# src/civic_stage/schemas/post.py
"""Content item (post) schemas mirrored from the document store."""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from civic_stage.schemas.common import SnapshotModel

NATIONAL_DIVISION = "National"
ALL_DISTRICTS = "All"


class PostType(str, Enum):
    """Kind of content item a citizen can publish."""

    ISSUE = "Issue"
    PETITION = "Petition"
    POLL = "Poll"


class PostCategory(str, Enum):
    """Topic category, optionally assigned by text analysis."""

    INFRASTRUCTURE = "Infrastructure"
    EDUCATION = "Education"
    ECONOMY = "Economy"
    CORRUPTION = "Corruption"
    HEALTH = "Health"
    ENVIRONMENT = "Environment"
    OTHER = "Other"

    @classmethod
    def parse(cls, value: object) -> PostCategory:
        """Match ``value`` case-insensitively, falling back to ``OTHER``."""
        if isinstance(value, str):
            wanted = value.strip().upper()
            for member in cls:
                if member.value.upper() == wanted:
                    return member
        return cls.OTHER


class Comment(SnapshotModel):
    """A single comment appended to a content item."""

    id: str
    author_id: str = ""
    author: str = ""
    content: str = ""
    timestamp: int = 0


class Solution(SnapshotModel):
    """A proposed solution attached to an issue."""

    id: str
    author: str = ""
    author_id: str | None = None
    content: str = ""
    upvotes: int = 0
    ai_suggested: bool = False


class PollOption(SnapshotModel):
    """One selectable answer of a poll."""

    id: str
    text: str = ""
    votes: int = 0


class ContentItem(SnapshotModel):
    """Latest known snapshot of a post.

    Every field carries a default so that partially written documents still
    validate and consumers never branch on missing voter lists, comments or
    hashtags.
    """

    id: str
    type: PostType = PostType.ISSUE
    title: str = ""
    body: str = ""
    author_id: str = ""
    author: str = ""
    category: PostCategory = PostCategory.OTHER
    timestamp: int = 0

    upvotes: int = 0
    downvotes: int = 0
    shares: int = 0
    upvoters: list[str] = Field(default_factory=list)
    downvoters: list[str] = Field(default_factory=list)

    division: str = NATIONAL_DIVISION
    district: str = ALL_DISTRICTS
    hashtags: list[str] = Field(default_factory=list)

    comments: list[Comment] = Field(default_factory=list)
    solutions: list[Solution] = Field(default_factory=list)
    poll_options: list[PollOption] = Field(default_factory=list)
    target_signatures: int | None = None
    current_signatures: int | None = None

    ai_analysis: str | None = None
