"""Pure projections over cached entities for display.

Nothing here touches the cache or the store; every function takes snapshots
and returns new values, so the same inputs always give the same outputs.
"""

from __future__ import annotations

import re
from collections import Counter
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from civic_stage.schemas import (
    ALL_DISTRICTS,
    NATIONAL_DIVISION,
    ContentItem,
    PostType,
    UserProfile,
)

ALL = "ALL"
ALL_FILTER_VALUE = "All"

HASHTAG_PATTERN = re.compile(r"#[\w\u0980-\u09FF]+")


@dataclass(frozen=True)
class FeedFilter:
    """Conjunctive feed filter; ``"ALL"`` disables the type, division or district check."""

    search: str = ""
    type: str = ALL
    division: str = ALL
    district: str = ALL

    def matches(self, item: ContentItem) -> bool:
        return (
            self._matches_search(item)
            and (self.type == ALL or item.type.value == self.type)
            and (
                self.division == ALL
                or item.division == self.division
                or item.division == NATIONAL_DIVISION
            )
            and (
                self.district == ALL
                or item.district == self.district
                or item.district == ALL_DISTRICTS
            )
        )

    def _matches_search(self, item: ContentItem) -> bool:
        needle = self.search.strip().lower()
        if not needle:
            return True
        return (
            needle in item.title.lower()
            or needle in item.body.lower()
            or any(needle in tag.lower() for tag in item.hashtags)
        )


def project_feed(items: Iterable[ContentItem], feed_filter: FeedFilter) -> list[ContentItem]:
    """Return the items matching ``feed_filter``, in their original order."""
    return [item for item in items if feed_filter.matches(item)]


def extract_hashtags(text: str) -> list[str]:
    """Return lowercase hashtags found in ``text``, deduplicated in first-seen order."""
    return list(dict.fromkeys(tag.lower() for tag in HASHTAG_PATTERN.findall(text)))


def trending_tags(items: Iterable[ContentItem], limit: int = 5) -> list[tuple[str, int]]:
    """Most frequent hashtags across ``items`` with their counts."""
    counts: Counter[str] = Counter()
    for item in items:
        counts.update(item.hashtags)
    return counts.most_common(limit)


def hot_topics(items: Iterable[ContentItem], limit: int = 4) -> list[ContentItem]:
    """Items ranked by upvotes plus twice their comment count."""
    return sorted(items, key=lambda item: item.upvotes + 2 * len(item.comments), reverse=True)[
        :limit
    ]


def items_of_type(items: Iterable[ContentItem], post_type: PostType) -> list[ContentItem]:
    return [item for item in items if item.type is post_type]


def filter_users(
    users: Iterable[UserProfile],
    search: str = "",
    status: str = ALL_FILTER_VALUE,
    role: str = ALL_FILTER_VALUE,
) -> list[UserProfile]:
    """Filter the admin user table by free text, account status and role."""
    needle = search.strip().lower()
    result = []
    for user in users:
        if needle and not any(
            needle in (value or "").lower() for value in (user.name, user.username, user.email)
        ):
            continue
        if status != ALL_FILTER_VALUE and user.status.value != status:
            continue
        if role != ALL_FILTER_VALUE and user.role.value.lower() != role.lower():
            continue
        result.append(user)
    return result


@dataclass(frozen=True)
class DashboardStats:
    total_users: int
    total_posts: int
    total_comments: int
    total_solutions: int
    posts_by_category: dict[str, int] = field(default_factory=dict)


def dashboard_stats(users: Sequence[UserProfile], items: Sequence[ContentItem]) -> DashboardStats:
    """Aggregate counts shown on the admin overview."""
    by_category: Counter[str] = Counter(item.category.value for item in items)
    return DashboardStats(
        total_users=len(users),
        total_posts=len(items),
        total_comments=sum(len(item.comments) for item in items),
        total_solutions=sum(len(item.solutions) for item in items),
        posts_by_category=dict(by_category),
    )


@dataclass(frozen=True)
class ActivityEntry:
    """One line of a user's history: something they posted, commented or proposed."""

    kind: str  # "post", "comment" or "solution"
    item_id: str
    item_title: str
    content: str
    timestamp: int


@dataclass(frozen=True)
class UserActivity:
    posts: list[ContentItem]
    history: list[ActivityEntry]
    impact: int


def user_activity(items: Iterable[ContentItem], user_id: str) -> UserActivity:
    """Collect what ``user_id`` contributed and the upvotes it earned."""
    posts: list[ContentItem] = []
    history: list[ActivityEntry] = []
    impact = 0
    for item in items:
        if item.author_id == user_id:
            posts.append(item)
            impact += item.upvotes
            history.append(ActivityEntry("post", item.id, item.title, item.body, item.timestamp))
        for comment in item.comments:
            if comment.author_id == user_id:
                history.append(
                    ActivityEntry("comment", item.id, item.title, comment.content, comment.timestamp)
                )
        for solution in item.solutions:
            if solution.author_id == user_id:
                impact += solution.upvotes
                # Solutions carry no timestamp of their own.
                history.append(
                    ActivityEntry("solution", item.id, item.title, solution.content, item.timestamp)
                )
    history.sort(key=lambda entry: entry.timestamp, reverse=True)
    return UserActivity(posts=posts, history=history, impact=impact)

