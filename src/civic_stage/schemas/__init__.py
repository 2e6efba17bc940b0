# src/civic_stage/schemas/__init__.py
"""Pydantic schemas for entities mirrored from the document store."""

from .feed import TrendingOut, TrendingTag
from .notification import Notification, NotificationType
from .post import (
    ALL_DISTRICTS,
    NATIONAL_DIVISION,
    Comment,
    ContentItem,
    PollOption,
    PostCategory,
    PostType,
    Solution,
)
from .site import SiteSettings
from .user import AccountStatus, Role, UserProfile

__all__ = [
    "ALL_DISTRICTS",
    "NATIONAL_DIVISION",
    "AccountStatus",
    "Comment",
    "ContentItem",
    "Notification",
    "NotificationType",
    "PollOption",
    "PostCategory",
    "PostType",
    "Role",
    "SiteSettings",
    "Solution",
    "TrendingOut",
    "TrendingTag",
    "UserProfile",
]
