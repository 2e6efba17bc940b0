"""Notification schema for the per-user notification feed."""

from enum import Enum

from civic_stage.schemas.common import SnapshotModel


class NotificationType(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    ALERT = "alert"


class Notification(SnapshotModel):
    """A message addressed to a single user."""

    id: str
    user_id: str = ""
    type: NotificationType = NotificationType.INFO
    message: str = ""
    read: bool = False
    timestamp: int = 0
