"""Shared Pydantic base for entities mirrored from the document store."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator


class SnapshotModel(BaseModel):
    """Base for models validated from raw document data.

    Explicit ``null`` values are treated as absent so that field defaults
    (empty lists, sentinels) apply.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def to_document(self) -> dict[str, Any]:
        """Return the JSON-compatible document body, without the ``id`` key."""
        return self.model_dump(mode="json", exclude={"id"})
