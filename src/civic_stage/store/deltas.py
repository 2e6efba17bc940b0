"""Field-level write operations understood by the document store.

A delta describes *how* a field changes rather than its new value, so two
sessions editing the same document concurrently do not overwrite each other's
votes or comments. The store applies deltas against the committed value inside
its write transaction.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

__all__ = ["ArrayRemove", "ArrayUnion", "FieldDelta", "Increment", "apply_fields"]


class FieldDelta:
    """Base class for deltas; subclasses implement :meth:`apply`."""

    def apply(self, current: Any) -> Any:
        raise NotImplementedError


@dataclass(frozen=True)
class Increment(FieldDelta):
    """Add ``amount`` to a numeric field, treating a missing field as zero."""

    amount: int | float = 1

    def apply(self, current: Any) -> Any:
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + self.amount


@dataclass(frozen=True, init=False)
class ArrayUnion(FieldDelta):
    """Append each value not already present in an array field."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", values)

    def apply(self, current: Any) -> Any:
        result = list(current) if isinstance(current, list) else []
        for value in self.values:
            if value not in result:
                result.append(value)
        return result


@dataclass(frozen=True, init=False)
class ArrayRemove(FieldDelta):
    """Remove every occurrence of each value from an array field."""

    values: tuple[Any, ...]

    def __init__(self, *values: Any) -> None:
        object.__setattr__(self, "values", values)

    def apply(self, current: Any) -> Any:
        if not isinstance(current, list):
            return []
        return [item for item in current if item not in self.values]


def apply_fields(data: Mapping[str, Any], fields: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with plain values and deltas from ``fields`` applied."""
    result = dict(data)
    for key, value in fields.items():
        if isinstance(value, FieldDelta):
            result[key] = value.apply(result.get(key))
        else:
            result[key] = value
    return result
