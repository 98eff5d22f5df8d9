"""Data models for the record store query layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class QueryError(Exception):
    """Raised by a record source when a query cannot be executed."""


@dataclass(frozen=True)
class RecordId:
    """Opaque, structured identity assigned to a stored record.

    Plain strings or numbers in an ``_id`` slot are treated as placeholders
    by the treatment merger; only structured identities are trusted.
    """

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass
class Query:
    """A filter/sort/limit request handed to a record source.

    ``find`` maps a field name to either a literal (equality) or an operator
    mapping using ``$gte``, ``$eq`` or ``$in``. ``sort`` maps a field name to
    ``1`` (ascending) or ``-1`` (descending). ``count`` caps the result size
    after sorting.
    """

    find: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, int] = field(default_factory=dict)
    count: int | None = None
