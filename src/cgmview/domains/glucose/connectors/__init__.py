"""Record source connectors — the query surface the snapshot loader consumes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from cgmview.core.storage.models import Query


@runtime_checkable
class RecordSource(Protocol):
    """One queryable collection of monitoring documents.

    Implementations raise ``QueryError`` (or any exception) when the query
    itself cannot run; an empty list is a normal result.
    """

    async def list(self, query: Query) -> list[dict[str, Any]]:
        """Return the documents matching ``query``, sorted and capped."""
        ...


@runtime_checkable
class ProfileSource(Protocol):
    """Profile-definition store."""

    async def last(self) -> list[dict[str, Any]]:
        """Return the most recent profile candidates (possibly empty)."""
        ...


@dataclass
class DataContext:
    """Bundle of the four collaborators one refresh queries."""

    entries: RecordSource
    treatments: RecordSource
    profile: ProfileSource
    devicestatus: RecordSource
