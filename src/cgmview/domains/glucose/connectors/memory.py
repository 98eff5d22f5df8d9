"""In-memory record sources. Always available; used for tests and demos."""

from __future__ import annotations

from typing import Any, Iterable

from cgmview.core.storage.models import Query
from cgmview.core.storage.query import apply_query
from cgmview.domains.glucose.connectors import DataContext


class InMemoryRecordSource:
    """Evaluates queries over a fixed list of documents.

    Documents are copied on the way in and on the way out, so callers can
    mutate results freely.
    """

    def __init__(self, documents: Iterable[dict[str, Any]] = ()) -> None:
        self._documents = [dict(doc) for doc in documents]
        self.queries: list[Query] = []

    def add(self, document: dict[str, Any]) -> None:
        self._documents.append(dict(document))

    async def list(self, query: Query) -> list[dict[str, Any]]:
        self.queries.append(query)
        return [dict(doc) for doc in apply_query(self._documents, query)]


class InMemoryProfileSource:
    def __init__(self, profiles: Iterable[dict[str, Any]] = ()) -> None:
        self._profiles = [dict(p) for p in profiles]

    async def last(self) -> list[dict[str, Any]]:
        return [dict(p) for p in self._profiles]


def memory_context(
    *,
    entries: Iterable[dict[str, Any]] = (),
    treatments: Iterable[dict[str, Any]] = (),
    profiles: Iterable[dict[str, Any]] = (),
    devicestatus: Iterable[dict[str, Any]] = (),
) -> DataContext:
    """Build a DataContext backed entirely by in-memory sources."""
    return DataContext(
        entries=InMemoryRecordSource(entries),
        treatments=InMemoryRecordSource(treatments),
        profile=InMemoryProfileSource(profiles),
        devicestatus=InMemoryRecordSource(devicestatus),
    )
