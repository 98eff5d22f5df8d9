"""Record sources backed by the encrypted SQLite record store."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from cgmview.core.storage.database import DatabaseError
from cgmview.core.storage.encryption import EncryptionError
from cgmview.core.storage.models import Query, QueryError
from cgmview.core.storage.query import apply_query, lower_bound_mills
from cgmview.core.storage.repository import TIME_FIELDS, RecordRepository, RepositoryError
from cgmview.domains.glucose.connectors import DataContext

logger = logging.getLogger(__name__)

_STORE_ERRORS = (sqlite3.Error, DatabaseError, EncryptionError, RepositoryError)


def _event_types(query: Query) -> list[str] | None:
    """Return the ``eventType`` values the query admits, if it names them."""
    condition = query.find.get("eventType")
    if isinstance(condition, str):
        return [condition]
    if not isinstance(condition, dict):
        return None
    if isinstance(condition.get("$eq"), str):
        return [condition["$eq"]]
    candidates = condition.get("$in")
    if isinstance(candidates, (list, tuple)) and all(isinstance(c, str) for c in candidates):
        return list(candidates)
    return None


class SQLiteRecordSource:
    """RecordSource over one collection of a RecordRepository.

    The ``$gte`` bound on the collection's time field and any ``eventType``
    filter are pushed down to the indexed ``mills`` and ``event_type``
    columns. The full query is still evaluated in process on what comes back.
    """

    def __init__(self, repository: RecordRepository, collection: str) -> None:
        self._repo = repository
        self._collection = collection
        self._time_field = TIME_FIELDS.get(collection, "created_at")

    async def list(self, query: Query) -> list[dict[str, Any]]:
        since = lower_bound_mills(query, self._time_field)
        try:
            documents = self._repo.fetch(
                self._collection,
                since_mills=since,
                event_types=_event_types(query),
            )
        except _STORE_ERRORS as exc:
            raise QueryError(f"{self._collection} query failed: {exc}") from exc
        return apply_query(documents, query)


class SQLiteProfileSource:
    """ProfileSource returning the most recently created profile document."""

    def __init__(self, repository: RecordRepository) -> None:
        self._repo = repository

    async def last(self) -> list[dict[str, Any]]:
        try:
            documents = self._repo.fetch("profile")
        except _STORE_ERRORS as exc:
            raise QueryError(f"profile query failed: {exc}") from exc
        return apply_query(documents, Query(sort={"created_at": -1}, count=1))


def sqlite_context(repository: RecordRepository) -> DataContext:
    """Build a DataContext whose sources all read from ``repository``."""
    logger.debug("Building SQLite data context")
    return DataContext(
        entries=SQLiteRecordSource(repository, "entries"),
        treatments=SQLiteRecordSource(repository, "treatments"),
        profile=SQLiteProfileSource(repository),
        devicestatus=SQLiteRecordSource(repository, "devicestatus"),
    )
