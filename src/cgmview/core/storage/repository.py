"""Record repository — stores and fetches encrypted monitoring documents.

The repository mediates between plain document dicts and the SQLite
``records`` table, using FieldEncryptor for the document body. Identities
are issued here as ``RecordId`` values.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import Any, Iterable, Sequence

from cgmview.core.storage.database import COLLECTIONS, RecordDatabase
from cgmview.core.storage.encryption import FieldEncryptor
from cgmview.core.storage.models import RecordId
from cgmview.core.times import parse_mills

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


# Field each collection is windowed on; stored in clear as ``records.mills``
TIME_FIELDS = {
    "entries": "date",
    "treatments": "created_at",
    "profile": "created_at",
    "devicestatus": "created_at",
}


def _document_mills(collection: str, document: dict[str, Any]) -> int | None:
    value = document.get(TIME_FIELDS[collection])
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    return parse_mills(value)


class RecordRepository:
    """Insert/fetch repository for encrypted record documents.

    Usage::

        db = RecordDatabase(":memory:")
        db.initialize()
        repo = RecordRepository(db, FieldEncryptor(key))

        record_id = repo.insert("treatments", {"eventType": "Note", "created_at": "..."})
        docs = repo.fetch("treatments", since_mills=cutoff)
    """

    def __init__(self, database: RecordDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise RepositoryError(
                f"Unknown collection {collection!r}; expected one of {COLLECTIONS}"
            )

    def insert(self, collection: str, document: dict[str, Any]) -> RecordId:
        """Persist one document and return its new identity.

        Any ``_id`` already on the document is discarded.
        """
        self._check_collection(collection)
        body = {k: v for k, v in document.items() if k != "_id"}
        record_id = RecordId(str(uuid.uuid4()))
        event_type = body.get("eventType")

        self._db.connection.execute(
            """INSERT INTO records (id, collection, mills, event_type, doc_enc)
               VALUES (?, ?, ?, ?, ?)""",
            (
                record_id.value,
                collection,
                _document_mills(collection, body),
                event_type if isinstance(event_type, str) else None,
                self._enc.encrypt(body),
            ),
        )
        self._db.connection.commit()
        logger.debug("Stored %s record %s", collection, record_id)
        return record_id

    def insert_many(self, collection: str, documents: Iterable[dict[str, Any]]) -> list[RecordId]:
        return [self.insert(collection, doc) for doc in documents]

    def fetch(
        self,
        collection: str,
        *,
        since_mills: int | None = None,
        event_types: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return decrypted documents, each carrying its ``_id``.

        Args:
            collection: One of the store's collections.
            since_mills: If given, only rows whose indexed timestamp is at or
                after this bound are read.
            event_types: If given, only rows whose ``eventType`` is one of these
                are read.
        """
        self._check_collection(collection)
        sql = "SELECT id, doc_enc FROM records WHERE collection = ?"
        params: list[Any] = [collection]
        if since_mills is not None:
            sql += " AND mills >= ?"
            params.append(since_mills)
        if event_types is not None:
            if not event_types:
                return []
            sql += f" AND event_type IN ({', '.join('?' * len(event_types))})"
            params.extend(event_types)
        sql += " ORDER BY rowid"

        documents: list[dict[str, Any]] = []
        for row in self._db.connection.execute(sql, params).fetchall():
            doc = self._enc.decrypt(row["doc_enc"]) or {}
            doc["_id"] = RecordId(row["id"])
            documents.append(doc)
        return documents

    def count(self, collection: str) -> int:
        self._check_collection(collection)
        row = self._db.connection.execute(
            "SELECT COUNT(*) FROM records WHERE collection = ?", (collection,)
        ).fetchone()
        return row[0]
