"""Tests for RecordRepository — encrypted documents in in-memory SQLite."""

from __future__ import annotations

import pytest

from cgmview.core.storage.models import RecordId
from cgmview.core.storage.repository import RepositoryError


class TestInsert:
    def test_insert_returns_record_id(self, record_repository):
        record_id = record_repository.insert("entries", {"sgv": 120, "date": 1000})
        assert isinstance(record_id, RecordId)
        assert len(str(record_id)) == 36

    def test_existing_id_is_replaced(self, record_repository):
        record_id = record_repository.insert("treatments", {"_id": "placeholder", "eventType": "Note"})
        (doc,) = record_repository.fetch("treatments")
        assert doc["_id"] == record_id

    def test_body_is_encrypted_at_rest(self, record_repository, record_db):
        record_repository.insert("treatments", {"eventType": "Meal Bolus", "notes": "pasta"})
        row = record_db.connection.execute("SELECT doc_enc, event_type FROM records").fetchone()
        assert "pasta" not in row["doc_enc"]
        assert row["event_type"] == "Meal Bolus"

    def test_unknown_collection_raises(self, record_repository):
        with pytest.raises(RepositoryError, match="Unknown collection"):
            record_repository.insert("food", {})


class TestFetch:
    def test_round_trip(self, record_repository):
        record_repository.insert("entries", {"sgv": 120, "date": 1000})
        (doc,) = record_repository.fetch("entries")
        assert doc["sgv"] == 120
        assert doc["date"] == 1000
        assert isinstance(doc["_id"], RecordId)

    def test_since_uses_date_for_entries(self, record_repository):
        record_repository.insert_many("entries", [{"sgv": 100, "date": 1000}, {"sgv": 110, "date": 5000}])
        docs = record_repository.fetch("entries", since_mills=2000)
        assert [d["sgv"] for d in docs] == [110]

    def test_since_uses_created_at_for_treatments(self, record_repository):
        record_repository.insert("treatments", {"eventType": "Old", "created_at": "1970-01-01T00:00:01Z"})
        record_repository.insert("treatments", {"eventType": "New", "created_at": "1970-01-01T00:00:09Z"})
        docs = record_repository.fetch("treatments", since_mills=5000)
        assert [d["eventType"] for d in docs] == ["New"]

    def test_collections_are_separate(self, record_repository):
        record_repository.insert("entries", {"sgv": 100, "date": 1})
        assert record_repository.fetch("devicestatus") == []
        assert record_repository.count("entries") == 1
        assert record_repository.count("treatments") == 0

    def test_treatment_window_ignores_date_field(self, record_repository):
        record_repository.insert("treatments", {
            "eventType": "Meal Bolus", "created_at": "1970-01-01T00:00:09Z", "date": 1000,
        })
        docs = record_repository.fetch("treatments", since_mills=5000)
        assert [d["eventType"] for d in docs] == ["Meal Bolus"]

    def test_event_types_filter(self, record_repository):
        record_repository.insert_many("treatments", [
            {"eventType": "Sensor Start"},
            {"eventType": "Note"},
            {"eventType": "Insulin Change"},
        ])
        docs = record_repository.fetch("treatments", event_types=["Sensor Start", "Insulin Change"])
        assert [d["eventType"] for d in docs] == ["Sensor Start", "Insulin Change"]
        assert record_repository.fetch("treatments", event_types=[]) == []

    def test_non_string_event_type_is_not_indexed(self, record_repository, record_db):
        record_repository.insert("treatments", {"eventType": {"kind": "odd"}})
        row = record_db.connection.execute("SELECT event_type FROM records").fetchone()
        assert row["event_type"] is None
