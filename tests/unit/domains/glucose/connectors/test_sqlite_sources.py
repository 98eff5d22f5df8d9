"""Tests for the SQLite-backed record sources."""

from __future__ import annotations

import asyncio

import pytest
from conftest import NOW

from cgmview.core.storage.models import Query, QueryError, RecordId
from cgmview.core.times import ONE_DAY, to_iso
from cgmview.domains.glucose.connectors.sqlite_store import (
    SQLiteProfileSource,
    SQLiteRecordSource,
    sqlite_context,
)
from cgmview.domains.glucose.loader import sensor_and_insulin_query, treatments_query


def _run(coro):
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


class TestSQLiteRecordSource:
    def test_window_and_sort(self, record_repository):
        record_repository.insert_many("entries", [
            {"sgv": 100, "date": 1000},
            {"sgv": 110, "date": 3000},
            {"sgv": 120, "date": 2000},
        ])
        source = SQLiteRecordSource(record_repository, "entries")
        result = _run(source.list(Query(find={"date": {"$gte": 2000}}, sort={"date": 1})))
        assert [d["sgv"] for d in result] == [120, 110]
        assert all(isinstance(d["_id"], RecordId) for d in result)

    def test_event_type_filter(self, record_repository):
        record_repository.insert("treatments", {"eventType": "Profile Switch", "created_at": "2026-03-01T10:00:00Z"})
        record_repository.insert("treatments", {"eventType": "Note", "created_at": "2026-03-01T11:00:00Z"})
        source = SQLiteRecordSource(record_repository, "treatments")
        result = _run(source.list(Query(find={"eventType": {"$eq": "Profile Switch"}})))
        assert [d["eventType"] for d in result] == ["Profile Switch"]

    def test_treatment_windowed_on_created_at_not_date(self, record_repository):
        record_repository.insert("treatments", {
            "eventType": "Meal Bolus",
            "created_at": to_iso(NOW - ONE_DAY),
            "date": NOW - 30 * ONE_DAY,
        })
        source = SQLiteRecordSource(record_repository, "treatments")
        result = _run(source.list(treatments_query(NOW)))
        assert [d["eventType"] for d in result] == ["Meal Bolus"]

    def test_event_type_in_filter(self, record_repository):
        record_repository.insert_many("treatments", [
            {"eventType": "Sensor Start", "created_at": to_iso(NOW - 3 * ONE_DAY)},
            {"eventType": "Site Change", "created_at": to_iso(NOW - 2 * ONE_DAY)},
            {"eventType": "Insulin Change", "created_at": to_iso(NOW - ONE_DAY)},
        ])
        source = SQLiteRecordSource(record_repository, "treatments")
        result = _run(source.list(sensor_and_insulin_query(NOW)))
        assert [d["eventType"] for d in result] == ["Insulin Change", "Sensor Start"]

    def test_count_cap(self, record_repository):
        record_repository.insert_many("devicestatus", [
            {"created_at": "2026-03-01T10:00:00Z", "n": 1},
            {"created_at": "2026-03-01T11:00:00Z", "n": 2},
        ])
        source = SQLiteRecordSource(record_repository, "devicestatus")
        result = _run(source.list(Query(sort={"created_at": -1}, count=1)))
        assert [d["n"] for d in result] == [2]

    def test_closed_database_raises_query_error(self, record_repository, record_db):
        record_db.close()
        source = SQLiteRecordSource(record_repository, "entries")
        with pytest.raises(QueryError, match="entries query failed"):
            _run(source.list(Query()))


class TestSQLiteProfileSource:
    def test_returns_latest_profile(self, record_repository):
        record_repository.insert("profile", {"defaultProfile": "Old", "created_at": "2026-01-01T00:00:00Z"})
        record_repository.insert("profile", {"defaultProfile": "New", "created_at": "2026-02-01T00:00:00Z"})
        (profile,) = _run(SQLiteProfileSource(record_repository).last())
        assert profile["defaultProfile"] == "New"

    def test_empty_store(self, record_repository):
        assert _run(sqlite_context(record_repository).profile.last()) == []
