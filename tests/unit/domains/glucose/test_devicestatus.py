"""Tests for device status normalization."""

from __future__ import annotations

from cgmview.domains.glucose.domain_logic.devicestatus import (
    normalize_device_statuses,
    normalize_status,
)


class TestNormalizeStatus:
    def test_legacy_battery_is_nested(self):
        status = normalize_status({"uploaderBattery": 80, "created_at": "1970-01-01T00:00:01Z"})
        assert status["uploader"] == {"battery": 80}
        assert "uploaderBattery" not in status
        assert status["mills"] == 1000

    def test_input_is_not_mutated(self):
        record = {"uploaderBattery": 55, "created_at": "1970-01-01T00:00:01Z"}
        normalize_status(record)
        assert record == {"uploaderBattery": 55, "created_at": "1970-01-01T00:00:01Z"}

    def test_existing_uploader_keys_kept(self):
        status = normalize_status({"uploaderBattery": 40, "uploader": {"name": "phone"}})
        assert status["uploader"] == {"name": "phone", "battery": 40}

    def test_without_legacy_field(self):
        status = normalize_status({"pump": {"reservoir": 100}, "created_at": "1970-01-01T00:00:02Z"})
        assert "uploader" not in status
        assert status["pump"] == {"reservoir": 100}

    def test_unparseable_created_at_gives_none_mills(self):
        assert normalize_status({"created_at": "???"})["mills"] is None


class TestNormalizeDeviceStatuses:
    def test_newest_first_input_comes_out_oldest_first(self):
        newest_first = [
            {"created_at": "1970-01-01T00:00:03Z"},
            {"created_at": "1970-01-01T00:00:02Z"},
            {"created_at": "1970-01-01T00:00:01Z"},
        ]
        assert [s["mills"] for s in normalize_device_statuses(newest_first)] == [1000, 2000, 3000]

    def test_empty(self):
        assert normalize_device_statuses([]) == []
