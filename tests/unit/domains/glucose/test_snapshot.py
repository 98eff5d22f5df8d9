"""Tests for the Snapshot aggregate."""

from __future__ import annotations

from conftest import rid

from cgmview.domains.glucose.domain_logic.readings import SGV
from cgmview.domains.glucose.snapshot import Snapshot


class TestCounts:
    def test_only_non_empty_lists_reported(self):
        snap = Snapshot(
            sgvs=[SGV(mgdl=100, mills=1), SGV(mgdl=101, mills=2)],
            treatments=[{"_id": rid("a"), "mills": 1}],
            last_profile_from_switch="Default",
        )
        assert snap.counts() == {"sgvs": 2, "treatments": 1}
        assert snap.summary() == "sgvs:2, treatments:1"

    def test_empty_snapshot(self):
        assert Snapshot().counts() == {}
        assert Snapshot().summary() == ""


class TestToDict:
    def test_readings_and_ids_flattened(self):
        snap = Snapshot(
            last_updated=5,
            sgvs=[SGV(mgdl=100, mills=1)],
            treatments=[{"_id": rid("a"), "mills": 1}],
        )
        data = snap.to_dict()
        assert data["last_updated"] == 5
        assert data["sgvs"][0]["mgdl"] == 100
        assert data["treatments"] == [{"_id": "a", "mills": 1}]
        assert snap.treatments[0]["_id"] == rid("a")
