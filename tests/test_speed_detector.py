"""
Tests for speed violation detection (batch and real-time)
"""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from fraud_engine.exceptions import StoreUnavailableError
from fraud_engine.models import GPSPosition, Severity, Trip, Vehicle
from fraud_engine.services import SpeedViolationDetector
from fraud_engine.services.speed_detector import check_realtime_speed, find_speed_violations
from tests.fixtures.fleet_fixtures import NOW, make_position, make_trip

VEHICLES = {"v-1": Vehicle(id="v-1", vehicle_number="TRK-001")}
TRIPS = {"t-1": Trip(id="t-1", vehicle_id="v-1", driver_id="d-1", start_time=NOW - timedelta(hours=2))}


def _positions(*speeds):
    return [
        GPSPosition(
            id=f"g-{i}",
            vehicle_id="v-1",
            timestamp=NOW - timedelta(minutes=i),
            location={"lat": 40.0, "lng": -74.0},
            speed=speed,
            trip_id="t-1",
        )
        for i, speed in enumerate(speeds)
    ]


class TestFindSpeedViolations:
    """Test the batch speed rule"""

    def test_severity_split_at_escalation_factor(self):
        indicators = find_speed_violations(_positions(100, 125, 190, 180), VEHICLES, TRIPS, 120, 1.5)
        by_gps = {i.details["gps_id"]: i for i in indicators}

        assert set(by_gps) == {"g-1", "g-2", "g-3"}
        assert by_gps["g-1"].severity == Severity.MEDIUM
        assert by_gps["g-2"].severity == Severity.HIGH
        # Exactly threshold * factor is not above it
        assert by_gps["g-3"].severity == Severity.MEDIUM

    def test_every_flagged_speed_exceeds_threshold(self):
        speeds = [80, 119.9, 120, 120.1, 140, 200, 250]
        for threshold in (100, 120, 150):
            for indicator in find_speed_violations(_positions(*speeds), VEHICLES, TRIPS, threshold, 1.5):
                assert indicator.details["speed"] > threshold
                assert indicator.details["speed_limit"] == threshold

    def test_raising_threshold_never_adds_violations(self):
        speeds = [80, 110, 125, 150, 175, 210]
        flagged = [
            {i.details["gps_id"] for i in find_speed_violations(_positions(*speeds), VEHICLES, TRIPS, t, 1.5)}
            for t in (100, 120, 150, 200)
        ]
        for lower, higher in zip(flagged, flagged[1:]):
            assert higher <= lower

    def test_links_driver_through_trip(self):
        indicator = find_speed_violations(_positions(150), VEHICLES, TRIPS, 120, 1.5)[0]
        assert indicator.driver_id == "d-1"
        assert indicator.trip_id == "t-1"
        assert indicator.details["excess_speed"] == 30.0
        assert indicator.details["location"] == {"lat": 40.0, "lng": -74.0}

    def test_unknown_vehicle_skipped(self):
        position = _positions(150)[0]
        position.vehicle_id = "v-404"
        assert find_speed_violations([position], VEHICLES, TRIPS, 120, 1.5) == []


class TestRealtimeSpeed:
    """Test the single-position real-time check"""

    def test_within_limit(self):
        assert check_realtime_speed(_positions(110)[0], VEHICLES["v-1"]) is None

    def test_high_then_critical(self):
        assert check_realtime_speed(_positions(130)[0], VEHICLES["v-1"]).severity == Severity.HIGH
        assert check_realtime_speed(_positions(150)[0], VEHICLES["v-1"]).severity == Severity.CRITICAL


class TestSpeedViolationDetector:
    """Test the detector against the store"""

    @pytest.fixture
    def detector(self, fleet_store, fleet_repo, trip_repo):
        fleet_store.insert("trips", make_trip("t-1", NOW - timedelta(hours=3)))
        fleet_store.insert("gps_tracking", make_position("g-1", NOW - timedelta(hours=1), 150, trip_id="t-1"))
        fleet_store.insert("gps_tracking", make_position("g-2", NOW - timedelta(hours=30), 190))
        fleet_store.insert("gps_tracking", make_position("g-3", NOW - timedelta(hours=1), 200, vehicle_id="v-9"))
        fleet_store.insert("gps_tracking", make_position("g-4", NOW - timedelta(minutes=5), 150, vehicle_id="v-2"))
        return SpeedViolationDetector(fleet_repo, trip_repo)

    def test_batch_scoped_to_company_and_window(self, detector):
        indicators = detector.detect("c-1", now=NOW)
        assert sorted(i.details["gps_id"] for i in indicators) == ["g-1", "g-4"]
        g1 = next(i for i in indicators if i.details["gps_id"] == "g-1")
        assert g1.driver_id == "d-1"
        assert g1.severity == Severity.MEDIUM

    def test_unscoped_run_sees_every_company(self, detector):
        assert len(detector.detect(None, now=NOW)) == 3

    def test_realtime_uses_recent_positions(self, detector):
        indicators = detector.detect_realtime("c-1", now=NOW)
        assert [i.details["gps_id"] for i in indicators] == ["g-4"]
        assert indicators[0].severity == Severity.CRITICAL

    def test_custom_threshold(self, fleet_repo, trip_repo, detector):
        strict = SpeedViolationDetector(fleet_repo, trip_repo, threshold=160)
        assert strict.detect("c-1", now=NOW) == []

    def test_store_outage_degrades_to_empty(self):
        fleet_repo = MagicMock()
        fleet_repo.resolve_scope.side_effect = StoreUnavailableError("down")
        detector = SpeedViolationDetector(fleet_repo, MagicMock())
        assert detector.detect("c-1", now=NOW) == []
        assert detector.detect_realtime("c-1", now=NOW) == []

    def test_other_errors_propagate(self):
        fleet_repo = MagicMock()
        fleet_repo.resolve_scope.side_effect = RuntimeError("bug")
        with pytest.raises(RuntimeError):
            SpeedViolationDetector(fleet_repo, MagicMock()).detect("c-1", now=NOW)
