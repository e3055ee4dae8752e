"""
Tests for fraud engine data models
"""

from datetime import datetime, timedelta
from decimal import Decimal

from fraud_engine.models import (
    AlertType,
    DetectionResult,
    FraudAlert,
    Indicator,
    Severity,
    Trip,
    Vehicle,
)


def _indicator(**overrides):
    values = dict(
        type="odometer_rollback",
        category=AlertType.ODOMETER_TAMPERING,
        severity=Severity.HIGH,
        reason="Odometer reading decreased",
        vehicle_id="v-1",
        trip_id="t-2",
        observed_at=datetime(2024, 3, 12, 10, 0),
    )
    values.update(overrides)
    return Indicator(**values)


class TestIndicatorFingerprint:
    """Test indicator fingerprints"""

    def test_same_finding_same_fingerprint(self):
        assert _indicator().fingerprint() == _indicator().fingerprint()

    def test_same_day_bucket_matches(self):
        later = _indicator(observed_at=datetime(2024, 3, 12, 18, 0))
        assert later.fingerprint() == _indicator().fingerprint()

    def test_different_bucket_or_subject_differs(self):
        base = _indicator().fingerprint()
        assert _indicator(observed_at=datetime(2024, 3, 13, 10, 0)).fingerprint() != base
        assert _indicator(trip_id="t-3").fingerprint() != base
        assert _indicator(type="impossible_odometer_increase").fingerprint() != base

    def test_missing_observation_time(self):
        indicator = _indicator(observed_at=None)
        assert len(indicator.fingerprint()) == 64

    def test_to_dict(self):
        data = _indicator().to_dict()
        assert data["category"] == "odometer_tampering"
        assert data["severity"] == "high"
        assert data["observed_at"] == "2024-03-12T10:00:00"


class TestRecords:
    """Test from_record coercion of store rows"""

    def test_vehicle_numeric_coercion(self):
        vehicle = Vehicle.from_record({"id": 7, "fuel_capacity": Decimal("80.5"), "odometer": "1200"})
        assert vehicle.id == "7"
        assert vehicle.fuel_capacity == 80.5
        assert vehicle.odometer == 1200.0
        assert vehicle.display_name == "7"

    def test_trip_efficiency_requires_positive_inputs(self):
        start = datetime(2024, 3, 12, 8)
        trip = Trip(id="t", vehicle_id="v", driver_id="d", start_time=start, distance_traveled=100.0, fuel_consumed=10.0)
        assert trip.fuel_efficiency == 10.0
        assert Trip(id="t", vehicle_id="v", driver_id="d", start_time=start, distance_traveled=100.0, fuel_consumed=0).fuel_efficiency is None
        assert Trip(id="t", vehicle_id="v", driver_id="d", start_time=start, distance_traveled=-5.0, fuel_consumed=2.0).fuel_efficiency is None

    def test_trip_from_iso_strings(self):
        trip = Trip.from_record(
            {"id": "t-1", "start_time": "2024-03-12T08:00:00Z", "end_time": "2024-03-12T09:30:00+00:00"}
        )
        assert trip.start_time == datetime(2024, 3, 12, 8)
        assert trip.duration_minutes == 90
        assert trip.status == "planned"

    def test_fraud_alert_defaults(self):
        alert = FraudAlert.from_record({"id": "a-1", "type": "speed_violation", "severity": "critical"})
        assert alert.status == "open"
        assert alert.details == {}
        assert alert.is_high_severity


class TestEnums:
    """Test enum helpers"""

    def test_severity_rank_order(self):
        ranks = [s.rank for s in (Severity.LOW, Severity.MEDIUM, Severity.HIGH, Severity.CRITICAL)]
        assert ranks == sorted(ranks)

    def test_alert_type_label(self):
        assert AlertType.FUEL_CARD_MISUSE.label == "Fuel Card Misuse"


class TestDetectionResult:
    def test_counts_and_dict(self):
        result = DetectionResult(detector="speed", indicators=[_indicator(), _indicator()], failed=1)
        data = result.to_dict()
        assert data["detected"] == 2
        assert data["alerts_created"] == 0
        assert data["failed"] == 1
        assert len(data["details"]) == 2

    def test_observed_at_offsets_round_trip(self):
        indicator = _indicator(observed_at=datetime(2024, 3, 12) + timedelta(hours=5))
        assert indicator.to_dict()["observed_at"] == "2024-03-12T05:00:00"
