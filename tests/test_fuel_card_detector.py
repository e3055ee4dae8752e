"""
Tests for fuel card misuse detection
"""

from datetime import datetime, timedelta

import pytest

from fraud_engine.models import FuelTransaction, Severity, Trip, Vehicle
from fraud_engine.services import FuelCardMisuseDetector
from fraud_engine.services.fuel_card_detector import find_fuel_card_misuse
from tests.fixtures.fleet_fixtures import NOW, make_transaction, make_trip

DAY = datetime(2024, 3, 11)
VEHICLES = {"v-1": Vehicle(id="v-1", vehicle_number="TRK-001", fuel_capacity=100.0)}


def _tx(tx_id, when, amount=20.0, driver_id="d-1", trip_id="t-1", location="Station 1"):
    return FuelTransaction(
        id=tx_id,
        vehicle_id="v-1",
        driver_id=driver_id,
        trip_id=trip_id,
        transaction_date=when,
        fuel_amount=amount,
        location=location,
    )


def _types(indicators):
    return sorted(i.type for i in indicators)


def _run(transactions, trips=()):
    return find_fuel_card_misuse(transactions, VEHICLES, list(trips), tz_name="UTC")


class TestDriverRules:
    """Test per-driver transaction patterns"""

    def test_excessive_daily_transactions(self):
        transactions = [_tx(f"f-{h}", DAY.replace(hour=h)) for h in (8, 11, 14, 17)]

        indicators = _run(transactions)

        assert _types(indicators) == ["excessive_daily_transactions"]
        indicator = indicators[0]
        assert indicator.severity == Severity.HIGH
        assert indicator.driver_id == "d-1"
        assert indicator.details["max_transactions_per_day"] == 4
        assert indicator.details["suspicious_dates"] == [{"date": "2024-03-11", "count": 4}]

    def test_three_per_day_is_allowed(self):
        transactions = [_tx(f"f-{h}", DAY.replace(hour=h)) for h in (8, 11, 14)]
        assert _run(transactions) == []

    def test_excessive_location_diversity(self):
        transactions = [
            _tx(f"f-{i}", DAY + timedelta(days=i, hours=12), location=f"Station {i}") for i in range(11)
        ]

        indicators = _run(transactions)

        assert _types(indicators) == ["excessive_location_diversity"]
        assert indicators[0].details["unique_locations_count"] == 11
        assert indicators[0].details["location_variety_ratio"] == 1.0

    def test_unusual_timing_pattern(self):
        transactions = [_tx(f"f-{i}", DAY + timedelta(days=i, hours=2)) for i in range(3)]
        transactions.append(_tx("f-day", DAY + timedelta(days=4, hours=12)))

        indicators = _run(transactions)

        assert _types(indicators) == ["unusual_timing_pattern"]
        assert indicators[0].details["unusual_percentage"] == 75.0


class TestVehicleRules:
    """Test per-vehicle transaction patterns"""

    def test_rapid_consecutive_transactions(self):
        first = _tx("f-1", DAY.replace(hour=10), amount=30.0)
        second = _tx("f-2", DAY.replace(hour=10, minute=20), amount=30.0, driver_id="d-2")

        indicators = _run([second, first])

        assert _types(indicators) == ["rapid_consecutive_transactions"]
        indicator = indicators[0]
        assert indicator.severity == Severity.HIGH
        assert indicator.vehicle_id == "v-1"
        assert indicator.fuel_transaction_id == "f-2"
        assert indicator.details["time_difference_minutes"] == 20.0
        assert indicator.details["first_transaction_id"] == "f-1"

    def test_same_instant_is_not_rapid(self):
        when = DAY.replace(hour=10)
        assert _run([_tx("f-1", when), _tx("f-2", when, driver_id="d-2")]) == []

    def test_rapid_multiple_fueling(self):
        first = _tx("f-1", DAY.replace(hour=9), amount=60.0)
        second = _tx("f-2", DAY.replace(hour=10), amount=70.0, driver_id="d-2")

        indicators = _run([first, second])

        assert _types(indicators) == ["rapid_multiple_fueling"]
        assert indicators[0].details["combined_fuel"] == 130.0
        assert indicators[0].details["fuel_capacity"] == 100.0

    def test_multiple_drivers_same_vehicle(self):
        transactions = [
            _tx(f"f-{i}", DAY + timedelta(days=i, hours=12), driver_id=f"d-{i}") for i in range(6)
        ]

        indicators = _run(transactions)

        assert _types(indicators) == ["multiple_drivers_same_vehicle"]
        assert indicators[0].details["different_drivers_count"] == 6
        assert indicators[0].driver_id is None


class TestFuelingWithoutTrip:
    def test_receipt_without_any_trip(self):
        indicators = _run([_tx("f-1", DAY.replace(hour=12), trip_id=None)])
        assert _types(indicators) == ["fueling_without_trip"]
        assert indicators[0].fuel_transaction_id == "f-1"

    def test_nearby_trip_start_clears_receipt(self):
        trip = Trip(id="t-9", vehicle_id="v-1", driver_id="d-1", start_time=DAY.replace(hour=15))
        assert _run([_tx("f-1", DAY.replace(hour=12), trip_id=None)], [trip]) == []

    def test_unknown_vehicle_ignored(self):
        tx = _tx("f-1", DAY.replace(hour=12), trip_id=None)
        tx.vehicle_id = "v-404"
        assert _run([tx]) == []


class TestFuelCardMisuseDetector:
    @pytest.fixture
    def seeded(self, fleet_store):
        start = NOW - timedelta(days=1)
        fleet_store.insert("trips", make_trip("t-1", start))
        fleet_store.insert("fuel_transactions", make_transaction("f-1", start + timedelta(minutes=30), 30.0, trip_id="t-1"))
        fleet_store.insert("fuel_transactions", make_transaction("f-2", start + timedelta(minutes=50), 30.0, trip_id="t-1"))
        fleet_store.insert("fuel_transactions", make_transaction("f-old", NOW - timedelta(days=30), 30.0))
        return fleet_store

    def test_detect_against_store(self, seeded, fleet_repo, trip_repo, fuel_repo):
        detector = FuelCardMisuseDetector(fleet_repo, trip_repo, fuel_repo, tz_name="UTC")
        indicators = detector.detect("c-1", now=NOW)

        assert _types(indicators) == ["rapid_consecutive_transactions"]
        assert indicators[0].details["time_difference_minutes"] == 20.0
