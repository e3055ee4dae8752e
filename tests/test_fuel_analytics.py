"""
Tests for vehicle efficiency baselines and fuel statistics
"""

from datetime import timedelta

import pytest

from fraud_engine.services import FuelAnalytics
from tests.fixtures.fleet_fixtures import NOW, make_transaction, make_trip


@pytest.fixture
def analytics(fleet_store, fleet_repo, trip_repo, fuel_repo):
    fleet_store.insert("trips", make_trip("t-1", NOW - timedelta(days=3), distance=100.0, fuel=12.5))
    fleet_store.insert("trips", make_trip("t-2", NOW - timedelta(days=4), distance=100.0, fuel=10.0))
    fleet_store.insert("trips", make_trip("t-3", NOW - timedelta(days=5), distance=0.0, fuel=5.0))
    fleet_store.insert("trips", make_trip("t-4", NOW - timedelta(days=1), status="planned"))
    fleet_store.insert("trips", make_trip("t-9", NOW - timedelta(days=2), vehicle_id="v-9", driver_id="d-9", fuel=20.0))
    fleet_store.insert("fuel_transactions", make_transaction("f-1", NOW - timedelta(days=3), 40.0, fuel_cost=60.0))
    fleet_store.insert("fuel_transactions", make_transaction("f-2", NOW - timedelta(days=2), 20.0, vehicle_id="v-2", fuel_cost=30.0))
    fleet_store.insert("fuel_transactions", make_transaction("f-9", NOW - timedelta(days=2), 50.0, vehicle_id="v-9", driver_id="d-9"))
    fleet_store.insert("fuel_transactions", make_transaction("f-old", NOW - timedelta(days=60), 70.0))
    return FuelAnalytics(fleet_repo, trip_repo, fuel_repo)


class TestVehicleBaseline:
    def test_statistics_of_completed_trips(self, analytics):
        baseline = analytics.vehicle_baseline("v-1", now=NOW)

        assert baseline["efficiency"] == 9.0
        assert baseline["standard_deviation"] == 1.0
        assert baseline["trips_count"] == 2
        assert baseline["min_efficiency"] == 8.0
        assert baseline["max_efficiency"] == 10.0
        assert baseline["days"] == 90

    def test_no_usable_trips(self, analytics):
        baseline = analytics.vehicle_baseline("v-2", days=30, now=NOW)
        assert baseline == {"vehicle_id": "v-2", "efficiency": None, "trips_count": 0, "days": 30}


class TestFuelStatistics:
    """Test company fuel totals"""

    def test_company_totals(self, analytics):
        stats = analytics.fuel_statistics("c-1", now=NOW)
        summary = stats["summary"]

        assert summary["total_fuel_purchased"] == 60.0
        assert summary["total_fuel_cost"] == 90.0
        assert summary["avg_cost_per_liter"] == 1.5
        assert summary["transaction_count"] == 2
        # t-3 has fuel but no distance; it still counts toward consumption
        assert summary["trip_count"] == 3
        assert summary["total_fuel_consumed"] == 27.5
        assert summary["total_distance"] == 200.0
        assert summary["avg_fuel_efficiency"] == pytest.approx(7.27)

        diesel = stats["by_fuel_type"]["diesel"]
        assert diesel["transactions"] == 2
        assert diesel["trips"] == 3
        assert "gasoline" not in stats["by_fuel_type"]

    def test_single_vehicle(self, analytics):
        stats = analytics.fuel_statistics("c-1", vehicle_id="v-2", now=NOW)
        assert stats["summary"]["transaction_count"] == 1
        assert stats["summary"]["trip_count"] == 0

    def test_vehicle_outside_company_ignored(self, analytics):
        stats = analytics.fuel_statistics("c-1", vehicle_id="v-9", now=NOW)
        assert stats["summary"]["transaction_count"] == 0

    def test_company_without_vehicles(self, analytics):
        summary = analytics.fuel_statistics("c-3", now=NOW)["summary"]
        assert summary["transaction_count"] == 0
        assert summary["avg_fuel_efficiency"] == 0
        assert summary["avg_cost_per_liter"] == 0
