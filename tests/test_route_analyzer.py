"""
Tests for trip efficiency reports, route anomalies and optimization hints
"""

from datetime import timedelta

import pytest

from fraud_engine.models import GPSPosition, Route, Trip
from fraud_engine.services import RouteAnalyzer
from fraud_engine.services.route_analyzer import route_anomalies_for_trip, trip_efficiency_report
from tests.fixtures.fleet_fixtures import NOW, make_position, make_trip

ROUTE = Route(id="r-1", name="Depot - Port", expected_distance=100.0, expected_duration=120.0)


def _trip(distance=100.0, fuel=12.5, minutes=120):
    start = NOW - timedelta(hours=5)
    return Trip(
        id="t-1",
        vehicle_id="v-1",
        driver_id="d-1",
        route_id="r-1",
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
        distance_traveled=distance,
        fuel_consumed=fuel,
        status="completed",
    )


def _positions(*speeds):
    return [
        GPSPosition(id=f"p-{i}", vehicle_id="v-1", trip_id="t-1", timestamp=NOW - timedelta(minutes=i), speed=s)
        for i, s in enumerate(speeds)
    ]


class TestTripEfficiencyReport:
    """Test the 100-point trip score"""

    def test_every_penalty(self):
        report = trip_efficiency_report(_trip(distance=125.0, fuel=30.0), ROUTE, _positions(80, 130))

        assert report["efficiency_score"] == 25
        assert report["distance_efficiency"] == 0.8
        assert report["fuel_efficiency"] == pytest.approx(4.17)
        assert report["max_speed"] == 130
        assert report["avg_speed"] == 105.0
        assert len(report["issues"]) == 3
        assert len(report["recommendations"]) == 3

    def test_clean_trip(self):
        report = trip_efficiency_report(_trip(), ROUTE, _positions(60, 90))

        assert report["efficiency_score"] == 100
        assert report["distance_efficiency"] == 1.0
        assert report["issues"] == []

    def test_without_route_or_gps(self):
        report = trip_efficiency_report(_trip(), None, [])
        assert "distance_efficiency" not in report
        assert "max_speed" not in report
        assert report["efficiency_score"] == 100


class TestRouteAnomalies:
    """Test the per-trip anomaly summary"""

    def test_excessive_distance(self):
        result = route_anomalies_for_trip(_trip(distance=140.0), ROUTE, _positions(60, 80))

        assert result["anomaly_type"] == ["excessive_distance"]
        assert result["severity"] == "medium"
        assert result["details"]["distance_ratio"] == 1.4

    def test_far_overrun_is_high(self):
        result = route_anomalies_for_trip(_trip(distance=160.0, fuel=20.0), ROUTE, [])
        assert result["severity"] == "high"

    def test_excessive_duration(self):
        result = route_anomalies_for_trip(_trip(minutes=200), ROUTE, [])
        assert result["anomaly_type"] == ["excessive_duration"]
        assert result["severity"] == "high"

    def test_unusual_speed_pattern(self):
        result = route_anomalies_for_trip(_trip(), ROUTE, _positions(10, 15))

        assert result["anomaly_type"] == ["unusual_speed_pattern"]
        assert result["severity"] == "high"
        assert result["details"]["avg_speed"] == 12.5

    def test_unusual_fuel_consumption(self):
        result = route_anomalies_for_trip(_trip(fuel=50.0), ROUTE, [])
        assert result["anomaly_type"] == ["unusual_fuel_consumption"]
        assert result["severity"] == "medium"
        assert result["details"]["fuel_efficiency"] == 2.0

    def test_nothing_stands_out(self):
        assert route_anomalies_for_trip(_trip(), ROUTE, _positions(60, 90)) is None


class TestRouteAnalyzer:
    @pytest.fixture
    def analyzer(self, fleet_store, fleet_repo, trip_repo):
        start = NOW - timedelta(days=2)
        fleet_store.insert("trips", make_trip("t-1", start, distance=125.0, fuel=50.0, route_id="r-1"))
        fleet_store.insert("trips", make_trip("t-2", start + timedelta(hours=5), distance=115.0, fuel=20.0, route_id="r-1"))
        fleet_store.insert("trips", make_trip("t-9", start, vehicle_id="v-9", driver_id="d-9", distance=500.0, route_id="r-1"))
        fleet_store.insert("gps_tracking", make_position("p-1", start + timedelta(minutes=30), 130.0, trip_id="t-1"))
        fleet_store.insert("gps_tracking", make_position("p-2", start + timedelta(minutes=40), 80.0, trip_id="t-1"))
        return RouteAnalyzer(fleet_repo, trip_repo)

    def test_trip_efficiency(self, analyzer):
        report = analyzer.analyze_trip_efficiency("t-1")
        assert report["efficiency_score"] == 25
        assert report["max_speed"] == 130.0

    def test_unknown_trip(self, analyzer):
        assert analyzer.analyze_trip_efficiency("missing") is None

    def test_trip_efficiency_scoped_to_company(self, analyzer):
        assert analyzer.analyze_trip_efficiency("t-1", company_id="c-1")["efficiency_score"] == 25
        assert analyzer.analyze_trip_efficiency("t-1", company_id="c-2") is None
        assert analyzer.analyze_trip_efficiency("t-9", company_id="c-1") is None

    def test_anomalies_scoped_to_company(self, analyzer):
        anomalies = analyzer.detect_route_anomalies("c-1", days=7, now=NOW)

        assert [a["trip_id"] for a in anomalies] == ["t-1"]
        assert anomalies[0]["vehicle_number"] == "TRK-001"
        assert anomalies[0]["anomaly_type"] == ["unusual_fuel_consumption"]

    def test_optimizations(self, analyzer):
        optimizations = analyzer.generate_route_optimizations("c-1", now=NOW)

        assert len(optimizations) == 1
        route = optimizations[0]
        assert route["route_id"] == "r-1"
        assert route["trip_count"] == 2
        assert route["avg_actual_distance"] == 120.0
        types = [r["type"] for r in route["recommendations"]]
        assert types == ["distance_optimization", "fuel_efficiency"]
        assert route["recommendations"][0]["potential_savings"] == "20.0% distance reduction"
