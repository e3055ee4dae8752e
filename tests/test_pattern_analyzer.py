"""
Tests for fraud alert pattern aggregation
"""

from datetime import datetime, timedelta

import pytest

from fraud_engine.models import FraudAlert
from fraud_engine.services import PatternAnalyzer
from tests.fixtures.fleet_fixtures import NOW, make_alert


def _alert(alert_id, created_at, alert_type="speed_violation", vehicle_id="v-1", driver_id="d-1", severity="medium"):
    return FraudAlert(
        id=alert_id,
        type=alert_type,
        severity=severity,
        status="open",
        title=alert_type,
        vehicle_id=vehicle_id,
        driver_id=driver_id,
        created_at=created_at,
    )


@pytest.fixture
def analyzer():
    return PatternAnalyzer(tz_name="UTC")


class TestTemporalPatterns:
    """Test hour, day and week buckets"""

    def test_buckets(self, analyzer):
        alerts = [
            _alert("a-1", datetime(2024, 3, 13, 15, 0)),   # Wednesday
            _alert("a-2", datetime(2024, 3, 13, 23, 0)),   # Wednesday, off hours
            _alert("a-3", datetime(2024, 3, 12, 0, 30)),   # Tuesday, off hours
            _alert("a-4", datetime(2024, 3, 9, 10, 0)),    # Saturday, previous week
            _alert("a-5", None),
        ]

        temporal = analyzer.temporal_patterns(alerts)

        assert temporal["weekly_trend"] == {"2024-03-03": 1, "2024-03-10": 3}
        assert temporal["off_hours_alerts"] == 2
        assert temporal["peak_days"][0] == ["Wednesday", 2]
        assert temporal["hourly_distribution"] == {0: 1, 10: 1, 15: 1, 23: 1}
        assert len(temporal["peak_hours"]) == 3

    def test_sunday_starts_the_week(self, analyzer):
        temporal = analyzer.temporal_patterns([_alert("a-1", datetime(2024, 3, 10, 12, 0))])
        assert temporal["weekly_trend"] == {"2024-03-10": 1}

    def test_local_time_buckets(self):
        # 03:00 UTC on 13 March is 23:00 on the 12th in New York (EDT)
        temporal = PatternAnalyzer(tz_name="America/New_York").temporal_patterns(
            [_alert("a-1", datetime(2024, 3, 13, 3, 0))]
        )
        assert temporal["hourly_distribution"] == {23: 1}
        assert temporal["peak_days"] == [["Tuesday", 1]]
        assert temporal["off_hours_alerts"] == 1


class TestEntityPatterns:
    def test_ranking_and_names(self, analyzer):
        alerts = [
            _alert("a-1", NOW, vehicle_id="v-2", driver_id="d-1"),
            _alert("a-2", NOW, alert_type="fuel_anomaly", vehicle_id="v-2", driver_id="d-2", severity="high"),
            _alert("a-3", NOW, vehicle_id="v-1", driver_id=None),
        ]

        patterns = analyzer.entity_patterns(alerts, vehicle_names={"v-2": "TRK-002"})

        top = patterns["vehicle_patterns"]["high_risk_vehicles"][0]
        assert top["id"] == "v-2"
        assert top["name"] == "TRK-002"
        assert top["total"] == 2
        assert top["types"] == {"speed_violation": 1, "fuel_anomaly": 1}
        assert top["severity"] == {"medium": 1, "high": 1}
        assert patterns["vehicle_patterns"]["alert_distribution"] == {"v-2": 2, "v-1": 1}
        drivers = patterns["driver_patterns"]["high_risk_drivers"]
        assert {d["id"] for d in drivers} == {"d-1", "d-2"}
        assert drivers[0]["name"] == drivers[0]["id"]

    def test_top_five(self, analyzer):
        alerts = [_alert(f"a-{i}", NOW, vehicle_id=f"v-{i}") for i in range(8)]
        assert len(analyzer.entity_patterns(alerts)["vehicle_patterns"]["high_risk_vehicles"]) == 5


class TestCorrelationPatterns:
    """Test pairs of alerts within an hour of each other"""

    def test_pairs_within_window(self, analyzer):
        day = datetime(2024, 3, 12)
        alerts = [
            _alert("a-3", day.replace(hour=13), alert_type="route_deviation"),
            _alert("a-1", day.replace(hour=10), alert_type="speed_violation"),
            _alert("a-2", day.replace(hour=10, minute=30), alert_type="fuel_anomaly"),
        ]

        correlations = analyzer.correlation_patterns(alerts)

        assert correlations == {"frequent_combinations": [{"pattern": "speed_violation + fuel_anomaly", "count": 1}]}

    def test_window_is_inclusive(self, analyzer):
        day = datetime(2024, 3, 12, 10)
        alerts = [_alert("a-1", day), _alert("a-2", day + timedelta(minutes=60), alert_type="fuel_anomaly")]
        assert analyzer.correlation_patterns(alerts)["frequent_combinations"][0]["count"] == 1

    def test_no_alerts(self, analyzer):
        assert analyzer.correlation_patterns([]) == {"frequent_combinations": []}


class TestAnalyze:
    def test_pattern_type_selection(self, analyzer):
        alerts = [_alert("a-1", NOW)]

        assert set(analyzer.analyze(alerts, pattern_type="temporal")) == {"temporal_patterns"}
        assert set(analyzer.analyze(alerts, pattern_type="correlation")) == {"correlation_patterns"}
        assert set(analyzer.analyze(alerts, pattern_type="vehicle")) == {"vehicle_patterns", "driver_patterns"}
        assert set(analyzer.analyze(alerts)) == {
            "temporal_patterns",
            "vehicle_patterns",
            "driver_patterns",
            "correlation_patterns",
        }

    def test_analyze_company(self, fleet_store, fleet_repo, alert_repo):
        fleet_store.insert("fraud_alerts", make_alert("a-1", NOW - timedelta(days=1)))
        fleet_store.insert("fraud_alerts", make_alert("a-2", NOW - timedelta(days=2), vehicle_id="v-2", driver_id="d-2"))
        fleet_store.insert("fraud_alerts", make_alert("a-old", NOW - timedelta(days=40)))
        fleet_store.insert("fraud_alerts", make_alert("a-9", NOW - timedelta(days=1), vehicle_id="v-9", driver_id="d-9"))

        result = PatternAnalyzer(fleet_repo, alert_repo, tz_name="UTC").analyze_company("c-1", now=NOW)

        assert result["period"] == "30 days"
        assert result["total_alerts_analyzed"] == 2
        vehicles = result["patterns"]["vehicle_patterns"]["high_risk_vehicles"]
        assert {v["name"] for v in vehicles} == {"TRK-001", "TRK-002"}
