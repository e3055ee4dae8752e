"""
Tests for escalation risk and alert volume prediction
"""

from datetime import timedelta

import pytest

from fraud_engine.models import FraudAlert
from fraud_engine.services import AlertPredictor
from fraud_engine.services.alert_predictor import DEFAULT_ACTIONS, URGENT_ACTION, recommended_actions
from tests.fixtures.fleet_fixtures import NOW, make_alert


def _alert(alert_id, age_days, alert_type="speed_violation", severity="high", status="open", resolved_after=None):
    created = NOW - timedelta(days=age_days)
    return FraudAlert(
        id=alert_id,
        type=alert_type,
        severity=severity,
        status=status,
        title=alert_type,
        created_at=created,
        resolved_at=created + timedelta(days=resolved_after) if resolved_after is not None else None,
    )


@pytest.fixture
def predictor():
    return AlertPredictor()


class TestAverageResolution:
    def test_mean_of_matching_resolved_alerts(self, predictor):
        history = [
            _alert("r-1", 20, status="resolved", resolved_after=2),
            _alert("r-2", 20, status="resolved", resolved_after=4),
            _alert("r-3", 20, severity="low", status="resolved", resolved_after=10),
            _alert("r-4", 20, status="false_positive", resolved_after=1),
        ]
        assert predictor.average_resolution_days(history, "speed_violation", "high") == pytest.approx(3.0)

    def test_default_without_history(self, predictor):
        assert predictor.average_resolution_days([], "speed_violation", "high") == 7.0


class TestEscalation:
    """Test escalation probability of open alerts"""

    def test_old_high_alert_is_urgent(self, predictor):
        predictions = predictor.escalation_predictions([_alert("a-1", 7)], 7, NOW)

        assert len(predictions) == 1
        prediction = predictions[0]
        assert prediction["escalation_probability"] == 1.0
        assert prediction["recommended_actions"][0] == URGENT_ACTION
        assert prediction["confidence"] == "high"
        assert prediction["predicted_escalation_date"] == (NOW + timedelta(days=7)).isoformat()

    def test_low_risk_alerts_excluded(self, predictor):
        assert predictor.escalation_predictions([_alert("a-1", 1, severity="low")], 7, NOW) == []

    def test_medium_risk(self, predictor):
        prediction = predictor.escalation_predictions([_alert("a-1", 3, severity="medium")], 7, NOW)[0]

        assert prediction["escalation_probability"] == pytest.approx(3 / 7, abs=1e-3)
        assert prediction["confidence"] == "medium"
        assert URGENT_ACTION not in prediction["recommended_actions"]

    def test_only_pending_alerts(self, predictor):
        history = [
            _alert("a-1", 10, status="investigating"),
            _alert("a-2", 10, status="resolved", resolved_after=9),
            _alert("a-3", 10, status="false_positive"),
        ]
        assert [p["alert_id"] for p in predictor.escalation_predictions(history, 7, NOW)] == ["a-1"]

    def test_actions_by_type(self):
        assert recommended_actions("geofence_violation", 0.5) == DEFAULT_ACTIONS
        assert recommended_actions("fuel_anomaly", 0.9)[0] == URGENT_ACTION
        assert len(recommended_actions("fuel_anomaly", 0.5)) == 3


class TestVolumePrediction:
    """Test the next-week alert volume forecast"""

    @staticmethod
    def _weekly(counts):
        history = []
        for week, count in enumerate(counts):
            for i in range(count):
                history.append(_alert(f"w{week}-{i}", 7 * week + 1, status="resolved", resolved_after=0.5))
        return history

    def test_mean_of_recent_weeks(self, predictor):
        prediction = predictor.volume_prediction(self._weekly([4, 2, 3, 1]), NOW)

        assert prediction["predicted_alerts_next_week"] == 3
        assert prediction["weeks_with_data"] == 4
        assert prediction["weekly_trend"] == "increasing"
        assert prediction["trend_slope"] == pytest.approx(0.8)
        assert prediction["confidence"] == "high"

    def test_three_weeks_is_medium_confidence(self, predictor):
        prediction = predictor.volume_prediction(self._weekly([2, 2, 2]), NOW)
        assert prediction["weekly_trend"] == "stable"
        assert prediction["confidence"] == "medium"

    def test_too_little_history(self, predictor):
        assert predictor.volume_prediction(self._weekly([5, 5]), NOW) is None

    def test_alerts_older_than_twelve_weeks_ignored(self, predictor):
        history = self._weekly([1, 1]) + [_alert("old", 7 * 12 + 1)]
        assert predictor.volume_prediction(history, NOW) is None


class TestPredict:
    def test_escalations_sorted_before_volume(self, predictor):
        history = TestVolumePrediction._weekly([1, 1, 1]) + [
            _alert("a-1", 3, severity="medium"),
            _alert("a-2", 7),
        ]

        result = predictor.predict(history, now=NOW)

        types = [p["type"] for p in result["predictions"]]
        assert types == ["risk_escalation", "risk_escalation", "alert_volume_prediction"]
        assert [p.get("alert_id") for p in result["predictions"][:2]] == ["a-2", "a-1"]
        assert result["total_predictions"] == 3
        assert result["high_confidence_predictions"] == 1

    def test_volume_only(self, predictor):
        result = predictor.predict([_alert("a-1", 7)], prediction_type="alert_volume", now=NOW)
        assert result["predictions"] == []

    def test_predict_company(self, fleet_store, fleet_repo, alert_repo):
        fleet_store.insert("fraud_alerts", make_alert("a-1", NOW - timedelta(days=7), severity="high"))
        fleet_store.insert("fraud_alerts", make_alert("a-9", NOW - timedelta(days=7), severity="high", vehicle_id="v-9", driver_id="d-9"))

        result = AlertPredictor(fleet_repo, alert_repo).predict_company("c-1", now=NOW)

        assert [p["alert_id"] for p in result["predictions"]] == ["a-1"]
