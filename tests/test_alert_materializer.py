"""
Tests for turning indicators into fraud alerts
"""

from datetime import datetime
from unittest.mock import MagicMock

from config import AlertConfig
from fraud_engine.exceptions import StoreWriteError
from fraud_engine.models import AlertType, FraudAlert, Indicator, Severity
from fraud_engine.repositories import AlertRepository
from fraud_engine.services import AlertMaterializer


def _indicator(trip_id="t-1"):
    return Indicator(
        type="overfilling",
        category=AlertType.FUEL_ANOMALY,
        severity=Severity.HIGH,
        title="Fuel Anomaly: overfilling",
        reason="Fuel amount (95.0L) exceeds vehicle capacity (80.0L)",
        vehicle_id="v-2",
        driver_id="d-1",
        trip_id=trip_id,
        fuel_transaction_id="f-1",
        details={"fuel_amount": 95.0},
        observed_at=datetime(2024, 3, 12, 9, 0),
    )


class TestBuildDraft:
    def test_draft_fields(self, alert_repo):
        draft = AlertMaterializer(alert_repo).build_draft(_indicator())

        assert draft["type"] == "fuel_anomaly"
        assert draft["severity"] == "high"
        assert draft["status"] == "open"
        assert draft["description"] == _indicator().reason
        assert draft["details"]["indicator_type"] == "overfilling"
        assert draft["details"]["fuel_amount"] == 95.0
        assert draft["fingerprint"] == _indicator().fingerprint(24)

    def test_untitled_indicator_uses_category_label(self, alert_repo):
        indicator = _indicator()
        indicator.title = ""
        assert AlertMaterializer(alert_repo).build_draft(indicator)["title"] == "Fuel Anomaly"


class TestMaterialize:
    """Test alert creation, dedupe and failure counting"""

    def test_creates_open_alerts(self, alert_repo):
        result = AlertMaterializer(alert_repo).materialize_all("fuel_anomaly", [_indicator("t-1"), _indicator("t-2")])

        assert result.detected == 2
        assert result.alerts_created == 2
        stored = alert_repo.list_alerts()
        assert {a.trip_id for a in stored} == {"t-1", "t-2"}
        assert all(a.status == "open" for a in stored)

    def test_rerun_duplicates_without_dedupe(self, alert_repo):
        materializer = AlertMaterializer(alert_repo)
        materializer.materialize_all("fuel_anomaly", [_indicator()])
        materializer.materialize_all("fuel_anomaly", [_indicator()])
        assert len(alert_repo.list_alerts()) == 2

    def test_dedupe_suppresses_same_fingerprint(self, alert_repo):
        materializer = AlertMaterializer(alert_repo, config=AlertConfig(DEDUPE_ENABLED=True))
        materializer.materialize_all("fuel_anomaly", [_indicator()])
        result = materializer.materialize_all("fuel_anomaly", [_indicator(), _indicator("t-9")])

        assert result.skipped_duplicates == 1
        assert result.alerts_created == 1
        assert len(alert_repo.list_alerts()) == 2

    def test_failed_insert_does_not_stop_batch(self):
        repo = MagicMock(spec=AlertRepository)
        repo.create_alert.side_effect = [
            StoreWriteError("rejected"),
            FraudAlert(id="a-2", type="fuel_anomaly", severity="high", status="open", title="t"),
        ]
        result = AlertMaterializer(repo).materialize_all("fuel_anomaly", [_indicator("t-1"), _indicator("t-2")])

        assert result.failed == 1
        assert result.alerts_created == 1
        assert result.detected == 2

    def test_notifier_receives_alert_and_failures_are_contained(self, alert_repo):
        notifier = MagicMock()
        notifier.notify.side_effect = RuntimeError("broker down")
        result = AlertMaterializer(alert_repo, notifier=notifier).materialize_all("fuel_anomaly", [_indicator()], "c-1")

        assert result.alerts_created == 1
        alert_dict, company_id = notifier.notify.call_args[0]
        assert alert_dict["type"] == "fuel_anomaly"
        assert company_id == "c-1"
