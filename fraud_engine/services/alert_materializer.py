"""
Alert Materializer - Indicator → persisted fraud alert

One insert per indicator, independent of the others: a failed insert is
logged and counted, the rest of the batch still goes through. With
ALERTS.DEDUPE_ENABLED the indicator fingerprint is looked up first and an
existing alert suppresses the insert; otherwise re-running a detector over an
overlapping window creates duplicate alerts.
"""

import logging
from typing import Any, Dict, List, Optional

from config import ALERTS, AlertConfig
from fraud_engine.exceptions import StoreError
from fraud_engine.models import AlertStatus, DetectionResult, FraudAlert, Indicator
from fraud_engine.repositories import AlertRepository
from fraud_engine.services.notification_service import NotificationService
from logger_config import log_fraud_alert

logger = logging.getLogger(__name__)


class AlertMaterializer:
    """Creates fraud_alerts rows from indicators"""

    def __init__(
        self,
        alert_repo: AlertRepository,
        notifier: Optional[NotificationService] = None,
        config: AlertConfig = ALERTS,
    ):
        self.alert_repo = alert_repo
        self.notifier = notifier
        self.config = config

    def build_draft(self, indicator: Indicator) -> Dict[str, Any]:
        details = dict(indicator.details)
        details["indicator_type"] = indicator.type
        details["reason"] = indicator.reason
        return {
            "type": indicator.category.value,
            "severity": indicator.severity.value,
            "status": AlertStatus.OPEN.value,
            "title": indicator.title or indicator.category.label,
            "description": indicator.reason,
            "vehicle_id": indicator.vehicle_id,
            "driver_id": indicator.driver_id,
            "trip_id": indicator.trip_id,
            "fuel_transaction_id": indicator.fuel_transaction_id,
            "details": details,
            "fingerprint": indicator.fingerprint(self.config.FINGERPRINT_BUCKET_HOURS),
        }

    def materialize(self, indicator: Indicator, company_id: Optional[str] = None) -> Optional[FraudAlert]:
        """
        Insert one alert. Returns None when the insert was suppressed as a
        duplicate; raises StoreError when the insert failed.
        """
        draft = self.build_draft(indicator)
        if self.config.DEDUPE_ENABLED:
            existing = self.alert_repo.find_by_fingerprint(draft["fingerprint"])
            if existing is not None:
                logger.debug(f"Duplicate {indicator.type} suppressed (alert {existing.id})")
                return None

        alert = self.alert_repo.create_alert(draft)
        log_fraud_alert(alert.type, {"id": alert.id, "rule": indicator.type, "severity": alert.severity})

        if self.notifier is not None:
            try:
                self.notifier.notify(alert.to_dict(), company_id)
            except Exception as e:
                logger.warning(f"Notification for alert {alert.id} failed: {e}")
        return alert

    def materialize_all(
        self, detector: str, indicators: List[Indicator], company_id: Optional[str] = None
    ) -> DetectionResult:
        result = DetectionResult(detector=detector, indicators=list(indicators))
        for indicator in indicators:
            try:
                alert = self.materialize(indicator, company_id)
            except StoreError as e:
                result.failed += 1
                logger.error(f"{detector}: could not create alert for {indicator.type}: {e}")
                continue
            if alert is None:
                result.skipped_duplicates += 1
            else:
                result.alerts.append(alert)

        logger.info(
            f"{detector}: {result.detected} detected, {result.alerts_created} alerts created"
            + (f", {result.failed} failed" if result.failed else "")
            + (f", {result.skipped_duplicates} duplicates skipped" if result.skipped_duplicates else "")
        )
        return result
