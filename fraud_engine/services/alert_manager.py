"""
Alert Manager - operator-facing alert listing, manual creation and updates

Status is a plain field: any of open / investigating / resolved /
false_positive can be set from any other. Setting resolved stamps
resolved_at unless the caller supplies one.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, Optional

from fraud_engine.exceptions import AlertNotFoundError
from fraud_engine.models import AlertStatus, AlertType, FraudAlert, Severity
from fraud_engine.repositories import AlertRepository, FleetRepository
from fraud_engine.services.notification_service import NotificationService
from fraud_engine.timezone_utils import parse_timestamp, utc_now
from logger_config import log_fraud_alert

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {"created_at", "updated_at", "severity", "status", "type", "resolved_at"}
UPDATABLE_FIELDS = ("status", "severity", "assigned_to", "resolution_notes")


class AlertManager:
    """CRUD over fraud alerts for one company at a time"""

    def __init__(
        self,
        alert_repo: AlertRepository,
        fleet_repo: FleetRepository,
        notifier: Optional[NotificationService] = None,
    ):
        self.alert_repo = alert_repo
        self.fleet_repo = fleet_repo
        self.notifier = notifier

    def list_alerts(
        self,
        company_id: Optional[str] = None,
        status: Optional[str] = None,
        alert_type: Optional[str] = None,
        severity: Optional[str] = None,
        vehicle_id: Optional[str] = None,
        driver_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        if sort_by not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort alerts by {sort_by}")
        if sort_order not in ("asc", "desc"):
            raise ValueError(f"sort_order must be asc or desc, got {sort_order}")

        start_date, end_date = parse_timestamp(start_date), parse_timestamp(end_date)
        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = AlertStatus(status).value
        if alert_type:
            filters["type"] = AlertType(alert_type).value
        if severity:
            filters["severity"] = Severity(severity).value
        if vehicle_id:
            filters["vehicle_id"] = vehicle_id
        if driver_id:
            filters["driver_id"] = driver_id

        scope = self.fleet_repo.resolve_scope(company_id)
        alerts = self.alert_repo.list_alerts(
            filters,
            vehicle_ids=scope.vehicle_ids,
            driver_ids=scope.driver_ids,
            since=start_date,
            order_by=(sort_by, sort_order),
        )
        if end_date is not None:
            alerts = [a for a in alerts if a.created_at is not None and a.created_at <= end_date]

        page = max(page, 1)
        limit = max(limit, 1)
        offset = (page - 1) * limit
        return {
            "data": [a.to_dict() for a in alerts[offset:offset + limit]],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": len(alerts),
                "pages": math.ceil(len(alerts) / limit),
            },
        }

    def get_alert(self, alert_id: str, company_id: Optional[str] = None) -> FraudAlert:
        alert = self.alert_repo.get_alert(alert_id)
        if alert is None or not self._in_company(alert, company_id):
            raise AlertNotFoundError(alert_id)
        return alert

    def create_alert(self, payload: Dict[str, Any], company_id: Optional[str] = None) -> FraudAlert:
        """Manual alert entered by an operator"""
        alert_type = AlertType(payload["type"]).value
        severity = Severity(payload.get("severity") or Severity.MEDIUM.value).value
        title = (payload.get("title") or "").strip()
        description = (payload.get("description") or "").strip()
        if not title or not description:
            raise ValueError("title and description are required")

        scope = self.fleet_repo.resolve_scope(company_id)
        vehicle_id = payload.get("vehicle_id")
        if vehicle_id and company_id is not None and scope.vehicle(vehicle_id) is None:
            raise ValueError("Vehicle not found or does not belong to your company")

        record = {
            "type": alert_type,
            "severity": severity,
            "status": AlertStatus.OPEN.value,
            "title": title,
            "description": description,
            "vehicle_id": vehicle_id,
            "driver_id": payload.get("driver_id"),
            "trip_id": payload.get("trip_id"),
            "fuel_transaction_id": payload.get("fuel_transaction_id"),
            "details": payload.get("details") or {},
        }
        alert = self.alert_repo.create_alert(record)
        log_fraud_alert(alert.type, {"id": alert.id, "severity": alert.severity, "title": alert.title})

        if self.notifier is not None:
            try:
                self.notifier.notify(alert.to_dict(), company_id)
            except Exception as e:
                logger.warning(f"Notification for alert {alert.id} failed: {e}")
        return alert

    def update_alert(self, alert_id: str, changes: Dict[str, Any], company_id: Optional[str] = None) -> FraudAlert:
        existing = self.get_alert(alert_id, company_id)

        patch = {k: changes[k] for k in UPDATABLE_FIELDS if changes.get(k) is not None}
        if "status" in patch:
            patch["status"] = AlertStatus(patch["status"]).value
        if "severity" in patch:
            patch["severity"] = Severity(patch["severity"]).value
        if patch.get("status") == AlertStatus.RESOLVED.value:
            patch["resolved_at"] = changes.get("resolved_at") or utc_now()
        if not patch:
            return existing

        updated = self.alert_repo.update_alert(alert_id, patch)
        if updated is None:
            raise AlertNotFoundError(alert_id)
        logger.info(f"Fraud alert {alert_id} updated: status {existing.status} → {updated.status}")
        return updated

    def _in_company(self, alert: FraudAlert, company_id: Optional[str]) -> bool:
        if company_id is None:
            return True
        scope = self.fleet_repo.resolve_scope(company_id)
        return scope.vehicle(alert.vehicle_id) is not None or scope.driver(alert.driver_id) is not None
