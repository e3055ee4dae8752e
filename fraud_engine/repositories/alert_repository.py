"""
Alert Repository - fraud_alerts and fraud_alert_webhooks

Fraud alerts carry no company column; a company's alerts are the ones linked
to its vehicles or its drivers.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from fraud_engine.models import FraudAlert
from fraud_engine.repositories.record_store import RecordStore, sort_records

logger = logging.getLogger(__name__)


class AlertRepository:
    """Repository for fraud alerts and alert webhooks"""

    def __init__(self, store: RecordStore):
        self.store = store

    def create_alert(self, record: Dict[str, Any]) -> FraudAlert:
        row = self.store.insert("fraud_alerts", record)
        return FraudAlert.from_record(row)

    def get_alert(self, alert_id: str) -> Optional[FraudAlert]:
        row = self.store.get("fraud_alerts", alert_id)
        return FraudAlert.from_record(row) if row else None

    def update_alert(self, alert_id: str, patch: Dict[str, Any]) -> Optional[FraudAlert]:
        rows = self.store.update("fraud_alerts", patch, {"id": alert_id})
        return FraudAlert.from_record(rows[0]) if rows else None

    def find_by_fingerprint(self, fingerprint: str) -> Optional[FraudAlert]:
        rows = self.store.select("fraud_alerts", {"fingerprint": fingerprint}, limit=1)
        return FraudAlert.from_record(rows[0]) if rows else None

    def list_alerts(
        self,
        filters: Optional[Dict[str, Any]] = None,
        vehicle_ids: Optional[Iterable[str]] = None,
        driver_ids: Optional[Iterable[str]] = None,
        since: Optional[datetime] = None,
        order_by=("created_at", "desc"),
    ) -> List[FraudAlert]:
        """
        Alerts matching filters, scoped to vehicle_ids OR driver_ids when
        either is given (None for both means unscoped).
        """
        base = dict(filters or {})
        if since is not None:
            base["created_at"] = {"operator": "gte", "value": since}

        if vehicle_ids is None and driver_ids is None:
            rows = self.store.select("fraud_alerts", base, order_by=order_by)
        else:
            # OR across two columns: two reads merged by id
            merged: Dict[str, Dict[str, Any]] = {}
            for column, ids in (("vehicle_id", vehicle_ids), ("driver_id", driver_ids)):
                if ids is None:
                    continue
                ids = list(ids)
                scoped = dict(base)
                if column in base:
                    # Caller already pinned this column; keep it when inside the scope
                    if base[column] not in ids:
                        continue
                else:
                    scoped[column] = ids
                for row in self.store.select("fraud_alerts", scoped):
                    merged[row["id"]] = row
            rows = sort_records(list(merged.values()), order_by)

        return [FraudAlert.from_record(r) for r in rows]

    # ─── Webhooks ───────────────────────────────────────────────────────────

    def create_webhook(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self.store.insert("fraud_alert_webhooks", record)

    def get_webhook(self, webhook_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get("fraud_alert_webhooks", webhook_id)

    def get_active_webhooks(self, company_id: Optional[str]) -> List[Dict[str, Any]]:
        filters = {"is_active": True}
        if company_id:
            filters["company_id"] = company_id
        return self.store.select("fraud_alert_webhooks", filters)

    def mark_webhook_triggered(self, webhook_id: str, triggered_at: datetime) -> None:
        self.store.update(
            "fraud_alert_webhooks", {"last_triggered_at": triggered_at}, {"id": webhook_id}
        )
