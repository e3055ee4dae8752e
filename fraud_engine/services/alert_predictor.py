"""
Alert Predictor Service - escalation risk for open alerts and next-week volume

Escalation risk of an open alert:

    risk = min(1, days_open / avg_resolution_days) * severity multiplier

capped at 1, where avg_resolution_days is the mean resolution time of
resolved alerts with the same type and severity (7 days when there are none).
Only alerts with risk > 0.3 are reported.

Volume: alerts are bucketed into weeks by age (week 0 = the last 7 days) over
the last 12 weeks; with at least 3 weeks of data the next week is predicted as
the mean of the 3 most recent weeks that had alerts.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import numpy as np
import structlog

from config import ANALYTICS, AnalyticsConfig
from fraud_engine.models import AlertStatus, FraudAlert, Severity
from fraud_engine.repositories import AlertRepository, FleetRepository
from fraud_engine.timezone_utils import isoformat, utc_now

logger = structlog.get_logger(__name__)

SEVERITY_MULTIPLIER = {
    Severity.LOW.value: 0.8,
    Severity.MEDIUM.value: 1.0,
    Severity.HIGH.value: 1.3,
    Severity.CRITICAL.value: 1.5,
}

RECOMMENDED_ACTIONS = {
    "speed_violation": [
        "Review driver training records",
        "Schedule driving behavior counseling",
        "Consider GPS speed monitoring enhancement",
    ],
    "fuel_anomaly": [
        "Audit fuel transaction records",
        "Verify fuel card usage patterns",
        "Check vehicle fuel capacity against transaction amounts",
    ],
    "route_deviation": [
        "Review trip justification with driver",
        "Analyze route optimization opportunities",
        "Check for unauthorized stops or detours",
    ],
    "after_hours_usage": [
        "Verify business justification for after-hours use",
        "Review employee authorization records",
        "Consider implementing stricter vehicle access controls",
    ],
}
DEFAULT_ACTIONS = ["Investigate alert details", "Review related documentation"]
URGENT_ACTION = "URGENT: Immediate management review required"

_PENDING = {AlertStatus.OPEN.value, AlertStatus.INVESTIGATING.value}


def recommended_actions(alert_type: str, risk: float, urgent_above: float = 0.7) -> List[str]:
    actions = list(RECOMMENDED_ACTIONS.get(alert_type, DEFAULT_ACTIONS))
    if risk > urgent_above:
        actions.insert(0, URGENT_ACTION)
    return actions


def _days(delta: timedelta) -> float:
    return delta.total_seconds() / 86400


class AlertPredictor:
    """Heuristic forecasts over a company's alert history"""

    def __init__(
        self,
        fleet_repo: Optional[FleetRepository] = None,
        alert_repo: Optional[AlertRepository] = None,
        config: AnalyticsConfig = ANALYTICS,
    ):
        self.fleet_repo = fleet_repo
        self.alert_repo = alert_repo
        self.config = config

    def confidence(self, probability: float) -> str:
        if probability > self.config.HIGH_CONFIDENCE:
            return "high"
        if probability > self.config.MEDIUM_CONFIDENCE:
            return "medium"
        return "low"

    def average_resolution_days(self, history: List[FraudAlert], alert_type: str, severity: str) -> float:
        durations = [
            _days(a.resolved_at - a.created_at)
            for a in history
            if a.type == alert_type
            and a.severity == severity
            and a.status == AlertStatus.RESOLVED.value
            and a.resolved_at is not None
            and a.created_at is not None
        ]
        if not durations:
            return self.config.DEFAULT_RESOLUTION_DAYS
        mean = float(np.mean(durations))
        # Same-instant resolutions would make every open alert maximally urgent
        return mean if mean > 0 else self.config.DEFAULT_RESOLUTION_DAYS

    def escalation_predictions(
        self, history: List[FraudAlert], horizon_days: int, now: datetime
    ) -> List[Dict[str, Any]]:
        predictions = []
        for alert in history:
            if alert.status not in _PENDING or alert.created_at is None:
                continue
            days_open = max(_days(now - alert.created_at), 0.0)
            average = self.average_resolution_days(history, alert.type, alert.severity)
            risk = min(1.0, days_open / average) * SEVERITY_MULTIPLIER.get(alert.severity, 1.0)
            risk = min(1.0, risk)
            if risk <= self.config.ESCALATION_MIN_PROBABILITY:
                continue
            predictions.append({
                "type": "risk_escalation",
                "alert_id": alert.id,
                "alert_type": alert.type,
                "current_severity": alert.severity,
                "days_open": round(days_open, 1),
                "average_resolution_days": round(average, 2),
                "escalation_probability": round(risk, 3),
                "predicted_escalation_date": isoformat(now + timedelta(days=horizon_days)),
                "recommended_actions": recommended_actions(alert.type, risk, self.config.URGENT_PROBABILITY),
                "confidence": self.confidence(risk),
            })
        return predictions

    def volume_prediction(self, history: List[FraudAlert], now: datetime) -> Optional[Dict[str, Any]]:
        weeks: Counter = Counter()
        for alert in history:
            if alert.created_at is None:
                continue
            week = int(_days(now - alert.created_at) // 7)
            if 0 <= week < self.config.VOLUME_HISTORY_WEEKS:
                weeks[week] += 1

        if len(weeks) < 3:
            return None

        recent = sorted(weeks)[:3]
        predicted = int(round(float(np.mean([weeks[w] for w in recent]))))

        # Oldest → newest, including empty weeks, for the trend slope
        series = [weeks.get(w, 0) for w in range(max(weeks), -1, -1)]
        slope = float(np.polyfit(np.arange(len(series)), series, 1)[0]) if len(series) > 1 else 0.0
        if slope > 0.5:
            trend = "increasing"
        elif slope < -0.5:
            trend = "decreasing"
        else:
            trend = "stable"

        return {
            "type": "alert_volume_prediction",
            "predicted_alerts_next_week": predicted,
            "weeks_with_data": len(weeks),
            "weekly_trend": trend,
            "trend_slope": round(slope, 3),
            "confidence": "high" if len(weeks) >= 4 else "medium",
            "basis": "historical_weekly_pattern",
        }

    def predict(
        self,
        history: List[FraudAlert],
        prediction_type: str = "risk_escalation",
        horizon_days: int = 7,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utc_now()
        predictions: List[Dict[str, Any]] = []
        if prediction_type == "risk_escalation":
            predictions.extend(self.escalation_predictions(history, horizon_days, now))
        volume = self.volume_prediction(history, now)
        if volume is not None:
            predictions.append(volume)

        predictions.sort(key=lambda p: p.get("escalation_probability", 0.0), reverse=True)
        return {
            "prediction_type": prediction_type,
            "horizon_days": horizon_days,
            "generated_at": isoformat(now),
            "total_predictions": len(predictions),
            "high_confidence_predictions": sum(1 for p in predictions if p["confidence"] == "high"),
            "predictions": predictions,
        }

    def predict_company(
        self,
        company_id: Optional[str] = None,
        prediction_type: str = "risk_escalation",
        horizon_days: int = 7,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utc_now()
        scope = self.fleet_repo.resolve_scope(company_id)
        history = self.alert_repo.list_alerts(
            vehicle_ids=scope.vehicle_ids,
            driver_ids=scope.driver_ids,
            since=now - timedelta(days=self.config.PREDICTION_HISTORY_DAYS),
        )
        result = self.predict(history, prediction_type, horizon_days, now)
        logger.info(
            "Fraud predictions generated",
            company_id=company_id,
            history=len(history),
            predictions=result["total_predictions"],
        )
        return result
