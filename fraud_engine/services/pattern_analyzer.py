"""
Pattern Analyzer Service - temporal, entity and correlation patterns in fraud alerts

Usage:
    analyzer = PatternAnalyzer(fleet_repo, alert_repo)
    patterns = analyzer.analyze_company("c-1", days=30)

    # Or on alerts already in hand
    PatternAnalyzer().correlation_patterns(alerts)

Correlation compares every ordered pair of alerts within one hour of each
other. Alerts are sorted by created_at so the inner loop stops at the first
alert outside the window, but the pass is still quadratic in the number of
alerts inside any one-hour span. Fine for dashboard windows of a few hundred
alerts; not meant for bulk volumes.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from config import ANALYTICS, TIMEZONE, AnalyticsConfig
from fraud_engine.models import FraudAlert
from fraud_engine.repositories import AlertRepository, FleetRepository
from fraud_engine.timezone_utils import isoformat, to_fleet_local, utc_now

logger = structlog.get_logger(__name__)

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _top(counter: Counter, n: int) -> List[List[Any]]:
    # Ties keep first-seen order
    return [[key, count] for key, count in counter.most_common(n)]


class PatternAnalyzer:
    """Aggregates fraud alerts into hot spots"""

    def __init__(
        self,
        fleet_repo: Optional[FleetRepository] = None,
        alert_repo: Optional[AlertRepository] = None,
        config: AnalyticsConfig = ANALYTICS,
        tz_name: Optional[str] = None,
    ):
        self.fleet_repo = fleet_repo
        self.alert_repo = alert_repo
        self.config = config
        self.tz_name = tz_name or TIMEZONE.FLEET_TZ
        logger.debug("PatternAnalyzer initialized", tz=self.tz_name)

    def temporal_patterns(self, alerts: List[FraudAlert]) -> Dict[str, Any]:
        """
        Hour-of-day and day-of-week buckets (fleet local time), top peaks,
        off-hours count and alerts per week (weeks start on Sunday).
        """
        hourly: Counter = Counter()
        daily: Counter = Counter()
        weekly: Counter = Counter()
        for alert in alerts:
            if alert.created_at is None:
                continue
            local = to_fleet_local(alert.created_at, self.tz_name)
            hourly[local.hour] += 1
            daily[DAY_NAMES[local.weekday()]] += 1
            week_start = local.date() - timedelta(days=(local.weekday() + 1) % 7)
            weekly[week_start.isoformat()] += 1

        return {
            "peak_hours": _top(hourly, self.config.TOP_PEAKS),
            "peak_days": _top(daily, self.config.TOP_PEAKS),
            "weekly_trend": dict(sorted(weekly.items())),
            "hourly_distribution": {hour: hourly[hour] for hour in sorted(hourly)},
            "off_hours_alerts": sum(hourly[h] for h in self.config.OFF_HOURS),
        }

    def entity_patterns(
        self,
        alerts: List[FraudAlert],
        vehicle_names: Optional[Dict[str, str]] = None,
        driver_names: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        vehicle_names = vehicle_names or {}
        driver_names = driver_names or {}
        vehicle_stats: Dict[str, Dict[str, Any]] = {}
        driver_stats: Dict[str, Dict[str, Any]] = {}

        for alert in alerts:
            for entity_id, stats, names in (
                (alert.vehicle_id, vehicle_stats, vehicle_names),
                (alert.driver_id, driver_stats, driver_names),
            ):
                if not entity_id:
                    continue
                entry = stats.setdefault(
                    entity_id,
                    {"id": entity_id, "name": names.get(entity_id, entity_id), "total": 0, "types": {}, "severity": {}},
                )
                entry["total"] += 1
                entry["types"][alert.type] = entry["types"].get(alert.type, 0) + 1
                entry["severity"][alert.severity] = entry["severity"].get(alert.severity, 0) + 1

        def ranked(stats: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
            return sorted(stats.values(), key=lambda s: s["total"], reverse=True)[: self.config.TOP_ENTITIES]

        return {
            "vehicle_patterns": {
                "high_risk_vehicles": ranked(vehicle_stats),
                "alert_distribution": {k: v["total"] for k, v in vehicle_stats.items()},
            },
            "driver_patterns": {
                "high_risk_drivers": ranked(driver_stats),
            },
        }

    def correlation_patterns(self, alerts: List[FraudAlert]) -> Dict[str, Any]:
        timed = sorted((a for a in alerts if a.created_at is not None), key=lambda a: a.created_at)
        window = timedelta(minutes=self.config.CORRELATION_WINDOW_MINUTES)

        combinations: Counter = Counter()
        for i, first in enumerate(timed):
            limit = first.created_at + window
            for second in timed[i + 1:]:
                if second.created_at > limit:
                    break
                combinations[f"{first.type} + {second.type}"] += 1

        return {
            "frequent_combinations": [
                {"pattern": pattern, "count": count}
                for pattern, count in combinations.most_common(self.config.TOP_CORRELATIONS)
            ]
        }

    def analyze(
        self,
        alerts: List[FraudAlert],
        vehicle_names: Optional[Dict[str, str]] = None,
        driver_names: Optional[Dict[str, str]] = None,
        pattern_type: str = "all",
    ) -> Dict[str, Any]:
        patterns: Dict[str, Any] = {}
        if pattern_type in ("all", "temporal"):
            patterns["temporal_patterns"] = self.temporal_patterns(alerts)
        if pattern_type in ("all", "entity", "vehicle", "driver"):
            patterns.update(self.entity_patterns(alerts, vehicle_names, driver_names))
        if pattern_type in ("all", "correlation"):
            patterns["correlation_patterns"] = self.correlation_patterns(alerts)
        return patterns

    def analyze_company(
        self,
        company_id: Optional[str] = None,
        days: Optional[int] = None,
        pattern_type: str = "all",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        days = days or self.config.WINDOW_DAYS
        now = now or utc_now()
        scope = self.fleet_repo.resolve_scope(company_id)
        alerts = self.alert_repo.list_alerts(
            vehicle_ids=scope.vehicle_ids,
            driver_ids=scope.driver_ids,
            since=now - timedelta(days=days),
            order_by=("created_at", "asc"),
        )
        patterns = self.analyze(
            alerts,
            vehicle_names={v.id: v.display_name for v in scope.vehicles.values()},
            driver_names={d.id: d.display_name for d in scope.drivers.values()},
            pattern_type=pattern_type,
        )
        logger.info(
            "Fraud patterns analyzed",
            company_id=company_id,
            days=days,
            alerts=len(alerts),
            pattern_type=pattern_type,
        )
        return {
            "period": f"{days} days",
            "generated_at": isoformat(now),
            "total_alerts_analyzed": len(alerts),
            "patterns": patterns,
        }
