"""
After-Hours Usage Detector

A trip is after hours when its local start hour is >= 22 OR <= 6. The two
one-sided conditions together span midnight.
"""

from datetime import timedelta
from typing import Dict, List, Optional

from config import TIMEZONE, USAGE, UsageConfig
from fraud_engine.models import AlertType, Indicator, Trip, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.severity_rules import rule_severity
from fraud_engine.timezone_utils import isoformat, to_fleet_local


def is_after_hours(hour: int, start_hour: int, end_hour: int) -> bool:
    return hour >= start_hour or hour <= end_hour


def find_after_hours_usage(
    trips: List[Trip],
    vehicles: Dict[str, Vehicle],
    config: UsageConfig = USAGE,
    tz_name: Optional[str] = None,
) -> List[Indicator]:
    tz_name = tz_name or TIMEZONE.FLEET_TZ
    indicators = []
    for trip in trips:
        if trip.start_time is None or trip.vehicle_id not in vehicles:
            continue
        local_start = to_fleet_local(trip.start_time, tz_name)
        if not is_after_hours(local_start.hour, config.AFTER_HOURS_START, config.AFTER_HOURS_END):
            continue
        indicators.append(
            Indicator(
                type="after_hours_usage",
                category=AlertType.AFTER_HOURS_USAGE,
                severity=rule_severity("after_hours_usage"),
                title=f"After Hours Usage: trip started at {local_start:%H:%M}",
                reason=f"Trip started outside business hours at {local_start:%Y-%m-%d %H:%M} ({tz_name})",
                vehicle_id=trip.vehicle_id,
                driver_id=trip.driver_id,
                trip_id=trip.id,
                details={
                    "start_time": isoformat(trip.start_time),
                    "local_start_hour": local_start.hour,
                    "timezone": tz_name,
                },
                observed_at=trip.start_time,
            )
        )
    return indicators


class AfterHoursUsageDetector(BaseDetector):
    name = "after_hours"

    def __init__(self, fleet_repo, trip_repo, config: UsageConfig = USAGE, tz_name: Optional[str] = None):
        super().__init__(fleet_repo, trip_repo=trip_repo)
        self.config = config
        self.tz_name = tz_name

    def _detect(self, company_id, now):
        scope = self.fleet_repo.resolve_scope(company_id)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            since=now - timedelta(days=self.config.LOOKBACK_DAYS),
        )
        return find_after_hours_usage(trips, scope.vehicles, self.config, self.tz_name)
