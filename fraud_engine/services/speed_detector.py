"""
Speed Violation Detector

Batch scan: GPS positions above the speed threshold in the last 24h.
    high   speed > threshold * BATCH_ESCALATION_FACTOR (1.5)
    medium otherwise

Real-time check: the last few minutes of positions, or a single position.
    critical speed > threshold * REALTIME_ESCALATION_FACTOR (1.2)
    high     otherwise
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from config import SPEED, SpeedConfig
from fraud_engine.exceptions import StoreUnavailableError
from fraud_engine.models import AlertType, GPSPosition, Indicator, Trip, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.geometry import coordinates
from fraud_engine.services.severity_rules import batch_speed_severity, realtime_speed_severity
from fraud_engine.timezone_utils import isoformat, utc_now

logger = logging.getLogger(__name__)


def _speed_indicator(
    position: GPSPosition,
    vehicle: Vehicle,
    trip: Optional[Trip],
    threshold: float,
    severity,
) -> Indicator:
    point = coordinates(position.location)
    return Indicator(
        type="speed_violation",
        category=AlertType.SPEED_VIOLATION,
        severity=severity,
        title=f"Speed Violation: {position.speed:.0f} km/h",
        reason=(
            f"Vehicle {vehicle.display_name} recorded {position.speed:.1f} km/h, "
            f"above the {threshold:.0f} km/h limit"
        ),
        vehicle_id=vehicle.id,
        driver_id=trip.driver_id if trip else None,
        trip_id=position.trip_id,
        details={
            "speed": position.speed,
            "speed_limit": threshold,
            "excess_speed": round(position.speed - threshold, 1),
            "location": {"lat": point[0], "lng": point[1]} if point else None,
            "timestamp": isoformat(position.timestamp),
            "gps_id": position.id,
        },
        observed_at=position.timestamp,
    )


def find_speed_violations(
    positions: List[GPSPosition],
    vehicles: Dict[str, Vehicle],
    trips: Dict[str, Trip],
    threshold: float,
    escalation_factor: float,
) -> List[Indicator]:
    """Every returned indicator has details.speed > threshold"""
    indicators = []
    for position in positions:
        if position.speed <= threshold:
            continue
        vehicle = vehicles.get(position.vehicle_id)
        if vehicle is None:
            continue
        trip = trips.get(position.trip_id) if position.trip_id else None
        severity = batch_speed_severity(position.speed, threshold, escalation_factor)
        indicators.append(_speed_indicator(position, vehicle, trip, threshold, severity))
    return indicators


def check_realtime_speed(
    position: GPSPosition,
    vehicle: Vehicle,
    trip: Optional[Trip] = None,
    threshold: float = SPEED.THRESHOLD_KMH,
    escalation_factor: float = SPEED.REALTIME_ESCALATION_FACTOR,
) -> Optional[Indicator]:
    """Evaluate one incoming position; None when within the limit"""
    if position.speed <= threshold:
        return None
    severity = realtime_speed_severity(position.speed, threshold, escalation_factor)
    return _speed_indicator(position, vehicle, trip, threshold, severity)


class SpeedViolationDetector(BaseDetector):
    """GPS speed scans"""

    name = "speed"

    def __init__(self, fleet_repo, trip_repo, config: SpeedConfig = SPEED, threshold: Optional[float] = None):
        super().__init__(fleet_repo, trip_repo=trip_repo)
        self.config = config
        self.threshold = threshold if threshold is not None else config.THRESHOLD_KMH

    def _scan(self, company_id: Optional[str], since: datetime):
        scope = self.fleet_repo.resolve_scope(company_id)
        positions = self.trip_repo.get_positions(
            vehicle_ids=scope.vehicle_ids, since=since, min_speed=self.threshold
        )
        trips = self.trip_repo.get_trips_by_ids(p.trip_id for p in positions)
        return scope, positions, trips

    def _detect(self, company_id, now):
        since = now - timedelta(hours=self.config.LOOKBACK_HOURS)
        scope, positions, trips = self._scan(company_id, since)
        return find_speed_violations(
            positions, scope.vehicles, trips, self.threshold, self.config.BATCH_ESCALATION_FACTOR
        )

    def detect_realtime(self, company_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Indicator]:
        """Recent positions (last REALTIME_LOOKBACK_MINUTES) with real-time severity"""
        now = now or utc_now()
        since = now - timedelta(minutes=self.config.REALTIME_LOOKBACK_MINUTES)
        try:
            scope, positions, trips = self._scan(company_id, since)
        except StoreUnavailableError as e:
            logger.warning(f"Real-time speed check skipped, store unavailable: {e}")
            return []

        indicators = []
        for position in positions:
            vehicle = scope.vehicle(position.vehicle_id)
            if vehicle is None:
                continue
            indicator = check_realtime_speed(
                position,
                vehicle,
                trips.get(position.trip_id),
                self.threshold,
                self.config.REALTIME_ESCALATION_FACTOR,
            )
            if indicator:
                indicators.append(indicator)
        return indicators
