"""
Geofence Violation Detector

Every active geofence of the company is checked against every GPS position
of the last 2 hours through a GeometryPredicate.
    inclusion fence, point outside  → outside_allowed_area   medium
    exclusion fence, point inside   → inside_restricted_area high
"""

import logging
from datetime import timedelta
from typing import Dict, List

from config import GEOFENCE, GeofenceConfig
from fraud_engine.models import AlertType, Geofence, GeofenceType, GPSPosition, Indicator, Trip, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.geometry import GeometryPredicate, PolygonGeometryPredicate, coordinates
from fraud_engine.services.severity_rules import geofence_severity
from fraud_engine.timezone_utils import isoformat

logger = logging.getLogger(__name__)

VIOLATION_TYPES = {
    GeofenceType.INCLUSION: "outside_allowed_area",
    GeofenceType.EXCLUSION: "inside_restricted_area",
}


def find_geofence_violations(
    geofences: List[Geofence],
    positions: List[GPSPosition],
    vehicles: Dict[str, Vehicle],
    trips: Dict[str, Trip],
    predicate: GeometryPredicate,
) -> List[Indicator]:
    indicators = []
    for fence in geofences:
        if not fence.is_active:
            continue
        for position in positions:
            vehicle = vehicles.get(position.vehicle_id)
            point = coordinates(position.location)
            if vehicle is None or point is None:
                continue
            try:
                result = predicate.check(point, fence.geometry, fence.type)
            except Exception as e:
                logger.warning(f"Geofence check failed for {fence.id} / gps {position.id}: {e}")
                continue
            if not result.is_violation:
                continue

            violation_type = VIOLATION_TYPES[fence.type]
            trip = trips.get(position.trip_id) if position.trip_id else None
            indicators.append(
                Indicator(
                    type=violation_type,
                    category=AlertType.SUSPICIOUS_LOCATION,
                    severity=geofence_severity(fence.type),
                    title=f"Geofence Violation: {fence.name}",
                    reason=(
                        f"Vehicle {vehicle.display_name} "
                        f"{'left allowed area' if fence.type == GeofenceType.INCLUSION else 'entered restricted area'} "
                        f"{fence.name}"
                    ),
                    vehicle_id=vehicle.id,
                    driver_id=trip.driver_id if trip else None,
                    trip_id=position.trip_id,
                    details={
                        "geofence_id": fence.id,
                        "geofence_name": fence.name,
                        "geofence_type": fence.type.value,
                        "violation_type": violation_type,
                        "location": {"lat": point[0], "lng": point[1]},
                        "distance": result.distance,
                        "timestamp": isoformat(position.timestamp),
                    },
                    observed_at=position.timestamp,
                )
            )
    return indicators


class GeofenceViolationDetector(BaseDetector):
    name = "geofence"

    def __init__(
        self,
        fleet_repo,
        trip_repo,
        predicate: GeometryPredicate = None,
        config: GeofenceConfig = GEOFENCE,
    ):
        super().__init__(fleet_repo, trip_repo=trip_repo)
        self.predicate = predicate or PolygonGeometryPredicate()
        self.config = config

    def _detect(self, company_id, now):
        geofences = self.fleet_repo.get_active_geofences(company_id)
        if not geofences:
            return []
        scope = self.fleet_repo.resolve_scope(company_id)
        positions = self.trip_repo.get_positions(
            vehicle_ids=scope.vehicle_ids,
            since=now - timedelta(hours=self.config.LOOKBACK_HOURS),
        )
        trips = self.trip_repo.get_trips_by_ids(p.trip_id for p in positions)
        return find_geofence_violations(geofences, positions, scope.vehicles, trips, self.predicate)
