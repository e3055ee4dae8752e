"""
Route Deviation Detector

deviation = |actual_distance - expected_distance| / expected_distance
flagged above 0.2; high above 0.5, medium otherwise.
"""

from datetime import timedelta
from typing import Dict, List

from config import ROUTE, RouteConfig
from fraud_engine.models import AlertType, Indicator, Route, Trip, TripStatus, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.severity_rules import route_deviation_severity

ROUTED_STATUSES = (TripStatus.IN_PROGRESS.value, TripStatus.COMPLETED.value)


def find_route_deviations(
    trips: List[Trip],
    routes: Dict[str, Route],
    vehicles: Dict[str, Vehicle],
    config: RouteConfig = ROUTE,
) -> List[Indicator]:
    indicators = []
    for trip in trips:
        if trip.status not in ROUTED_STATUSES or trip.vehicle_id not in vehicles:
            continue
        route = routes.get(trip.route_id) if trip.route_id else None
        if route is None or not route.expected_distance or route.expected_distance <= 0:
            continue
        if trip.distance_traveled is None:
            continue

        expected = route.expected_distance
        actual = trip.distance_traveled
        deviation = abs(actual - expected) / expected
        if deviation <= config.DEVIATION_THRESHOLD:
            continue

        percentage = round(deviation * 100, 1)
        indicators.append(
            Indicator(
                type="route_deviation",
                category=AlertType.ROUTE_DEVIATION,
                severity=route_deviation_severity(deviation, config.HIGH_DEVIATION_THRESHOLD),
                title=f"Route Deviation: {percentage}%",
                reason=(
                    f"Trip travelled {actual:.1f} km on route "
                    f"{route.name or route.id} planned for {expected:.1f} km"
                ),
                vehicle_id=trip.vehicle_id,
                driver_id=trip.driver_id,
                trip_id=trip.id,
                details={
                    "deviation_percentage": percentage,
                    "expected_distance": expected,
                    "actual_distance": actual,
                    "route_id": route.id,
                    "route_name": route.name,
                },
                observed_at=trip.start_time,
            )
        )
    return indicators


class RouteDeviationDetector(BaseDetector):
    """In-progress and completed trips against their planned route"""

    name = "route_deviation"

    def __init__(self, fleet_repo, trip_repo, config: RouteConfig = ROUTE):
        super().__init__(fleet_repo, trip_repo=trip_repo)
        self.config = config

    def _detect(self, company_id, now):
        scope = self.fleet_repo.resolve_scope(company_id)
        routes = self.fleet_repo.get_route_map(company_id)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            statuses=ROUTED_STATUSES,
            since=now - timedelta(days=self.config.LOOKBACK_DAYS),
        )
        return find_route_deviations(trips, routes, scope.vehicles, self.config)
