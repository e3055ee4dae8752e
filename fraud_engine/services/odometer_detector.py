"""
Odometer Tampering Detector

Completed trips per vehicle, ordered by end_time. For each consecutive pair
(prev, next):
    odometer_rollback             next.start_odometer < prev.end_odometer        high
    impossible_odometer_increase  increase > hours_between * 120 km/h            medium
    odometer_distance_mismatch    next.distance > 10 km and the increase
                                  (next.start - prev.end) differs from it by
                                  more than 30%                                 medium
For each fuel receipt with an odometer reading:
    fuel_odometer_mismatch        > 50 km off the start odometer of the closest
                                  trip starting within 12h                       medium
"""

from datetime import timedelta
from typing import Dict, List

from config import ODOMETER, OdometerConfig
from fraud_engine.models import AlertType, FuelTransaction, Indicator, Trip, TripStatus
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.severity_rules import rule_severity
from fraud_engine.timezone_utils import isoformat


def _indicator(rule: str, title: str, reason: str, trip: Trip, details: Dict, **refs) -> Indicator:
    return Indicator(
        type=rule,
        category=AlertType.ODOMETER_TAMPERING,
        severity=rule_severity(rule),
        title=f"Odometer Tampering: {title}",
        reason=reason,
        vehicle_id=trip.vehicle_id,
        driver_id=refs.get("driver_id", trip.driver_id),
        trip_id=refs.get("trip_id", trip.id),
        fuel_transaction_id=refs.get("fuel_transaction_id"),
        details=details,
        observed_at=trip.start_time or trip.end_time,
    )


def _check_pair(prev: Trip, current: Trip, config: OdometerConfig) -> List[Indicator]:
    indicators = []
    previous_odometer = prev.end_odometer
    current_odometer = current.start_odometer
    if previous_odometer is None or current_odometer is None:
        return indicators

    if current_odometer < previous_odometer:
        indicators.append(
            _indicator(
                "odometer_rollback",
                "odometer rollback",
                f"Odometer reading decreased from {previous_odometer:g} to {current_odometer:g}",
                current,
                {
                    "previous_odometer": previous_odometer,
                    "current_odometer": current_odometer,
                    "difference": previous_odometer - current_odometer,
                    "expected_minimum": previous_odometer,
                    "previous_trip_id": prev.id,
                },
            )
        )

    increase = current_odometer - previous_odometer
    if prev.end_time is not None and current.start_time is not None:
        hours = (current.start_time - prev.end_time).total_seconds() / 3600
        max_possible = hours * config.MAX_AVERAGE_SPEED_KMH
        if max_possible > 0 and increase > max_possible:
            indicators.append(
                _indicator(
                    "impossible_odometer_increase",
                    "impossible odometer increase",
                    (
                        f"Odometer increased {increase:g} km in {hours:.2f} hours, "
                        f"more than the {max_possible:.0f} km possible"
                    ),
                    current,
                    {
                        "time_diff_hours": round(hours, 2),
                        "odometer_increase": increase,
                        "max_possible_distance": round(max_possible, 2),
                        "excess_distance": round(increase - max_possible, 2),
                        "previous_trip_id": prev.id,
                    },
                )
            )

    distance = current.distance_traveled
    if distance is not None and distance > config.MIN_TRIP_DISTANCE_KM:
        variance = abs(increase - distance)
        if variance > config.DISTANCE_TOLERANCE * distance:
            indicators.append(
                _indicator(
                    "odometer_distance_mismatch",
                    "odometer distance mismatch",
                    f"Odometer change of {increase:g} km does not match trip distance {distance:g} km",
                    current,
                    {
                        "trip_distance": distance,
                        "odometer_difference": increase,
                        "variance_percentage": round(variance / distance * 100, 1),
                        "previous_trip_id": prev.id,
                    },
                )
            )
    return indicators


def find_odometer_tampering(trips: List[Trip], config: OdometerConfig = ODOMETER) -> List[Indicator]:
    by_vehicle: Dict[str, List[Trip]] = {}
    for trip in trips:
        if trip.vehicle_id and trip.end_time is not None:
            by_vehicle.setdefault(trip.vehicle_id, []).append(trip)

    indicators = []
    for vehicle_id in sorted(by_vehicle):
        vehicle_trips = sorted(by_vehicle[vehicle_id], key=lambda t: t.end_time)
        for prev, current in zip(vehicle_trips, vehicle_trips[1:]):
            indicators.extend(_check_pair(prev, current, config))
    return indicators


def find_fuel_odometer_mismatches(
    transactions: List[FuelTransaction],
    trips: List[Trip],
    config: OdometerConfig = ODOMETER,
) -> List[Indicator]:
    window_seconds = config.FUEL_MATCH_WINDOW_HOURS * 3600
    indicators = []
    for tx in transactions:
        if tx.odometer_reading is None or tx.transaction_date is None:
            continue
        candidates = [
            t for t in trips
            if t.vehicle_id == tx.vehicle_id
            and t.start_time is not None
            and t.start_odometer is not None
            and abs((t.start_time - tx.transaction_date).total_seconds()) <= window_seconds
        ]
        if not candidates:
            continue
        closest = min(candidates, key=lambda t: abs((t.start_time - tx.transaction_date).total_seconds()))
        difference = abs(tx.odometer_reading - closest.start_odometer)
        if difference <= config.FUEL_ODOMETER_TOLERANCE_KM:
            continue
        indicators.append(
            _indicator(
                "fuel_odometer_mismatch",
                "fuel odometer mismatch",
                (
                    f"Fuel receipt odometer {tx.odometer_reading:g} differs from trip "
                    f"odometer {closest.start_odometer:g} by {difference:g} km"
                ),
                closest,
                {
                    "fuel_odometer": tx.odometer_reading,
                    "trip_odometer": closest.start_odometer,
                    "difference": difference,
                    "transaction_date": isoformat(tx.transaction_date),
                },
                driver_id=tx.driver_id or closest.driver_id,
                fuel_transaction_id=tx.id,
            )
        )
    return indicators


class OdometerTamperingDetector(BaseDetector):
    name = "odometer"

    def __init__(self, fleet_repo, trip_repo, fuel_repo, config: OdometerConfig = ODOMETER):
        super().__init__(fleet_repo, trip_repo=trip_repo, fuel_repo=fuel_repo)
        self.config = config

    def _detect(self, company_id, now):
        since = now - timedelta(days=self.config.LOOKBACK_DAYS)
        scope = self.fleet_repo.resolve_scope(company_id)
        completed = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            statuses=[TripStatus.COMPLETED.value],
            since=since,
            time_field="end_time",
            order_by=("end_time", "asc"),
        )
        completed = [t for t in completed if t.vehicle_id in scope.vehicles]
        indicators = find_odometer_tampering(completed, self.config)

        match_window = timedelta(hours=self.config.FUEL_MATCH_WINDOW_HOURS)
        transactions = self.fuel_repo.get_transactions(vehicle_ids=scope.vehicle_ids, since=since)
        nearby_trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids, since=since - match_window
        )
        indicators.extend(find_fuel_odometer_mismatches(transactions, nearby_trips, self.config))
        return indicators
