"""
Fuel Card Misuse Detector

Fuel transactions over a trailing window (14 days by default), grouped by
driver and by vehicle.

    driver   excessive_daily_transactions    > 3 in one day                   high
    driver   excessive_location_diversity    > 10 distinct locations          medium
    driver   unusual_timing_pattern          > 30% at hour < 5 or > 23        medium
    vehicle  multiple_drivers_same_vehicle   > 5 distinct drivers             medium
    vehicle  rapid_consecutive_transactions  0 < gap < 30 min                 high
    vehicle  rapid_multiple_fueling          gap < 2h, fuel > capacity * 1.2  high
    receipt  fueling_without_trip            no linked trip, no trip of the
                                             vehicle starting within 24h      medium
"""

import json
from collections import Counter
from datetime import timedelta
from typing import Dict, List, Optional

from config import FUEL_CARD, TIMEZONE, FuelCardConfig
from fraud_engine.models import AlertType, FuelTransaction, Indicator, Trip, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.severity_rules import rule_severity
from fraud_engine.timezone_utils import isoformat, to_fleet_local


def _indicator(rule: str, reason: str, details: Dict, observed_at, **refs) -> Indicator:
    return Indicator(
        type=rule,
        category=AlertType.FUEL_CARD_MISUSE,
        severity=rule_severity(rule),
        title=f"Fuel Card Misuse: {rule.replace('_', ' ')}",
        reason=reason,
        vehicle_id=refs.get("vehicle_id"),
        driver_id=refs.get("driver_id"),
        trip_id=refs.get("trip_id"),
        fuel_transaction_id=refs.get("fuel_transaction_id"),
        details=details,
        observed_at=observed_at,
    )


def _location_key(location) -> Optional[str]:
    if location is None or location == "":
        return None
    if isinstance(location, str):
        return location
    return json.dumps(location, sort_keys=True)


def _driver_checks(
    driver_id: str, transactions: List[FuelTransaction], config: FuelCardConfig, tz_name: str
) -> List[Indicator]:
    indicators = []
    total = len(transactions)
    last_seen = transactions[-1].transaction_date
    local_times = [to_fleet_local(tx.transaction_date, tz_name) for tx in transactions]

    daily = Counter(t.date().isoformat() for t in local_times)
    max_daily = max(daily.values())
    if max_daily > config.MAX_DAILY_TRANSACTIONS:
        indicators.append(
            _indicator(
                "excessive_daily_transactions",
                f"Driver made {max_daily} fuel transactions in a single day",
                {
                    "max_transactions_per_day": max_daily,
                    "total_transactions": total,
                    "suspicious_dates": [
                        {"date": day, "count": count}
                        for day, count in sorted(daily.items())
                        if count > config.SUSPICIOUS_DAILY_TRANSACTIONS
                    ],
                },
                last_seen,
                driver_id=driver_id,
            )
        )

    locations = {key for key in (_location_key(tx.location) for tx in transactions) if key}
    if len(locations) > config.MAX_UNIQUE_LOCATIONS:
        indicators.append(
            _indicator(
                "excessive_location_diversity",
                f"Driver used fuel card at {len(locations)} different locations",
                {
                    "unique_locations_count": len(locations),
                    "total_transactions": total,
                    "location_variety_ratio": round(len(locations) / total, 2),
                },
                last_seen,
                driver_id=driver_id,
            )
        )

    unusual = sum(
        1 for t in local_times
        if t.hour < config.UNUSUAL_HOUR_BEFORE or t.hour > config.UNUSUAL_HOUR_AFTER
    )
    if unusual > total * config.UNUSUAL_TIMING_RATIO:
        indicators.append(
            _indicator(
                "unusual_timing_pattern",
                f"{unusual} transactions occurred at unusual hours (before 5 AM or after 11 PM)",
                {
                    "unusual_time_transactions": unusual,
                    "total_transactions": total,
                    "unusual_percentage": round(unusual / total * 100, 1),
                },
                last_seen,
                driver_id=driver_id,
            )
        )
    return indicators


def _vehicle_checks(
    vehicle: Vehicle, transactions: List[FuelTransaction], config: FuelCardConfig
) -> List[Indicator]:
    indicators = []
    drivers = sorted({tx.driver_id for tx in transactions if tx.driver_id})
    if len(drivers) > config.MAX_DRIVERS_PER_VEHICLE:
        indicators.append(
            _indicator(
                "multiple_drivers_same_vehicle",
                f"{len(drivers)} different drivers used fuel card for vehicle {vehicle.display_name}",
                {
                    "different_drivers_count": len(drivers),
                    "driver_ids": drivers,
                    "total_transactions": len(transactions),
                },
                transactions[-1].transaction_date,
                vehicle_id=vehicle.id,
            )
        )

    for first, second in zip(transactions, transactions[1:]):
        minutes = (second.transaction_date - first.transaction_date).total_seconds() / 60
        combined = first.fuel_amount + second.fuel_amount
        refs = {
            "vehicle_id": vehicle.id,
            "driver_id": second.driver_id,
            "trip_id": second.trip_id,
            "fuel_transaction_id": second.id,
        }

        if 0 < minutes < config.RAPID_TRANSACTION_MINUTES:
            indicators.append(
                _indicator(
                    "rapid_consecutive_transactions",
                    f"Two fuel transactions occurred {minutes:.1f} minutes apart for the same vehicle",
                    {
                        "time_difference_minutes": round(minutes, 1),
                        "first_transaction_id": first.id,
                        "second_transaction_id": second.id,
                        "first_transaction_date": isoformat(first.transaction_date),
                        "second_transaction_date": isoformat(second.transaction_date),
                    },
                    second.transaction_date,
                    **refs,
                )
            )

        capacity = vehicle.fuel_capacity or 0
        if (
            capacity > 0
            and minutes / 60 < config.MULTI_FUELING_HOURS
            and combined > capacity * config.MULTI_FUELING_CAPACITY_FACTOR
        ):
            indicators.append(
                _indicator(
                    "rapid_multiple_fueling",
                    (
                        f"Multiple fueling within {minutes / 60:.1f} hours totaling "
                        f"{combined:g}L (capacity: {capacity:g}L)"
                    ),
                    {
                        "time_difference_hours": round(minutes / 60, 2),
                        "combined_fuel": combined,
                        "fuel_capacity": capacity,
                        "first_transaction_id": first.id,
                        "second_transaction_id": second.id,
                    },
                    second.transaction_date,
                    **refs,
                )
            )
    return indicators


def _fueling_without_trip(
    transactions: List[FuelTransaction], trips: List[Trip], config: FuelCardConfig
) -> List[Indicator]:
    window = config.NEARBY_TRIP_HOURS * 3600
    starts: Dict[str, List] = {}
    for trip in trips:
        if trip.vehicle_id and trip.start_time is not None:
            starts.setdefault(trip.vehicle_id, []).append(trip.start_time)

    indicators = []
    for tx in transactions:
        if tx.trip_id:
            continue
        nearby = any(
            abs((start - tx.transaction_date).total_seconds()) <= window
            for start in starts.get(tx.vehicle_id, [])
        )
        if nearby:
            continue
        indicators.append(
            _indicator(
                "fueling_without_trip",
                "Fuel transaction without a trip within 24 hours",
                {
                    "fuel_amount": tx.fuel_amount,
                    "transaction_date": isoformat(tx.transaction_date),
                    "location": tx.location,
                },
                tx.transaction_date,
                vehicle_id=tx.vehicle_id,
                driver_id=tx.driver_id,
                fuel_transaction_id=tx.id,
            )
        )
    return indicators


def find_fuel_card_misuse(
    transactions: List[FuelTransaction],
    vehicles: Dict[str, Vehicle],
    trips: List[Trip],
    config: FuelCardConfig = FUEL_CARD,
    tz_name: Optional[str] = None,
) -> List[Indicator]:
    tz_name = tz_name or TIMEZONE.FLEET_TZ
    usable = sorted(
        (tx for tx in transactions if tx.transaction_date is not None and tx.vehicle_id in vehicles),
        key=lambda tx: tx.transaction_date,
    )

    by_driver: Dict[str, List[FuelTransaction]] = {}
    by_vehicle: Dict[str, List[FuelTransaction]] = {}
    for tx in usable:
        if tx.driver_id:
            by_driver.setdefault(tx.driver_id, []).append(tx)
        by_vehicle.setdefault(tx.vehicle_id, []).append(tx)

    indicators = []
    for driver_id in sorted(by_driver):
        indicators.extend(_driver_checks(driver_id, by_driver[driver_id], config, tz_name))
    for vehicle_id in sorted(by_vehicle):
        indicators.extend(_vehicle_checks(vehicles[vehicle_id], by_vehicle[vehicle_id], config))
    indicators.extend(_fueling_without_trip(usable, trips, config))
    return indicators


class FuelCardMisuseDetector(BaseDetector):
    name = "fuel_card"

    def __init__(self, fleet_repo, trip_repo, fuel_repo, config: FuelCardConfig = FUEL_CARD, tz_name: Optional[str] = None):
        super().__init__(fleet_repo, trip_repo=trip_repo, fuel_repo=fuel_repo)
        self.config = config
        self.tz_name = tz_name

    def _detect(self, company_id, now):
        since = now - timedelta(days=self.config.WINDOW_DAYS)
        scope = self.fleet_repo.resolve_scope(company_id)
        transactions = self.fuel_repo.get_transactions(vehicle_ids=scope.vehicle_ids, since=since)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            since=since - timedelta(hours=self.config.NEARBY_TRIP_HOURS),
        )
        return find_fuel_card_misuse(transactions, scope.vehicles, trips, self.config, self.tz_name)
