"""
Fuel Anomaly Detectors

FuelAnomalyDetector (fixed thresholds):
    overfilling            fuel_amount > fuel_capacity * 1.1          high
    suspicious_efficiency  trip km/L outside [3, 15]                  medium

EfficiencyAnomalyDetector (per company, against the fuel type baseline):
    baseline = mean km/L of the fuel type's trips in the window (8 km/L if none)
    unusually_high_efficiency  ratio > 2.0                            high
    unusually_low_efficiency   ratio < 0.5                            medium
"""

import logging
from datetime import timedelta
from typing import Dict, List, Tuple

import numpy as np

from config import FUEL_ANOMALY, FuelAnomalyConfig
from fraud_engine.models import AlertType, FuelTransaction, Indicator, Trip, TripStatus, Vehicle
from fraud_engine.services.base_detector import BaseDetector
from fraud_engine.services.severity_rules import efficiency_ratio_rule, rule_severity
from fraud_engine.timezone_utils import isoformat

logger = logging.getLogger(__name__)

UNKNOWN_FUEL_TYPE = "unknown"


def find_overfilling(
    transactions: List[FuelTransaction],
    vehicles: Dict[str, Vehicle],
    overfill_factor: float = FUEL_ANOMALY.OVERFILL_FACTOR,
) -> List[Indicator]:
    indicators = []
    for tx in transactions:
        vehicle = vehicles.get(tx.vehicle_id)
        if vehicle is None or not vehicle.fuel_capacity or vehicle.fuel_capacity <= 0:
            continue
        limit = vehicle.fuel_capacity * overfill_factor
        if tx.fuel_amount <= limit:
            continue
        indicators.append(
            Indicator(
                type="overfilling",
                category=AlertType.FUEL_ANOMALY,
                severity=rule_severity("overfilling"),
                title="Fuel Anomaly: overfilling",
                reason=(
                    f"Fuel amount ({tx.fuel_amount}L) exceeds vehicle capacity "
                    f"({vehicle.fuel_capacity}L)"
                ),
                vehicle_id=vehicle.id,
                driver_id=tx.driver_id,
                trip_id=tx.trip_id,
                fuel_transaction_id=tx.id,
                details={
                    "fuel_amount": tx.fuel_amount,
                    "fuel_capacity": vehicle.fuel_capacity,
                    "excess_amount": round(tx.fuel_amount - vehicle.fuel_capacity, 2),
                    "overfill_percentage": round(
                        (tx.fuel_amount / vehicle.fuel_capacity - 1) * 100, 1
                    ),
                    "transaction_date": isoformat(tx.transaction_date),
                },
                observed_at=tx.transaction_date,
            )
        )
    return indicators


def find_suspicious_efficiency(
    trips: List[Trip],
    vehicles: Dict[str, Vehicle],
    min_efficiency: float = FUEL_ANOMALY.MIN_EFFICIENCY,
    max_efficiency: float = FUEL_ANOMALY.MAX_EFFICIENCY,
) -> List[Indicator]:
    indicators = []
    for trip in trips:
        efficiency = trip.fuel_efficiency
        if efficiency is None or trip.vehicle_id not in vehicles:
            continue
        if min_efficiency <= efficiency <= max_efficiency:
            continue
        direction = "low" if efficiency < min_efficiency else "high"
        indicators.append(
            Indicator(
                type="suspicious_efficiency",
                category=AlertType.FUEL_ANOMALY,
                severity=rule_severity("suspicious_efficiency"),
                title="Fuel Anomaly: suspicious efficiency",
                reason=(
                    f"Unusually {direction} fuel efficiency: {efficiency:.2f} km/L "
                    f"(expected {min_efficiency:g}-{max_efficiency:g})"
                ),
                vehicle_id=trip.vehicle_id,
                driver_id=trip.driver_id,
                trip_id=trip.id,
                details={
                    "efficiency": round(efficiency, 2),
                    "distance": trip.distance_traveled,
                    "fuel_consumed": trip.fuel_consumed,
                    "min_efficiency": min_efficiency,
                    "max_efficiency": max_efficiency,
                },
                observed_at=trip.start_time,
            )
        )
    return indicators


def fuel_type_baselines(
    trips: List[Trip],
    vehicles: Dict[str, Vehicle],
    default_baseline: float = FUEL_ANOMALY.DEFAULT_BASELINE_KM_PER_L,
) -> Dict[str, float]:
    """Mean km/L per vehicle fuel type; types seen with no usable trip get the default"""
    efficiencies: Dict[str, List[float]] = {}
    for vehicle in vehicles.values():
        efficiencies.setdefault(vehicle.fuel_type or UNKNOWN_FUEL_TYPE, [])
    for trip in trips:
        vehicle = vehicles.get(trip.vehicle_id)
        efficiency = trip.fuel_efficiency
        if vehicle is None or efficiency is None:
            continue
        efficiencies.setdefault(vehicle.fuel_type or UNKNOWN_FUEL_TYPE, []).append(efficiency)

    return {
        fuel_type: float(np.mean(values)) if values else default_baseline
        for fuel_type, values in efficiencies.items()
    }


def find_efficiency_anomalies(
    trips: List[Trip],
    vehicles: Dict[str, Vehicle],
    config: FuelAnomalyConfig = FUEL_ANOMALY,
) -> Tuple[List[Indicator], Dict[str, float]]:
    baselines = fuel_type_baselines(trips, vehicles, config.DEFAULT_BASELINE_KM_PER_L)
    indicators = []
    for trip in trips:
        vehicle = vehicles.get(trip.vehicle_id)
        efficiency = trip.fuel_efficiency
        if vehicle is None or efficiency is None:
            continue

        fuel_type = vehicle.fuel_type or UNKNOWN_FUEL_TYPE
        baseline = baselines.get(fuel_type, config.DEFAULT_BASELINE_KM_PER_L)
        ratio = efficiency / baseline
        rule = efficiency_ratio_rule(ratio, config.HIGH_EFFICIENCY_RATIO, config.LOW_EFFICIENCY_RATIO)
        if rule is None:
            continue

        rule_type, severity = rule
        if rule_type == "unusually_high_efficiency":
            reason = "Efficiency significantly higher than baseline - possible fuel theft or odometer tampering"
        else:
            reason = "Efficiency significantly lower than baseline - possible fuel theft or vehicle issues"

        indicators.append(
            Indicator(
                type=rule_type,
                category=AlertType.FUEL_ANOMALY,
                severity=severity,
                title=f"Fuel Anomaly: {rule_type.replace('_', ' ')}",
                reason=reason,
                vehicle_id=vehicle.id,
                driver_id=trip.driver_id,
                trip_id=trip.id,
                details={
                    "efficiency": round(efficiency, 2),
                    "baseline_efficiency": round(baseline, 2),
                    "efficiency_ratio": round(ratio, 2),
                    "distance": trip.distance_traveled,
                    "fuel_consumed": trip.fuel_consumed,
                    "fuel_type": fuel_type,
                },
                observed_at=trip.start_time,
            )
        )
    return indicators, baselines


class FuelAnomalyDetector(BaseDetector):
    """Overfilling on transactions, absolute efficiency bounds on trips"""

    name = "fuel_anomaly"

    def __init__(self, fleet_repo, trip_repo, fuel_repo, config: FuelAnomalyConfig = FUEL_ANOMALY):
        super().__init__(fleet_repo, trip_repo=trip_repo, fuel_repo=fuel_repo)
        self.config = config

    def _detect(self, company_id, now):
        since = now - timedelta(days=self.config.ANOMALY_WINDOW_DAYS)
        scope = self.fleet_repo.resolve_scope(company_id)
        transactions = self.fuel_repo.get_transactions(vehicle_ids=scope.vehicle_ids, since=since)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            statuses=[TripStatus.COMPLETED.value],
            since=since,
        )
        return find_overfilling(
            transactions, scope.vehicles, self.config.OVERFILL_FACTOR
        ) + find_suspicious_efficiency(
            trips, scope.vehicles, self.config.MIN_EFFICIENCY, self.config.MAX_EFFICIENCY
        )


class EfficiencyAnomalyDetector(BaseDetector):
    """Completed trips against their fuel type baseline"""

    name = "fuel_efficiency"

    def __init__(self, fleet_repo, trip_repo, config: FuelAnomalyConfig = FUEL_ANOMALY):
        super().__init__(fleet_repo, trip_repo=trip_repo)
        self.config = config

    def _detect(self, company_id, now):
        scope = self.fleet_repo.resolve_scope(company_id)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            statuses=[TripStatus.COMPLETED.value],
            since=now - timedelta(days=self.config.EFFICIENCY_WINDOW_DAYS),
        )
        indicators, baselines = find_efficiency_anomalies(trips, scope.vehicles, self.config)
        logger.debug(f"Fuel type baselines for company {company_id}: {baselines}")
        return indicators
