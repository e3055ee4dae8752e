"""
Fuel Analytics Service - vehicle efficiency baselines and fuel statistics
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import numpy as np

from config import FUEL_ANOMALY, FuelAnomalyConfig
from fraud_engine.models import TripStatus
from fraud_engine.repositories import FleetRepository, FuelRepository, TripRepository
from fraud_engine.services.fuel_anomaly_detector import UNKNOWN_FUEL_TYPE
from fraud_engine.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class FuelAnalytics:
    """Read-only fuel reporting"""

    def __init__(
        self,
        fleet_repo: FleetRepository,
        trip_repo: TripRepository,
        fuel_repo: FuelRepository,
        config: FuelAnomalyConfig = FUEL_ANOMALY,
    ):
        self.fleet_repo = fleet_repo
        self.trip_repo = trip_repo
        self.fuel_repo = fuel_repo
        self.config = config

    def vehicle_baseline(
        self, vehicle_id: str, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Efficiency statistics for one vehicle's completed trips.

        Returns efficiency None and trips_count 0 when there is no usable trip.
        """
        now = now or utc_now()
        days = days or self.config.BASELINE_WINDOW_DAYS
        trips = self.trip_repo.get_trips(
            vehicle_ids=[vehicle_id],
            statuses=[TripStatus.COMPLETED.value],
            since=now - timedelta(days=days),
        )
        efficiencies = np.array(
            [t.fuel_efficiency for t in trips if t.fuel_efficiency is not None], dtype=float
        )
        if efficiencies.size == 0:
            return {"vehicle_id": vehicle_id, "efficiency": None, "trips_count": 0, "days": days}

        return {
            "vehicle_id": vehicle_id,
            "efficiency": round(float(efficiencies.mean()), 3),
            "standard_deviation": round(float(efficiencies.std()), 3),
            "trips_count": int(efficiencies.size),
            "min_efficiency": round(float(efficiencies.min()), 3),
            "max_efficiency": round(float(efficiencies.max()), 3),
            "days": days,
        }

    def fuel_statistics(
        self,
        company_id: Optional[str] = None,
        days: int = 30,
        vehicle_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        now = now or utc_now()
        since = now - timedelta(days=days)
        scope = self.fleet_repo.resolve_scope(company_id)
        vehicle_ids = [vehicle_id] if vehicle_id else scope.vehicle_ids

        transactions = [
            tx for tx in self.fuel_repo.get_transactions(vehicle_ids=vehicle_ids, since=since)
            if tx.vehicle_id in scope.vehicles
        ]
        trips = [
            t for t in self.trip_repo.get_trips(
                vehicle_ids=vehicle_ids, statuses=[TripStatus.COMPLETED.value], since=since
            )
            if t.vehicle_id in scope.vehicles and t.fuel_consumed and t.fuel_consumed > 0
        ]

        total_purchased = sum(tx.fuel_amount for tx in transactions)
        total_cost = sum(tx.fuel_cost or 0 for tx in transactions)
        total_consumed = sum(t.fuel_consumed or 0 for t in trips)
        total_distance = sum(t.distance_traveled or 0 for t in trips)

        by_fuel_type: Dict[str, Dict[str, float]] = {}

        def bucket(vid: str) -> Dict[str, float]:
            fuel_type = scope.vehicles[vid].fuel_type or UNKNOWN_FUEL_TYPE
            return by_fuel_type.setdefault(
                fuel_type,
                {"purchased": 0.0, "cost": 0.0, "transactions": 0, "consumed": 0.0, "distance": 0.0, "trips": 0},
            )

        for tx in transactions:
            entry = bucket(tx.vehicle_id)
            entry["purchased"] += tx.fuel_amount
            entry["cost"] += tx.fuel_cost or 0
            entry["transactions"] += 1
        for trip in trips:
            entry = bucket(trip.vehicle_id)
            entry["consumed"] += trip.fuel_consumed or 0
            entry["distance"] += trip.distance_traveled or 0
            entry["trips"] += 1
        for entry in by_fuel_type.values():
            entry["efficiency"] = round(entry["distance"] / entry["consumed"], 2) if entry["consumed"] else 0

        return {
            "period_days": days,
            "summary": {
                "total_fuel_purchased": round(total_purchased, 2),
                "total_fuel_cost": round(total_cost, 2),
                "total_fuel_consumed": round(total_consumed, 2),
                "total_distance": round(total_distance, 2),
                "avg_fuel_efficiency": round(total_distance / total_consumed, 2) if total_consumed else 0,
                "avg_cost_per_liter": round(total_cost / total_purchased, 3) if total_purchased else 0,
                "transaction_count": len(transactions),
                "trip_count": len(trips),
            },
            "by_fuel_type": by_fuel_type,
        }
