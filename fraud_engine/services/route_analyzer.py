"""
Route Analyzer Service - trip efficiency, route anomalies, optimization hints

Read-only analytics over trips, routes and GPS tracking. Nothing here
creates alerts; results are reports for the operator.

Usage:
    analyzer = RouteAnalyzer(fleet_repo, trip_repo)
    report = analyzer.analyze_trip_efficiency("trip-id")
    anomalies = analyzer.detect_route_anomalies(company_id, days=7)
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config import ROUTE, RouteConfig
from fraud_engine.models import GPSPosition, Route, Severity, Trip, TripStatus
from fraud_engine.repositories import FleetRepository, TripRepository
from fraud_engine.services.severity_rules import excess_ratio_severity, rule_severity
from fraud_engine.timezone_utils import utc_now

logger = logging.getLogger(__name__)


def _speed_profile(positions: List[GPSPosition]) -> Optional[Dict[str, float]]:
    speeds = [p.speed for p in positions if p.speed and p.speed > 0]
    if not speeds:
        return None
    return {"avg_speed": sum(speeds) / len(speeds), "max_speed": max(speeds)}


def trip_efficiency_report(
    trip: Trip,
    route: Optional[Route],
    positions: List[GPSPosition],
    config: RouteConfig = ROUTE,
) -> Dict[str, Any]:
    """
    Score a single trip from 100 down:
        -20 distance efficiency (expected / actual) below 0.9
        -30 fuel efficiency below 5 km/L
        -25 max speed above 120 km/h
    """
    report: Dict[str, Any] = {
        "trip_id": trip.id,
        "efficiency_score": 0,
        "issues": [],
        "recommendations": [],
    }
    score = 100

    if route and route.expected_distance and trip.distance_traveled:
        distance_efficiency = route.expected_distance / trip.distance_traveled
        report["distance_efficiency"] = round(distance_efficiency, 3)
        if distance_efficiency < config.MIN_DISTANCE_EFFICIENCY:
            report["issues"].append("Significant route deviation detected")
            report["recommendations"].append("Review route planning and driver training")
            score -= 20

    fuel_efficiency = trip.fuel_efficiency
    if fuel_efficiency is not None:
        report["fuel_efficiency"] = round(fuel_efficiency, 2)
        if fuel_efficiency < config.POOR_FUEL_EFFICIENCY:
            report["issues"].append("Poor fuel efficiency detected")
            report["recommendations"].append("Vehicle maintenance check recommended")
            score -= 30

    profile = _speed_profile(positions)
    if profile:
        report["avg_speed"] = round(profile["avg_speed"], 1)
        report["max_speed"] = profile["max_speed"]
        if profile["max_speed"] > config.SPEEDING_KMH:
            report["issues"].append("Speed violations detected")
            report["recommendations"].append("Driver safety training required")
            score -= 25

    report["efficiency_score"] = max(0, score)
    return report


def route_anomalies_for_trip(
    trip: Trip,
    route: Optional[Route],
    positions: List[GPSPosition],
    config: RouteConfig = ROUTE,
) -> Optional[Dict[str, Any]]:
    """Anomaly summary for one trip, None when nothing stands out"""
    anomaly_types: List[str] = []
    details: Dict[str, Any] = {}
    severity = Severity.LOW

    if route and route.expected_distance and trip.distance_traveled:
        ratio = trip.distance_traveled / route.expected_distance
        if ratio > config.EXCESS_RATIO:
            anomaly_types.append("excessive_distance")
            details["distance_ratio"] = round(ratio, 3)
            severity = excess_ratio_severity(ratio, config.HIGH_EXCESS_RATIO)

    duration = trip.duration_minutes
    if route and route.expected_duration and duration is not None:
        ratio = duration / route.expected_duration
        if ratio > config.EXCESS_RATIO:
            anomaly_types.append("excessive_duration")
            details["duration_ratio"] = round(ratio, 3)
            if severity == Severity.LOW:
                severity = excess_ratio_severity(ratio, config.HIGH_EXCESS_RATIO)

    profile = _speed_profile(positions)
    if profile and (
        profile["max_speed"] > config.MAX_REASONABLE_SPEED_KMH
        or profile["avg_speed"] < config.MIN_AVERAGE_SPEED_KMH
    ):
        anomaly_types.append("unusual_speed_pattern")
        details["avg_speed"] = round(profile["avg_speed"], 1)
        details["max_speed"] = profile["max_speed"]
        severity = rule_severity("unusual_speed_pattern")

    efficiency = trip.fuel_efficiency
    if efficiency is not None and (
        efficiency < config.MIN_FUEL_EFFICIENCY or efficiency > config.MAX_FUEL_EFFICIENCY
    ):
        anomaly_types.append("unusual_fuel_consumption")
        details["fuel_efficiency"] = round(efficiency, 2)
        if severity == Severity.LOW:
            severity = rule_severity("unusual_fuel_consumption")

    if not anomaly_types:
        return None
    return {
        "trip_id": trip.id,
        "vehicle_id": trip.vehicle_id,
        "driver_id": trip.driver_id,
        "route_id": trip.route_id,
        "anomaly_type": anomaly_types,
        "severity": severity.value,
        "details": details,
    }


class RouteAnalyzer:
    """Trip and route level analytics"""

    def __init__(
        self,
        fleet_repo: FleetRepository,
        trip_repo: TripRepository,
        config: RouteConfig = ROUTE,
    ):
        self.fleet_repo = fleet_repo
        self.trip_repo = trip_repo
        self.config = config

    def analyze_trip_efficiency(self, trip_id: str, company_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Efficiency report for one trip; None when missing or another company's"""
        trip = self.trip_repo.get_trip(trip_id)
        if trip is None:
            return None
        if company_id is not None and self.fleet_repo.resolve_scope(company_id).vehicle(trip.vehicle_id) is None:
            return None
        routes = self.fleet_repo.get_route_map(company_id)
        positions = self.trip_repo.get_positions(trip_id=trip.id)
        return trip_efficiency_report(trip, routes.get(trip.route_id), positions, self.config)

    def detect_route_anomalies(
        self, company_id: Optional[str] = None, days: int = 7, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        now = now or utc_now()
        scope = self.fleet_repo.resolve_scope(company_id)
        routes = self.fleet_repo.get_route_map(company_id)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids, since=now - timedelta(days=days)
        )

        anomalies = []
        for trip in trips:
            positions = self.trip_repo.get_positions(trip_id=trip.id)
            result = route_anomalies_for_trip(trip, routes.get(trip.route_id), positions, self.config)
            if result:
                vehicle = scope.vehicle(trip.vehicle_id)
                result["vehicle_number"] = vehicle.vehicle_number if vehicle else None
                anomalies.append(result)

        logger.info(f"Route anomaly scan: {len(anomalies)}/{len(trips)} trips flagged")
        return anomalies

    def generate_route_optimizations(
        self, company_id: Optional[str] = None, days: Optional[int] = None, now: Optional[datetime] = None
    ) -> List[Dict[str, Any]]:
        """Per-route suggestions from completed trips in the window"""
        now = now or utc_now()
        days = days or self.config.OPTIMIZATION_WINDOW_DAYS
        scope = self.fleet_repo.resolve_scope(company_id)
        routes = self.fleet_repo.get_route_map(company_id)
        trips = self.trip_repo.get_trips(
            vehicle_ids=scope.vehicle_ids,
            statuses=[TripStatus.COMPLETED.value],
            since=now - timedelta(days=days),
        )

        groups: Dict[str, List[Trip]] = {}
        for trip in trips:
            if trip.route_id in routes:
                groups.setdefault(trip.route_id, []).append(trip)

        optimizations = []
        for route_id in sorted(groups):
            route = routes[route_id]
            group = groups[route_id]
            avg_distance = sum(t.distance_traveled or 0 for t in group) / len(group)
            avg_fuel = sum(t.fuel_consumed or 0 for t in group) / len(group)
            expected = route.expected_distance or 0
            recommendations = []

            if expected > 0 and avg_distance > expected * self.config.DISTANCE_OVERRUN_FACTOR:
                recommendations.append({
                    "type": "distance_optimization",
                    "priority": "high",
                    "description": "Route consistently exceeds expected distance",
                    "potential_savings": f"{(avg_distance - expected) / expected * 100:.1f}% distance reduction",
                    "suggestion": "Review and update route waypoints for optimal path",
                })

            if avg_distance > 0 and avg_fuel > 0:
                efficiency = avg_distance / avg_fuel
                if efficiency < self.config.LOW_EFFICIENCY_KM_PER_L:
                    recommendations.append({
                        "type": "fuel_efficiency",
                        "priority": "medium",
                        "description": "Poor fuel efficiency detected on this route",
                        "current_efficiency": f"{efficiency:.2f} km/L",
                        "suggestion": "Consider vehicle maintenance or driver training",
                    })

            if len(group) > self.config.HIGH_USAGE_TRIPS:
                recommendations.append({
                    "type": "frequency_optimization",
                    "priority": "low",
                    "description": "High frequency route - consider consolidation opportunities",
                    "trip_frequency": f"{len(group)} trips in {days} days",
                    "suggestion": "Analyze if trips can be combined or scheduled more efficiently",
                })

            if recommendations:
                optimizations.append({
                    "route_id": route_id,
                    "route_name": route.name,
                    "trip_count": len(group),
                    "avg_actual_distance": round(avg_distance, 2),
                    "expected_distance": expected,
                    "avg_fuel_consumption": round(avg_fuel, 2),
                    "recommendations": recommendations,
                })

        return optimizations
