"""
Severity rules - (rule, measured value) → severity

Fixed-severity rules live in RULE_SEVERITY; rules whose severity depends on
how far a measurement crosses its threshold get a small function each.
"""

from typing import Optional, Tuple

from fraud_engine.models import GeofenceType, Severity

RULE_SEVERITY = {
    # Fuel anomalies
    "overfilling": Severity.HIGH,
    "suspicious_efficiency": Severity.MEDIUM,
    "unusually_high_efficiency": Severity.HIGH,
    "unusually_low_efficiency": Severity.MEDIUM,
    # Usage
    "after_hours_usage": Severity.MEDIUM,
    # Odometer tampering
    "odometer_rollback": Severity.HIGH,
    "impossible_odometer_increase": Severity.MEDIUM,
    "odometer_distance_mismatch": Severity.MEDIUM,
    "fuel_odometer_mismatch": Severity.MEDIUM,
    # Fuel card misuse
    "excessive_daily_transactions": Severity.HIGH,
    "excessive_location_diversity": Severity.MEDIUM,
    "unusual_timing_pattern": Severity.MEDIUM,
    "multiple_drivers_same_vehicle": Severity.MEDIUM,
    "rapid_consecutive_transactions": Severity.HIGH,
    "rapid_multiple_fueling": Severity.HIGH,
    "fueling_without_trip": Severity.MEDIUM,
    # Route analysis
    "unusual_speed_pattern": Severity.HIGH,
    "unusual_fuel_consumption": Severity.MEDIUM,
}


def rule_severity(rule: str) -> Severity:
    return RULE_SEVERITY[rule]


def batch_speed_severity(speed: float, threshold: float, escalation_factor: float) -> Severity:
    """Batch detector: high above threshold * factor, medium otherwise"""
    return Severity.HIGH if speed > threshold * escalation_factor else Severity.MEDIUM


def realtime_speed_severity(speed: float, threshold: float, escalation_factor: float) -> Severity:
    """Real-time check: critical above threshold * factor, high otherwise"""
    return Severity.CRITICAL if speed > threshold * escalation_factor else Severity.HIGH


def route_deviation_severity(deviation: float, high_threshold: float) -> Severity:
    return Severity.HIGH if deviation > high_threshold else Severity.MEDIUM


def geofence_severity(fence_type: GeofenceType) -> Severity:
    return Severity.HIGH if fence_type == GeofenceType.EXCLUSION else Severity.MEDIUM


def efficiency_ratio_rule(
    ratio: float, high_ratio: float, low_ratio: float
) -> Optional[Tuple[str, Severity]]:
    """Classify efficiency against the fuel type baseline, None when normal"""
    if ratio > high_ratio:
        return "unusually_high_efficiency", RULE_SEVERITY["unusually_high_efficiency"]
    if ratio < low_ratio:
        return "unusually_low_efficiency", RULE_SEVERITY["unusually_low_efficiency"]
    return None


def excess_ratio_severity(ratio: float, high_ratio: float) -> Severity:
    """Route overrun (distance or duration against the plan)"""
    return Severity.HIGH if ratio > high_ratio else Severity.MEDIUM
