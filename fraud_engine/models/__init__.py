"""Data models for the fraud engine."""

from .fraud_models import (
    HIGH_SEVERITIES,
    AlertStatus,
    AlertType,
    DetectionResult,
    Driver,
    EntityType,
    FraudAlert,
    FuelTransaction,
    Geofence,
    GeofenceType,
    GPSPosition,
    Indicator,
    RiskScore,
    RiskTier,
    Route,
    Severity,
    Trip,
    TripStatus,
    Vehicle,
)

__all__ = [
    "HIGH_SEVERITIES",
    "AlertStatus",
    "AlertType",
    "DetectionResult",
    "Driver",
    "EntityType",
    "FraudAlert",
    "FuelTransaction",
    "Geofence",
    "GeofenceType",
    "GPSPosition",
    "Indicator",
    "RiskScore",
    "RiskTier",
    "Route",
    "Severity",
    "Trip",
    "TripStatus",
    "Vehicle",
]
