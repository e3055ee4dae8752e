"""
Fraud Engine Data Models
========================

Enums, store records, indicators and alerts shared by detectors, scoring,
materialization and analytics.

Store rows arrive as plain dicts; each record dataclass has a from_record()
that tolerates missing keys and Decimal/str numerics coming back from MySQL.
"""

import hashlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from fraud_engine.timezone_utils import isoformat, parse_timestamp


# ══════════════════════════════════════════════════════════════════════════════
# ENUMS
# ══════════════════════════════════════════════════════════════════════════════


class Severity(str, Enum):
    """Alert / indicator severity"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

HIGH_SEVERITIES = frozenset({Severity.HIGH.value, Severity.CRITICAL.value})


class AlertType(str, Enum):
    """Persisted fraud alert categories"""
    SPEED_VIOLATION = "speed_violation"
    ROUTE_DEVIATION = "route_deviation"
    FUEL_ANOMALY = "fuel_anomaly"
    UNAUTHORIZED_USAGE = "unauthorized_usage"
    SUSPICIOUS_LOCATION = "suspicious_location"
    ODOMETER_TAMPERING = "odometer_tampering"
    FUEL_CARD_MISUSE = "fuel_card_misuse"
    AFTER_HOURS_USAGE = "after_hours_usage"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


class AlertStatus(str, Enum):
    """Operator-managed alert status (no enforced transitions)"""
    OPEN = "open"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_POSITIVE = "false_positive"


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EntityType(str, Enum):
    DRIVER = "driver"
    VEHICLE = "vehicle"


class GeofenceType(str, Enum):
    INCLUSION = "inclusion"
    EXCLUSION = "exclusion"


class TripStatus(str, Enum):
    PLANNED = "planned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _to_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


# ══════════════════════════════════════════════════════════════════════════════
# STORE RECORDS
# ══════════════════════════════════════════════════════════════════════════════


@dataclass
class Vehicle:
    id: str
    company_id: Optional[str] = None
    vehicle_number: Optional[str] = None
    fuel_type: Optional[str] = None
    fuel_capacity: Optional[float] = None
    odometer: Optional[float] = None
    status: Optional[str] = None
    risk_score: Optional[float] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Vehicle":
        return cls(
            id=str(record["id"]),
            company_id=_to_str(record.get("company_id")),
            vehicle_number=record.get("vehicle_number"),
            fuel_type=record.get("fuel_type"),
            fuel_capacity=_to_float(record.get("fuel_capacity")),
            odometer=_to_float(record.get("odometer")),
            status=record.get("status"),
            risk_score=_to_float(record.get("risk_score")),
        )

    @property
    def display_name(self) -> str:
        return self.vehicle_number or self.id


@dataclass
class Driver:
    id: str
    company_id: Optional[str] = None
    employee_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    status: Optional[str] = None
    risk_score: Optional[float] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Driver":
        return cls(
            id=str(record["id"]),
            company_id=_to_str(record.get("company_id")),
            employee_id=record.get("employee_id"),
            first_name=record.get("first_name"),
            last_name=record.get("last_name"),
            status=record.get("status"),
            risk_score=_to_float(record.get("risk_score")),
        )

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p)
        return name or self.employee_id or self.id


@dataclass
class Route:
    id: str
    company_id: Optional[str] = None
    name: Optional[str] = None
    expected_distance: Optional[float] = None
    expected_duration: Optional[float] = None  # minutes
    is_active: bool = True

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Route":
        return cls(
            id=str(record["id"]),
            company_id=_to_str(record.get("company_id")),
            name=record.get("name"),
            expected_distance=_to_float(record.get("expected_distance")),
            expected_duration=_to_float(record.get("expected_duration")),
            is_active=bool(record.get("is_active", True)),
        )


@dataclass
class Trip:
    id: str
    vehicle_id: Optional[str]
    driver_id: Optional[str]
    start_time: Optional[datetime]
    end_time: Optional[datetime] = None
    route_id: Optional[str] = None
    start_odometer: Optional[float] = None
    end_odometer: Optional[float] = None
    distance_traveled: Optional[float] = None
    fuel_consumed: Optional[float] = None
    status: str = TripStatus.PLANNED.value

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Trip":
        return cls(
            id=str(record["id"]),
            vehicle_id=_to_str(record.get("vehicle_id")),
            driver_id=_to_str(record.get("driver_id")),
            start_time=parse_timestamp(record.get("start_time")),
            end_time=parse_timestamp(record.get("end_time")),
            route_id=_to_str(record.get("route_id")),
            start_odometer=_to_float(record.get("start_odometer")),
            end_odometer=_to_float(record.get("end_odometer")),
            distance_traveled=_to_float(record.get("distance_traveled")),
            fuel_consumed=_to_float(record.get("fuel_consumed")),
            status=record.get("status") or TripStatus.PLANNED.value,
        )

    @property
    def fuel_efficiency(self) -> Optional[float]:
        """km per litre, None unless both distance and fuel are positive"""
        if not self.distance_traveled or not self.fuel_consumed:
            return None
        if self.distance_traveled <= 0 or self.fuel_consumed <= 0:
            return None
        return self.distance_traveled / self.fuel_consumed

    @property
    def duration_minutes(self) -> Optional[float]:
        if not self.start_time or not self.end_time:
            return None
        return (self.end_time - self.start_time).total_seconds() / 60


@dataclass
class FuelTransaction:
    id: str
    vehicle_id: Optional[str]
    transaction_date: Optional[datetime]
    fuel_amount: float = 0.0
    driver_id: Optional[str] = None
    trip_id: Optional[str] = None
    fuel_cost: Optional[float] = None
    odometer_reading: Optional[float] = None
    location: Any = None
    vendor: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FuelTransaction":
        return cls(
            id=str(record["id"]),
            vehicle_id=_to_str(record.get("vehicle_id")),
            transaction_date=parse_timestamp(record.get("transaction_date")),
            fuel_amount=_to_float(record.get("fuel_amount")) or 0.0,
            driver_id=_to_str(record.get("driver_id")),
            trip_id=_to_str(record.get("trip_id")),
            fuel_cost=_to_float(record.get("fuel_cost")),
            odometer_reading=_to_float(record.get("odometer_reading")),
            location=record.get("location"),
            vendor=record.get("vendor"),
        )


@dataclass
class GPSPosition:
    id: str
    vehicle_id: Optional[str]
    timestamp: Optional[datetime]
    location: Any = None
    speed: float = 0.0
    trip_id: Optional[str] = None
    heading: Optional[float] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "GPSPosition":
        return cls(
            id=str(record["id"]),
            vehicle_id=_to_str(record.get("vehicle_id")),
            timestamp=parse_timestamp(record.get("timestamp")),
            location=record.get("location"),
            speed=_to_float(record.get("speed")) or 0.0,
            trip_id=_to_str(record.get("trip_id")),
            heading=_to_float(record.get("heading")),
        )


@dataclass
class Geofence:
    id: str
    company_id: Optional[str]
    name: str
    type: GeofenceType
    geometry: Any
    is_active: bool = True

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Geofence":
        return cls(
            id=str(record["id"]),
            company_id=_to_str(record.get("company_id")),
            name=record.get("name") or str(record["id"]),
            type=GeofenceType(record.get("type", GeofenceType.INCLUSION.value)),
            geometry=record.get("geometry"),
            is_active=bool(record.get("is_active", True)),
        )


# ══════════════════════════════════════════════════════════════════════════════
# ENGINE OUTPUTS
# ══════════════════════════════════════════════════════════════════════════════

_EPOCH = datetime(1970, 1, 1)


@dataclass
class Indicator:
    """
    An in-memory finding produced by a detector.

    `type` names the specific rule that fired (e.g. odometer_rollback);
    `category` is the fraud alert type it materializes into.
    """
    type: str
    category: AlertType
    severity: Severity
    reason: str
    title: str = ""
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    trip_id: Optional[str] = None
    fuel_transaction_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    observed_at: Optional[datetime] = None

    def fingerprint(self, bucket_hours: int = 24) -> str:
        """Stable key: rule type + subject refs + observation time bucket"""
        if self.observed_at is not None:
            seconds = (self.observed_at - _EPOCH).total_seconds()
            bucket = str(int(seconds // (bucket_hours * 3600)))
        else:
            bucket = "-"
        parts = [
            self.type,
            self.vehicle_id or "",
            self.driver_id or "",
            self.trip_id or "",
            self.fuel_transaction_id or "",
            bucket,
        ]
        return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "category": self.category.value,
            "severity": self.severity.value,
            "reason": self.reason,
            "title": self.title,
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "trip_id": self.trip_id,
            "fuel_transaction_id": self.fuel_transaction_id,
            "details": self.details,
            "observed_at": isoformat(self.observed_at),
        }


@dataclass
class FraudAlert:
    """Persisted fraud alert row"""
    id: str
    type: str
    severity: str
    status: str
    title: str
    description: str = ""
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    trip_id: Optional[str] = None
    fuel_transaction_id: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)
    risk_score: Optional[float] = None
    assigned_to: Optional[str] = None
    resolution_notes: Optional[str] = None
    fingerprint: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FraudAlert":
        return cls(
            id=str(record["id"]),
            type=record.get("type") or "",
            severity=record.get("severity") or Severity.MEDIUM.value,
            status=record.get("status") or AlertStatus.OPEN.value,
            title=record.get("title") or "",
            description=record.get("description") or "",
            vehicle_id=_to_str(record.get("vehicle_id")),
            driver_id=_to_str(record.get("driver_id")),
            trip_id=_to_str(record.get("trip_id")),
            fuel_transaction_id=_to_str(record.get("fuel_transaction_id")),
            details=record.get("details") or {},
            risk_score=_to_float(record.get("risk_score")),
            assigned_to=_to_str(record.get("assigned_to")),
            resolution_notes=record.get("resolution_notes"),
            fingerprint=record.get("fingerprint"),
            created_at=parse_timestamp(record.get("created_at")),
            updated_at=parse_timestamp(record.get("updated_at")),
            resolved_at=parse_timestamp(record.get("resolved_at")),
        )

    @property
    def is_high_severity(self) -> bool:
        return self.severity in HIGH_SEVERITIES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "status": self.status,
            "title": self.title,
            "description": self.description,
            "vehicle_id": self.vehicle_id,
            "driver_id": self.driver_id,
            "trip_id": self.trip_id,
            "fuel_transaction_id": self.fuel_transaction_id,
            "details": self.details,
            "risk_score": self.risk_score,
            "assigned_to": self.assigned_to,
            "resolution_notes": self.resolution_notes,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
            "resolved_at": isoformat(self.resolved_at),
        }


@dataclass
class RiskScore:
    """Heuristic risk for one driver or vehicle"""
    entity_type: EntityType
    entity_id: str
    name: str
    score: float
    tier: RiskTier
    risk_factors: Dict[str, Any] = field(default_factory=dict)
    previous_score: Optional[float] = None
    updated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entity_type": self.entity_type.value,
            "id": self.entity_id,
            "name": self.name,
            "risk_score": round(self.score, 4),
            "risk_level": self.tier.value,
            "risk_factors": self.risk_factors,
            "previous_score": self.previous_score,
            "updated": self.updated,
        }


@dataclass
class DetectionResult:
    """Outcome of one detector run"""
    detector: str
    indicators: List[Indicator] = field(default_factory=list)
    alerts: List[FraudAlert] = field(default_factory=list)
    failed: int = 0
    skipped_duplicates: int = 0
    dry_run: bool = False

    @property
    def detected(self) -> int:
        return len(self.indicators)

    @property
    def alerts_created(self) -> int:
        return len(self.alerts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detector": self.detector,
            "detected": self.detected,
            "alerts_created": self.alerts_created,
            "failed": self.failed,
            "skipped_duplicates": self.skipped_duplicates,
            "dry_run": self.dry_run,
            "details": [i.to_dict() for i in self.indicators],
        }
