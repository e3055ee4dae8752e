"""
Fleet Fraud Engine Configuration

Centralized thresholds and connection settings for the fraud rule engine.
Every detector reads its limits from one frozen dataclass below so thresholds
live in data rather than scattered literals.

Values can be overridden per deployment through environment variables (.env
is loaded automatically) or through an optional fraud_rules.yaml file:

    speed:
      THRESHOLD_KMH: 110
    fuel_card:
      WINDOW_DAYS: 7
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote_plus

import yaml
from dotenv import load_dotenv

env_path = Path(__file__).parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ═══════════════════════════════════════════════════════════════════════════════
# DETECTOR THRESHOLDS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class SpeedConfig:
    """Speed violation thresholds (km/h)"""

    THRESHOLD_KMH: float = float(os.getenv("FRAUD_THRESHOLD_SPEED", "120"))
    LOOKBACK_HOURS: int = 24

    # Batch detector: high above threshold * 1.5, medium otherwise
    BATCH_ESCALATION_FACTOR: float = 1.5

    # Real-time check: critical above threshold * 1.2, high otherwise
    REALTIME_ESCALATION_FACTOR: float = 1.2
    REALTIME_LOOKBACK_MINUTES: int = 10


@dataclass(frozen=True)
class RouteConfig:
    """Route deviation and route analysis thresholds"""

    DEVIATION_THRESHOLD: float = 0.2
    HIGH_DEVIATION_THRESHOLD: float = 0.5
    LOOKBACK_DAYS: int = 7

    # Route anomaly scan
    EXCESS_RATIO: float = 1.3
    HIGH_EXCESS_RATIO: float = 1.5
    MAX_REASONABLE_SPEED_KMH: float = 150.0
    MIN_AVERAGE_SPEED_KMH: float = 20.0
    MIN_FUEL_EFFICIENCY: float = 3.0
    MAX_FUEL_EFFICIENCY: float = 20.0

    # Trip efficiency score penalties
    MIN_DISTANCE_EFFICIENCY: float = 0.9
    POOR_FUEL_EFFICIENCY: float = 5.0
    SPEEDING_KMH: float = 120.0

    # Optimization suggestions
    OPTIMIZATION_WINDOW_DAYS: int = 30
    DISTANCE_OVERRUN_FACTOR: float = 1.1
    LOW_EFFICIENCY_KM_PER_L: float = 6.0
    HIGH_USAGE_TRIPS: int = 20


@dataclass(frozen=True)
class FuelAnomalyConfig:
    """Fuel overfilling and efficiency thresholds (litres, km/L)"""

    OVERFILL_FACTOR: float = 1.1
    MIN_EFFICIENCY: float = 3.0
    MAX_EFFICIENCY: float = 15.0
    ANOMALY_WINDOW_DAYS: int = 30

    # Per-company ratio against fuel type baseline
    HIGH_EFFICIENCY_RATIO: float = 2.0
    LOW_EFFICIENCY_RATIO: float = 0.5
    DEFAULT_BASELINE_KM_PER_L: float = 8.0
    EFFICIENCY_WINDOW_DAYS: int = 30

    # Vehicle baseline statistics
    BASELINE_WINDOW_DAYS: int = 90


@dataclass(frozen=True)
class UsageConfig:
    """After-hours usage window (local hours, inclusive)"""

    AFTER_HOURS_START: int = 22
    AFTER_HOURS_END: int = 6
    LOOKBACK_DAYS: int = 7


@dataclass(frozen=True)
class GeofenceConfig:
    """Geofence scan window"""

    LOOKBACK_HOURS: int = 2


@dataclass(frozen=True)
class OdometerConfig:
    """Odometer tampering thresholds"""

    LOOKBACK_DAYS: int = 7
    MAX_AVERAGE_SPEED_KMH: float = 120.0
    MIN_TRIP_DISTANCE_KM: float = 10.0
    DISTANCE_TOLERANCE: float = 0.3

    # Fuel receipt odometer vs closest trip
    FUEL_MATCH_WINDOW_HOURS: int = 12
    FUEL_ODOMETER_TOLERANCE_KM: float = 50.0


@dataclass(frozen=True)
class FuelCardConfig:
    """Fuel card misuse thresholds"""

    WINDOW_DAYS: int = 14
    MAX_DAILY_TRANSACTIONS: int = 3
    SUSPICIOUS_DAILY_TRANSACTIONS: int = 2
    MAX_UNIQUE_LOCATIONS: int = 10
    UNUSUAL_HOUR_BEFORE: int = 5
    UNUSUAL_HOUR_AFTER: int = 23
    UNUSUAL_TIMING_RATIO: float = 0.3
    MAX_DRIVERS_PER_VEHICLE: int = 5
    RAPID_TRANSACTION_MINUTES: float = 30.0
    MULTI_FUELING_HOURS: float = 2.0
    MULTI_FUELING_CAPACITY_FACTOR: float = 1.2
    NEARBY_TRIP_HOURS: float = 24.0


# ═══════════════════════════════════════════════════════════════════════════════
# SCORING / ANALYTICS
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class RiskConfig:
    """Weighted risk score policy for drivers and vehicles"""

    WINDOW_DAYS: int = 30
    ALERT_FREQUENCY_WEIGHT: float = 0.4
    HIGH_SEVERITY_WEIGHT: float = 0.1
    MANY_ALERTS_PENALTY: float = 0.2

    DRIVER_PRIOR_WEIGHT: float = 0.3
    VEHICLE_PRIOR_WEIGHT: float = 0.5
    DRIVER_MANY_ALERTS: int = 5
    VEHICLE_MANY_ALERTS: int = 10

    HIGH_TIER: float = 0.7
    MEDIUM_TIER: float = 0.4

    # Cached score is only rewritten when it moves more than this
    RECALCULATE_EPSILON: float = 0.01


@dataclass(frozen=True)
class AnalyticsConfig:
    """Alert pattern aggregation and prediction settings"""

    WINDOW_DAYS: int = 30
    TOP_PEAKS: int = 3
    TOP_ENTITIES: int = 5
    TOP_CORRELATIONS: int = 5
    CORRELATION_WINDOW_MINUTES: int = 60
    OFF_HOURS: Tuple[int, ...] = (22, 23, 0, 1)

    # Predictions
    DEFAULT_RESOLUTION_DAYS: float = 7.0
    ESCALATION_MIN_PROBABILITY: float = 0.3
    HIGH_CONFIDENCE: float = 0.7
    MEDIUM_CONFIDENCE: float = 0.4
    VOLUME_HISTORY_WEEKS: int = 12
    PREDICTION_HISTORY_DAYS: int = 90
    URGENT_PROBABILITY: float = 0.7


@dataclass(frozen=True)
class AlertConfig:
    """Alert materialization settings"""

    # Off by default: re-running a detector re-creates alerts
    DEDUPE_ENABLED: bool = _env_bool("FRAUD_ALERT_DEDUPE", False)
    FINGERPRINT_BUCKET_HOURS: int = 24


@dataclass(frozen=True)
class WebhookConfig:
    """Outbound webhook delivery"""

    TIMEOUT_SECONDS: float = 5.0
    USER_AGENT: str = "Fleet-Fraud-Detection-System/1.0"
    SIGNATURE_HEADER: str = "X-Fleet-Fraud-Signature"
    SECRET_BYTES: int = 32


# ═══════════════════════════════════════════════════════════════════════════════
# INFRASTRUCTURE
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class DatabaseConfig:
    """MySQL database configuration"""

    URL: str = os.getenv("FRAUD_DATABASE_URL", "")
    HOST: str = os.getenv("MYSQL_HOST", "localhost")
    PORT: int = int(os.getenv("MYSQL_PORT", "3306"))
    USER: str = os.getenv("MYSQL_USER", "fleet_admin")
    PASSWORD: str = os.getenv("MYSQL_PASSWORD", "")
    DATABASE: str = os.getenv("MYSQL_DATABASE", "fleet_fraud")
    CHARSET: str = "utf8mb4"

    # Connection pool settings
    POOL_SIZE: int = 10
    MAX_OVERFLOW: int = 5
    POOL_RECYCLE: int = 3600

    # Read retries on transient connection errors
    MAX_RETRIES: int = 3
    RETRY_BASE_DELAY: float = 0.5


@dataclass(frozen=True)
class TimezoneConfig:
    """Timezone used for hour-of-day rules (stored timestamps are UTC)"""

    FLEET_TZ: str = os.getenv("FRAUD_FLEET_TZ", "UTC")


# Global instances
SPEED = SpeedConfig()
ROUTE = RouteConfig()
FUEL_ANOMALY = FuelAnomalyConfig()
USAGE = UsageConfig()
GEOFENCE = GeofenceConfig()
ODOMETER = OdometerConfig()
FUEL_CARD = FuelCardConfig()
RISK = RiskConfig()
ANALYTICS = AnalyticsConfig()
ALERTS = AlertConfig()
WEBHOOK = WebhookConfig()
DATABASE = DatabaseConfig()
TIMEZONE = TimezoneConfig()

_SECTIONS = {
    "speed": SPEED,
    "route": ROUTE,
    "fuel_anomaly": FUEL_ANOMALY,
    "usage": USAGE,
    "geofence": GEOFENCE,
    "odometer": ODOMETER,
    "fuel_card": FUEL_CARD,
    "risk": RISK,
    "analytics": ANALYTICS,
    "alerts": ALERTS,
    "webhook": WEBHOOK,
    "timezone": TIMEZONE,
}

DEFAULT_RULES_PATH = Path(__file__).parent / "fraud_rules.yaml"


def load_rule_overrides(path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Build config sections with overrides from a YAML rules file.

    Unknown sections and keys are ignored with a warning. A missing file
    returns the defaults unchanged.

    Returns:
        Dict of section name → config instance, e.g. {"speed": SpeedConfig(...)}
    """
    path = Path(path) if path else DEFAULT_RULES_PATH
    sections = dict(_SECTIONS)
    if not path.exists():
        return sections

    with open(path, "r", encoding="utf-8") as f:
        overrides = yaml.safe_load(f) or {}

    for section_name, values in overrides.items():
        base = sections.get(section_name)
        if base is None or not isinstance(values, dict):
            logger.warning(f"Ignoring unknown rules section '{section_name}' in {path}")
            continue
        known = {f.name for f in fields(base)}
        accepted = {k: v for k, v in values.items() if k in known}
        for key in set(values) - known:
            logger.warning(f"Ignoring unknown key {section_name}.{key} in {path}")
        sections[section_name] = replace(base, **accepted)

    logger.info(f"Loaded fraud rule overrides from {path}")
    return sections


def get_database_url() -> str:
    """
    SQLAlchemy URL for the record store.

    FRAUD_DATABASE_URL wins when set (e.g. sqlite:///fleet.db for local runs),
    otherwise a mysql+pymysql URL is built from the MYSQL_* variables.
    """
    if DATABASE.URL:
        return DATABASE.URL
    return (
        f"mysql+pymysql://{DATABASE.USER}:{quote_plus(DATABASE.PASSWORD)}"
        f"@{DATABASE.HOST}:{DATABASE.PORT}/{DATABASE.DATABASE}"
        f"?charset={DATABASE.CHARSET}"
    )


__all__ = [
    "SPEED",
    "ROUTE",
    "FUEL_ANOMALY",
    "USAGE",
    "GEOFENCE",
    "ODOMETER",
    "FUEL_CARD",
    "RISK",
    "ANALYTICS",
    "ALERTS",
    "WEBHOOK",
    "DATABASE",
    "TIMEZONE",
    "SpeedConfig",
    "RouteConfig",
    "FuelAnomalyConfig",
    "UsageConfig",
    "GeofenceConfig",
    "OdometerConfig",
    "FuelCardConfig",
    "RiskConfig",
    "AnalyticsConfig",
    "AlertConfig",
    "WebhookConfig",
    "DatabaseConfig",
    "TimezoneConfig",
    "load_rule_overrides",
    "get_database_url",
]
