"""Detectors, scoring, materialization and analytics."""

from .alert_manager import AlertManager
from .alert_materializer import AlertMaterializer
from .alert_predictor import AlertPredictor
from .base_detector import BaseDetector
from .fuel_analytics import FuelAnalytics
from .fuel_anomaly_detector import EfficiencyAnomalyDetector, FuelAnomalyDetector
from .fuel_card_detector import FuelCardMisuseDetector
from .geofence_detector import GeofenceViolationDetector
from .geometry import GeometryPredicate, GeometryResult, PolygonGeometryPredicate, RPCGeometryPredicate
from .notification_service import NotificationService
from .odometer_detector import OdometerTamperingDetector
from .pattern_analyzer import PatternAnalyzer
from .risk_scorer import RiskScorer
from .route_analyzer import RouteAnalyzer
from .route_detector import RouteDeviationDetector
from .speed_detector import SpeedViolationDetector
from .usage_detector import AfterHoursUsageDetector

__all__ = [
    "AfterHoursUsageDetector",
    "AlertManager",
    "AlertMaterializer",
    "AlertPredictor",
    "BaseDetector",
    "EfficiencyAnomalyDetector",
    "FuelAnalytics",
    "FuelAnomalyDetector",
    "FuelCardMisuseDetector",
    "GeofenceViolationDetector",
    "GeometryPredicate",
    "GeometryResult",
    "NotificationService",
    "OdometerTamperingDetector",
    "PatternAnalyzer",
    "PolygonGeometryPredicate",
    "RPCGeometryPredicate",
    "RiskScorer",
    "RouteAnalyzer",
    "RouteDeviationDetector",
    "SpeedViolationDetector",
]
