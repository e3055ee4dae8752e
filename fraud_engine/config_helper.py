"""
Configuration helper - builds the store, repositories, services and orchestrator

Usage:
    from fraud_engine.config_helper import setup_architecture

    store, repositories, services, orchestrator = setup_architecture()
    orchestrator.run_all(company_id="c-1")

Tests and dry runs pass an InMemoryRecordStore instead of letting
create_store() open a database.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from config import DATABASE, get_database_url, load_rule_overrides
from fraud_engine.repositories import (
    AlertRepository,
    FleetRepository,
    FuelRepository,
    RecordStore,
    SQLRecordStore,
    TripRepository,
)


def get_db_config() -> Dict[str, Any]:
    """Connection settings as reported by the health endpoint (no password)"""
    return {
        "host": DATABASE.HOST,
        "port": DATABASE.PORT,
        "user": DATABASE.USER,
        "database": DATABASE.DATABASE,
        "charset": DATABASE.CHARSET,
        "url_override": bool(DATABASE.URL),
    }


def create_store(url: Optional[str] = None, create_tables: bool = False) -> RecordStore:
    """SQL-backed record store for the configured (or given) database URL"""
    return SQLRecordStore(url=url or get_database_url(), create_tables=create_tables)


def create_repositories(store: RecordStore) -> Dict[str, Any]:
    """
    Returns:
        {'fleet': FleetRepository, 'trip': TripRepository,
         'fuel': FuelRepository, 'alert': AlertRepository}
    """
    return {
        "fleet": FleetRepository(store),
        "trip": TripRepository(store),
        "fuel": FuelRepository(store),
        "alert": AlertRepository(store),
    }


def create_services(
    repositories: Dict[str, Any],
    geometry=None,
    rules: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Create service instances with injected repositories.

    Args:
        repositories: Dict from create_repositories()
        geometry: Optional GeometryPredicate for geofence checks
                  (polygon ray casting when None)
        rules: Config sections from load_rule_overrides(); the module
               defaults when None
    """
    from fraud_engine.services import (
        AfterHoursUsageDetector,
        AlertManager,
        AlertMaterializer,
        AlertPredictor,
        EfficiencyAnomalyDetector,
        FuelAnalytics,
        FuelAnomalyDetector,
        FuelCardMisuseDetector,
        GeofenceViolationDetector,
        NotificationService,
        OdometerTamperingDetector,
        PatternAnalyzer,
        PolygonGeometryPredicate,
        RiskScorer,
        RouteAnalyzer,
        RouteDeviationDetector,
        SpeedViolationDetector,
    )

    rules = rules if rules is not None else load_rule_overrides()
    tz_name = rules["timezone"].FLEET_TZ
    fleet, trip, fuel, alert = (
        repositories["fleet"],
        repositories["trip"],
        repositories["fuel"],
        repositories["alert"],
    )
    geometry = geometry or PolygonGeometryPredicate()
    notifier = NotificationService(alert, config=rules["webhook"])
    detectors = {
        "speed": SpeedViolationDetector(fleet, trip, config=rules["speed"]),
        "route_deviation": RouteDeviationDetector(fleet, trip, config=rules["route"]),
        "fuel_anomaly": FuelAnomalyDetector(fleet, trip, fuel, config=rules["fuel_anomaly"]),
        "fuel_efficiency": EfficiencyAnomalyDetector(fleet, trip, config=rules["fuel_anomaly"]),
        "after_hours": AfterHoursUsageDetector(fleet, trip, config=rules["usage"], tz_name=tz_name),
        "geofence": GeofenceViolationDetector(fleet, trip, predicate=geometry, config=rules["geofence"]),
        "odometer": OdometerTamperingDetector(fleet, trip, fuel, config=rules["odometer"]),
        "fuel_card": FuelCardMisuseDetector(fleet, trip, fuel, config=rules["fuel_card"], tz_name=tz_name),
    }
    return {
        "geometry": geometry,
        "detectors": detectors,
        "notifier": notifier,
        "materializer": AlertMaterializer(alert, notifier=notifier, config=rules["alerts"]),
        "alert_manager": AlertManager(alert, fleet, notifier=notifier),
        "risk": RiskScorer(fleet, trip, alert, config=rules["risk"]),
        "pattern": PatternAnalyzer(fleet, alert, config=rules["analytics"], tz_name=tz_name),
        "predictor": AlertPredictor(fleet, alert, config=rules["analytics"]),
        "route": RouteAnalyzer(fleet, trip, config=rules["route"]),
        "fuel_analytics": FuelAnalytics(fleet, trip, fuel, config=rules["fuel_anomaly"]),
    }


def create_orchestrator(services: Dict[str, Any], repositories: Dict[str, Any]):
    """FraudOrchestrator wired to the given services and repositories"""
    from fraud_engine.orchestrators import FraudOrchestrator, OrchestratorConfig

    return FraudOrchestrator(
        fleet_repo=repositories["fleet"],
        trip_repo=repositories["trip"],
        fuel_repo=repositories["fuel"],
        alert_repo=repositories["alert"],
        detectors=services["detectors"],
        geometry=services["geometry"],
        notifier=services["notifier"],
        materializer=services["materializer"],
        risk_scorer=services["risk"],
        pattern_analyzer=services["pattern"],
        predictor=services["predictor"],
        alert_manager=services["alert_manager"],
        route_analyzer=services["route"],
        fuel_analytics=services["fuel_analytics"],
        config=OrchestratorConfig(),
    )


def setup_architecture(store: Optional[RecordStore] = None, rules_path: Optional[Path] = None):
    """
    One-liner to set up the whole engine.

    Thresholds come from fraud_rules.yaml (or rules_path) layered over the
    config defaults.

    Returns:
        Tuple of (store, repositories, services, orchestrator)
    """
    store = store or create_store()
    repositories = create_repositories(store)
    services = create_services(repositories, rules=load_rule_overrides(rules_path))
    orchestrator = create_orchestrator(services, repositories)
    return store, repositories, services, orchestrator
