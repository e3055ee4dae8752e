"""
Fraud Orchestrator - runs detectors and hands their indicators to materialization

Thin layer over the services:
    - detectors: speed, route_deviation, fuel_anomaly, fuel_efficiency,
      after_hours, geofence, odometer, fuel_card
    - AlertMaterializer: indicators → fraud_alerts rows (skipped on dry run)
    - RiskScorer, PatternAnalyzer, AlertPredictor: read-side analytics

Detection is on demand. Nothing here schedules runs, and two concurrent runs
for the same company can both materialize the same anomaly unless alert
dedupe is enabled.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fraud_engine.exceptions import UnknownDetectorError
from fraud_engine.models import DetectionResult, EntityType, Indicator
from fraud_engine.repositories import AlertRepository, FleetRepository, FuelRepository, TripRepository
from fraud_engine.services import (
    AfterHoursUsageDetector,
    AlertManager,
    AlertMaterializer,
    AlertPredictor,
    BaseDetector,
    EfficiencyAnomalyDetector,
    FuelAnalytics,
    FuelAnomalyDetector,
    FuelCardMisuseDetector,
    GeofenceViolationDetector,
    GeometryPredicate,
    NotificationService,
    OdometerTamperingDetector,
    PatternAnalyzer,
    RiskScorer,
    RouteAnalyzer,
    RouteDeviationDetector,
    SpeedViolationDetector,
)
from fraud_engine.timezone_utils import isoformat, utc_now

logger = logging.getLogger(__name__)

DEFAULT_BATCH_DETECTORS = (
    "speed",
    "route_deviation",
    "fuel_anomaly",
    "after_hours",
    "geofence",
    "odometer",
    "fuel_card",
)


@dataclass
class OrchestratorConfig:
    """Which detectors "run all" covers and whether alerts fan out"""

    batch_detectors: Tuple[str, ...] = DEFAULT_BATCH_DETECTORS
    enable_notifications: bool = True


class FraudOrchestrator:
    """
    Entry point for detection runs and fraud analytics.

    Every dependency can be injected; anything left out is built from the
    four repositories.
    """

    VERSION = "1.0.0"

    def __init__(
        self,
        fleet_repo: FleetRepository,
        trip_repo: TripRepository,
        fuel_repo: FuelRepository,
        alert_repo: AlertRepository,
        detectors: Optional[Dict[str, BaseDetector]] = None,
        geometry: Optional[GeometryPredicate] = None,
        notifier: Optional[NotificationService] = None,
        materializer: Optional[AlertMaterializer] = None,
        risk_scorer: Optional[RiskScorer] = None,
        pattern_analyzer: Optional[PatternAnalyzer] = None,
        predictor: Optional[AlertPredictor] = None,
        alert_manager: Optional[AlertManager] = None,
        route_analyzer: Optional[RouteAnalyzer] = None,
        fuel_analytics: Optional[FuelAnalytics] = None,
        config: Optional[OrchestratorConfig] = None,
    ):
        self.config = config or OrchestratorConfig()
        self.fleet_repo = fleet_repo
        self.trip_repo = trip_repo
        self.fuel_repo = fuel_repo
        self.alert_repo = alert_repo

        if notifier is None and self.config.enable_notifications:
            notifier = NotificationService(alert_repo)
        self.notifier = notifier

        self.detectors: Dict[str, BaseDetector] = detectors or {
            "speed": SpeedViolationDetector(fleet_repo, trip_repo),
            "route_deviation": RouteDeviationDetector(fleet_repo, trip_repo),
            "fuel_anomaly": FuelAnomalyDetector(fleet_repo, trip_repo, fuel_repo),
            "fuel_efficiency": EfficiencyAnomalyDetector(fleet_repo, trip_repo),
            "after_hours": AfterHoursUsageDetector(fleet_repo, trip_repo),
            "geofence": GeofenceViolationDetector(fleet_repo, trip_repo, predicate=geometry),
            "odometer": OdometerTamperingDetector(fleet_repo, trip_repo, fuel_repo),
            "fuel_card": FuelCardMisuseDetector(fleet_repo, trip_repo, fuel_repo),
        }
        self.materializer = materializer or AlertMaterializer(alert_repo, notifier=self.notifier)
        self.risk_scorer = risk_scorer or RiskScorer(fleet_repo, trip_repo, alert_repo)
        self.pattern_analyzer = pattern_analyzer or PatternAnalyzer(fleet_repo, alert_repo)
        self.predictor = predictor or AlertPredictor(fleet_repo, alert_repo)
        self.alert_manager = alert_manager or AlertManager(alert_repo, fleet_repo, notifier=self.notifier)
        self.route_analyzer = route_analyzer or RouteAnalyzer(fleet_repo, trip_repo)
        self.fuel_analytics = fuel_analytics or FuelAnalytics(fleet_repo, trip_repo, fuel_repo)

        logger.info(f"FraudOrchestrator v{self.VERSION} initialized with {len(self.detectors)} detectors")

    @property
    def detector_names(self) -> List[str]:
        return sorted(self.detectors)

    def get_detector(self, name: str) -> BaseDetector:
        try:
            return self.detectors[name]
        except KeyError:
            raise UnknownDetectorError(name) from None

    def run_detector(
        self,
        name: str,
        company_id: Optional[str] = None,
        dry_run: bool = False,
        now: Optional[datetime] = None,
    ) -> DetectionResult:
        """
        Run one detector. On a dry run the indicators are returned without
        touching fraud_alerts.
        """
        detector = self.get_detector(name)
        now = now or utc_now()
        indicators = detector.detect(company_id, now=now)
        return self._finish(name, indicators, company_id, dry_run)

    def run_all(
        self,
        company_id: Optional[str] = None,
        dry_run: bool = False,
        now: Optional[datetime] = None,
        detectors: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """
        Run the batch detectors in order against one shared `now`.

        A store outage inside one detector yields zero indicators for it; any
        other exception aborts the run with alerts created so far kept.
        """
        now = now or utc_now()
        names = list(detectors or self.config.batch_detectors)
        for name in names:
            self.get_detector(name)

        results: Dict[str, Dict[str, Any]] = {}
        totals = {"total_detected": 0, "total_alerts_created": 0, "total_failed": 0}
        for name in names:
            result = self.run_detector(name, company_id, dry_run=dry_run, now=now)
            results[name] = result.to_dict()
            totals["total_detected"] += result.detected
            totals["total_alerts_created"] += result.alerts_created
            totals["total_failed"] += result.failed

        logger.info(
            f"Detection run for company {company_id}: {totals['total_detected']} detected, "
            f"{totals['total_alerts_created']} alerts created{' (dry run)' if dry_run else ''}"
        )
        return {
            "company_id": company_id,
            "run_at": isoformat(now),
            "dry_run": dry_run,
            **totals,
            "results": results,
        }

    def check_realtime_speed(
        self, company_id: Optional[str] = None, materialize: bool = False, now: Optional[datetime] = None
    ) -> DetectionResult:
        """Speed check over the last few minutes of GPS with real-time severity"""
        detector = self.get_detector("speed")
        indicators = detector.detect_realtime(company_id, now=now)
        return self._finish("speed_realtime", indicators, company_id, dry_run=not materialize)

    def _finish(
        self, name: str, indicators: List[Indicator], company_id: Optional[str], dry_run: bool
    ) -> DetectionResult:
        if dry_run:
            return DetectionResult(detector=name, indicators=indicators, dry_run=True)
        return self.materializer.materialize_all(name, indicators, company_id)

    # ─── Analytics ──────────────────────────────────────────────────────────

    def calculate_risk_scores(
        self,
        entity_type: str,
        company_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        recalculate: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return self.risk_scorer.calculate(
            EntityType(entity_type), company_id, entity_id, recalculate=recalculate, now=now
        )

    def analyze_patterns(
        self,
        company_id: Optional[str] = None,
        days: Optional[int] = None,
        pattern_type: str = "all",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return self.pattern_analyzer.analyze_company(company_id, days, pattern_type, now=now)

    def predict(
        self,
        company_id: Optional[str] = None,
        prediction_type: str = "risk_escalation",
        horizon_days: int = 7,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        return self.predictor.predict_company(company_id, prediction_type, horizon_days, now=now)
