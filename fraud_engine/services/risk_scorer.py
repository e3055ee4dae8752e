"""
Risk Scorer Service - heuristic [0, 1] risk per driver or vehicle

Usage:
    scorer = RiskScorer(fleet_repo, trip_repo, alert_repo)
    result = scorer.calculate(EntityType.DRIVER, company_id="c-1", recalculate=True)

The score combines, over a trailing window (30 days):

    alert_frequency = alerts / max(trips, 1)
    score = 0.4 * alert_frequency
          + 0.1 * high/critical alerts
          + prior_weight * cached risk_score     (0.3 drivers, 0.5 vehicles)
          + 0.2 if alerts > many_alerts          (5 drivers, 10 vehicles)

clamped to [0, 1]. It is a heuristic, not a calibrated probability.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import structlog

from config import RISK, RiskConfig
from fraud_engine.models import (
    HIGH_SEVERITIES,
    EntityType,
    FraudAlert,
    RiskScore,
    RiskTier,
    Trip,
)
from fraud_engine.repositories import AlertRepository, FleetRepository, TripRepository
from fraud_engine.timezone_utils import isoformat, utc_now

logger = structlog.get_logger(__name__)

_INACTIVE_STATUSES = {"inactive", "suspended", "terminated", "retired", "sold"}


def risk_tier(score: float, config: RiskConfig = RISK) -> RiskTier:
    """Total function of the score: high > 0.7 ≥ medium > 0.4 ≥ low"""
    if score > config.HIGH_TIER:
        return RiskTier.HIGH
    if score > config.MEDIUM_TIER:
        return RiskTier.MEDIUM
    return RiskTier.LOW


def compute_risk_score(
    alert_count: int,
    high_severity_count: int,
    trip_count: int,
    prior_score: Optional[float],
    entity_type: EntityType,
    config: RiskConfig = RISK,
) -> float:
    if entity_type == EntityType.DRIVER:
        prior_weight, many_alerts = config.DRIVER_PRIOR_WEIGHT, config.DRIVER_MANY_ALERTS
    else:
        prior_weight, many_alerts = config.VEHICLE_PRIOR_WEIGHT, config.VEHICLE_MANY_ALERTS

    alert_frequency = alert_count / max(trip_count, 1)
    weighted = (
        config.ALERT_FREQUENCY_WEIGHT * alert_frequency
        + config.HIGH_SEVERITY_WEIGHT * high_severity_count
        + prior_weight * (prior_score or 0.0)
        + (config.MANY_ALERTS_PENALTY if alert_count > many_alerts else 0.0)
    )
    return max(0.0, min(1.0, weighted))


class RiskScorer:
    """Scores drivers and vehicles from their recent alerts and trips"""

    def __init__(
        self,
        fleet_repo: FleetRepository,
        trip_repo: TripRepository,
        alert_repo: AlertRepository,
        config: RiskConfig = RISK,
    ):
        self.fleet_repo = fleet_repo
        self.trip_repo = trip_repo
        self.alert_repo = alert_repo
        self.config = config

    def score_entity(
        self,
        entity_type: EntityType,
        entity_id: str,
        name: str,
        prior_score: Optional[float],
        alerts: List[FraudAlert],
        trips: List[Trip],
    ) -> RiskScore:
        """Score one entity from alerts and trips already limited to the window"""
        high_severity = sum(1 for a in alerts if a.severity in HIGH_SEVERITIES)
        score = compute_risk_score(
            len(alerts), high_severity, len(trips), prior_score, entity_type, self.config
        )
        total_distance = sum(t.distance_traveled or 0.0 for t in trips)
        return RiskScore(
            entity_type=entity_type,
            entity_id=entity_id,
            name=name,
            score=score,
            tier=risk_tier(score, self.config),
            risk_factors={
                "recent_alerts": len(alerts),
                "alert_frequency": round(len(alerts) / max(len(trips), 1), 3),
                "high_severity_alerts": high_severity,
                "trips_30d": len(trips),
                "total_distance_30d": round(total_distance, 2),
            },
            previous_score=prior_score,
        )

    def calculate(
        self,
        entity_type: EntityType,
        company_id: Optional[str] = None,
        entity_id: Optional[str] = None,
        recalculate: bool = False,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Score every active driver or vehicle of a company (or one of them).

        With recalculate set, the cached risk_score column is overwritten when
        the new score moves by more than RECALCULATE_EPSILON.
        """
        entity_type = EntityType(entity_type)
        now = now or utc_now()
        since = now - timedelta(days=self.config.WINDOW_DAYS)

        entities = self._entities(entity_type, company_id, entity_id)
        ids = [e.id for e in entities]
        id_column = "driver_id" if entity_type == EntityType.DRIVER else "vehicle_id"

        alerts_by_entity: Dict[str, List[FraudAlert]] = {i: [] for i in ids}
        trips_by_entity: Dict[str, List[Trip]] = {i: [] for i in ids}
        if ids:
            scope = {"driver_ids": ids} if entity_type == EntityType.DRIVER else {"vehicle_ids": ids}
            for alert in self.alert_repo.list_alerts(since=since, **scope):
                alerts_by_entity.setdefault(getattr(alert, id_column), []).append(alert)

            if entity_type == EntityType.DRIVER:
                trips = [
                    t for t in self.trip_repo.get_trips(since=since)
                    if t.driver_id in trips_by_entity
                ]
            else:
                trips = self.trip_repo.get_trips(vehicle_ids=ids, since=since)
            for trip in trips:
                trips_by_entity.setdefault(getattr(trip, id_column), []).append(trip)

        scores = []
        for entity in entities:
            risk = self.score_entity(
                entity_type,
                entity.id,
                entity.display_name,
                entity.risk_score,
                alerts_by_entity.get(entity.id, []),
                trips_by_entity.get(entity.id, []),
            )
            if recalculate and abs(risk.score - (entity.risk_score or 0.0)) > self.config.RECALCULATE_EPSILON:
                risk.updated = self.fleet_repo.update_risk_score(entity_type, entity.id, risk.score)
            scores.append(risk)

        scores.sort(key=lambda r: r.score, reverse=True)
        summary = {
            "total_entities": len(scores),
            "high_risk_count": sum(1 for r in scores if r.tier == RiskTier.HIGH),
            "medium_risk_count": sum(1 for r in scores if r.tier == RiskTier.MEDIUM),
            "low_risk_count": sum(1 for r in scores if r.tier == RiskTier.LOW),
        }
        logger.info(
            "Risk scores calculated",
            entity_type=entity_type.value,
            company_id=company_id,
            updated=sum(1 for r in scores if r.updated),
            **summary,
        )
        return {
            "entity_type": entity_type.value,
            "calculated_at": isoformat(now),
            **summary,
            "risk_scores": [r.to_dict() for r in scores],
        }

    def _entities(self, entity_type: EntityType, company_id: Optional[str], entity_id: Optional[str]):
        if entity_type == EntityType.DRIVER:
            entities: List[Any] = self.fleet_repo.get_drivers(company_id)
        else:
            entities = self.fleet_repo.get_vehicles(company_id)
        if entity_id:
            entities = [e for e in entities if e.id == entity_id]
        return [e for e in entities if (e.status or "active") not in _INACTIVE_STATUSES]
