"""
Fuel Router - fuel efficiency, fuel card and odometer checks plus fuel statistics
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query

from fraud_engine.orchestrators import FraudOrchestrator
from routers.dependencies import DetectRequest, get_orchestrator, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fuel", tags=["Fuel"])


def _run(orchestrator: FraudOrchestrator, detector: str, request: DetectRequest) -> Dict[str, Any]:
    try:
        result = orchestrator.run_detector(detector, request.company_id, dry_run=request.dry_run)
        return result.to_dict()
    except Exception as e:
        raise http_error(e, f"Fuel detector {detector}")


@router.post("/detect/efficiency-anomalies")
def detect_efficiency_anomalies(
    request: DetectRequest, orchestrator: FraudOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Trip efficiency against the company baseline for the vehicle's fuel type"""
    return _run(orchestrator, "fuel_efficiency", request)


@router.post("/detect/card-misuse")
def detect_card_misuse(
    request: DetectRequest, orchestrator: FraudOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    return _run(orchestrator, "fuel_card", request)


@router.post("/detect/odometer-tampering")
def detect_odometer_tampering(
    request: DetectRequest, orchestrator: FraudOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    return _run(orchestrator, "odometer", request)


@router.get("/baseline/{vehicle_id}")
def get_vehicle_baseline(
    vehicle_id: str,
    days: int = Query(90, ge=1, le=365),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.fuel_analytics.vehicle_baseline(vehicle_id, days)
    except Exception as e:
        raise http_error(e, "Fuel baseline")


@router.get("/stats")
def get_fuel_stats(
    company_id: Optional[str] = Query(None),
    days: int = Query(30, ge=1, le=365),
    vehicle_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.fuel_analytics.fuel_statistics(company_id, days, vehicle_id)
    except Exception as e:
        raise http_error(e, "Fuel statistics")
