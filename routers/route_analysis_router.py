"""
Route Analysis Router - trip efficiency, route anomalies and optimization hints
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from fraud_engine.orchestrators import FraudOrchestrator
from routers.dependencies import get_orchestrator, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/route-analysis", tags=["Route Analysis"])


@router.get("/trips/{trip_id}/efficiency")
def get_trip_efficiency(
    trip_id: str,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        report = orchestrator.route_analyzer.analyze_trip_efficiency(trip_id, company_id)
    except Exception as e:
        raise http_error(e, "Trip efficiency")
    if report is None:
        raise HTTPException(status_code=404, detail=f"Trip not found: {trip_id}")
    return report


@router.get("/anomalies")
def get_route_anomalies(
    company_id: Optional[str] = Query(None),
    days: int = Query(7, ge=1, le=90),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        anomalies = orchestrator.route_analyzer.detect_route_anomalies(company_id, days)
        return {"period": f"{days} days", "total": len(anomalies), "anomalies": anomalies}
    except Exception as e:
        raise http_error(e, "Route anomalies")


@router.get("/optimizations")
def get_route_optimizations(
    company_id: Optional[str] = Query(None),
    days: int = Query(30, ge=1, le=365),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        optimizations = orchestrator.route_analyzer.generate_route_optimizations(company_id, days)
        return {"period": f"{days} days", "total": len(optimizations), "optimizations": optimizations}
    except Exception as e:
        raise http_error(e, "Route optimizations")
