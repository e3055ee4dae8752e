"""
Fraud Router - detection runs, alerts, risk scores, patterns, predictions, webhooks
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from fraud_engine.models import AlertStatus, AlertType, Severity
from fraud_engine.orchestrators import FraudOrchestrator
from routers.dependencies import DetectRequest, get_orchestrator, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/fraud", tags=["Fraud Detection"])


class AlertCreate(BaseModel):
    type: AlertType
    severity: Optional[Severity] = None
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    vehicle_id: Optional[str] = None
    driver_id: Optional[str] = None
    trip_id: Optional[str] = None
    fuel_transaction_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


class AlertUpdate(BaseModel):
    status: Optional[AlertStatus] = None
    severity: Optional[Severity] = None
    assigned_to: Optional[str] = Field(None, min_length=1)
    resolution_notes: Optional[str] = Field(None, min_length=1)


class WebhookCreate(BaseModel):
    webhook_url: str = Field(..., min_length=8)
    event_types: List[AlertType]
    is_active: bool = True
    secret_key: Optional[str] = Field(None, min_length=16)


class WebhookTest(BaseModel):
    webhook_id: str = Field(..., min_length=1)
    test_event_type: AlertType


# ─── Detection ──────────────────────────────────────────────────────────────


@router.get("/detectors")
def list_detectors(orchestrator: FraudOrchestrator = Depends(get_orchestrator)) -> Dict[str, Any]:
    return {
        "detectors": orchestrator.detector_names,
        "batch": list(orchestrator.config.batch_detectors),
    }


@router.post("/detect")
def run_all_detectors(
    request: DetectRequest,
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Run every batch detector for a company; dry_run skips alert creation"""
    try:
        return orchestrator.run_all(request.company_id, dry_run=request.dry_run, detectors=request.detectors)
    except Exception as e:
        raise http_error(e, "Run all detectors")


@router.post("/detect/{detector}")
def run_detector(
    detector: str,
    request: DetectRequest,
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        result = orchestrator.run_detector(detector, request.company_id, dry_run=request.dry_run)
        return result.to_dict()
    except Exception as e:
        raise http_error(e, f"Detector {detector}")


# ─── Alerts ─────────────────────────────────────────────────────────────────


@router.get("/alerts")
def list_alerts(
    company_id: Optional[str] = Query(None),
    status: Optional[AlertStatus] = Query(None),
    type: Optional[AlertType] = Query(None),
    severity: Optional[Severity] = Query(None),
    vehicle_id: Optional[str] = Query(None),
    driver_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=200),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.alert_manager.list_alerts(
            company_id=company_id,
            status=status.value if status else None,
            alert_type=type.value if type else None,
            severity=severity.value if severity else None,
            vehicle_id=vehicle_id,
            driver_id=driver_id,
            start_date=start_date,
            end_date=end_date,
            sort_by=sort_by,
            sort_order=sort_order,
            page=page,
            limit=limit,
        )
    except Exception as e:
        raise http_error(e, "List fraud alerts")


@router.post("/alerts", status_code=201)
def create_alert(
    payload: AlertCreate,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        alert = orchestrator.alert_manager.create_alert(payload.model_dump(mode="json"), company_id)
        return {"message": "Fraud alert created successfully", "data": alert.to_dict()}
    except Exception as e:
        raise http_error(e, "Create fraud alert")


@router.get("/alerts/{alert_id}")
def get_alert(
    alert_id: str,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.alert_manager.get_alert(alert_id, company_id).to_dict()
    except Exception as e:
        raise http_error(e, "Get fraud alert")


@router.patch("/alerts/{alert_id}")
@router.put("/alerts/{alert_id}")
def update_alert(
    alert_id: str,
    changes: AlertUpdate,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        alert = orchestrator.alert_manager.update_alert(
            alert_id, changes.model_dump(mode="json", exclude_none=True), company_id
        )
        return {"message": "Fraud alert updated successfully", "data": alert.to_dict()}
    except Exception as e:
        raise http_error(e, "Update fraud alert")


# ─── Analytics ──────────────────────────────────────────────────────────────


@router.get("/risk-scores/{entity_type}")
def get_risk_scores(
    entity_type: str,
    company_id: Optional[str] = Query(None),
    entity_id: Optional[str] = Query(None),
    recalculate: bool = Query(False),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if entity_type not in ("driver", "vehicle"):
        raise HTTPException(status_code=400, detail='entity_type must be either "driver" or "vehicle"')
    try:
        return orchestrator.calculate_risk_scores(entity_type, company_id, entity_id, recalculate=recalculate)
    except Exception as e:
        raise http_error(e, "Calculate risk scores")


@router.get("/patterns")
def get_patterns(
    company_id: Optional[str] = Query(None),
    days: int = Query(30, ge=1, le=365),
    pattern_type: str = Query("all", pattern="^(all|temporal|entity|vehicle|driver|correlation)$"),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.analyze_patterns(company_id, days, pattern_type)
    except Exception as e:
        raise http_error(e, "Fraud analytics patterns")


@router.get("/predictions")
def get_predictions(
    company_id: Optional[str] = Query(None),
    prediction_type: str = Query("risk_escalation"),
    horizon_days: int = Query(7, ge=1, le=90),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    try:
        return orchestrator.predict(company_id, prediction_type, horizon_days)
    except Exception as e:
        raise http_error(e, "Fraud predictions")


# ─── Webhooks ───────────────────────────────────────────────────────────────


@router.post("/webhooks", status_code=201)
def register_webhook(
    payload: WebhookCreate,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if orchestrator.notifier is None:
        raise HTTPException(status_code=503, detail="Notifications are disabled")
    try:
        webhook = orchestrator.notifier.register_webhook(
            company_id,
            payload.webhook_url,
            [t.value for t in payload.event_types],
            is_active=payload.is_active,
            secret_key=payload.secret_key,
        )
        return {"message": "Webhook registered successfully", "data": webhook}
    except Exception as e:
        raise http_error(e, "Webhook registration")


@router.post("/webhooks/test")
def test_webhook(
    payload: WebhookTest,
    company_id: Optional[str] = Query(None),
    orchestrator: FraudOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    if orchestrator.notifier is None:
        raise HTTPException(status_code=503, detail="Notifications are disabled")
    try:
        return orchestrator.notifier.test_webhook(payload.webhook_id, payload.test_event_type.value, company_id)
    except Exception as e:
        raise http_error(e, "Test webhook")
