"""
Monitoring Router - real-time speed check over the latest GPS positions
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fraud_engine.orchestrators import FraudOrchestrator
from routers.dependencies import get_orchestrator, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/monitoring", tags=["Monitoring"])


class SpeedCheckRequest(BaseModel):
    company_id: Optional[str] = None
    materialize: bool = False


@router.post("/speed-check")
def speed_check(
    request: SpeedCheckRequest, orchestrator: FraudOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Positions from the last few minutes above the speed threshold"""
    try:
        result = orchestrator.check_realtime_speed(request.company_id, materialize=request.materialize)
        return result.to_dict()
    except Exception as e:
        raise http_error(e, "Real-time speed check")
