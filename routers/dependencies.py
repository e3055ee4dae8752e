"""
Shared router dependencies

The orchestrator is built once in main.py's lifespan and kept on app.state;
tests preset app.state.orchestrator instead of running the lifespan.
"""

import logging
from typing import List, Optional

from fastapi import HTTPException, Request
from pydantic import BaseModel, Field

from fraud_engine.exceptions import (
    AlertNotFoundError,
    StoreUnavailableError,
    StoreWriteError,
    UnknownDetectorError,
)
from fraud_engine.orchestrators import FraudOrchestrator

logger = logging.getLogger(__name__)


def get_orchestrator(request: Request) -> FraudOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Fraud engine not initialized")
    return orchestrator


class DetectRequest(BaseModel):
    company_id: Optional[str] = None
    dry_run: bool = False
    detectors: Optional[List[str]] = Field(None, description="Subset of detectors for a full run")


def http_error(e: Exception, action: str) -> HTTPException:
    """Map engine exceptions to HTTP status codes"""
    if isinstance(e, (UnknownDetectorError, AlertNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, StoreUnavailableError):
        logger.error(f"{action}: store unavailable: {e}")
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, (ValueError, KeyError, StoreWriteError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"{action} error: {e}")
    return HTTPException(status_code=500, detail=str(e))
