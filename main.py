"""
Fleet Fraud Engine API

On-demand fraud detection, alert management and fraud analytics over the
fleet record store. Run with:

    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from fraud_engine import __version__
from fraud_engine.config_helper import get_db_config, setup_architecture
from fraud_engine.exceptions import StoreError
from fraud_engine.timezone_utils import isoformat, utc_now
from logger_config import configure_structlog, setup_logging
from routers import include_all_routers

logger = setup_logging("fraud_engine", log_to_file=os.getenv("FRAUD_LOG_TO_FILE", "false").lower() == "true")
configure_structlog(json_output=os.getenv("FRAUD_LOG_JSON", "false").lower() == "true")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the store and orchestrator once; tests may preset app.state.orchestrator"""
    log = logging.getLogger(__name__)
    log.info(f"Fleet Fraud Engine API v{__version__} starting...")

    if getattr(app.state, "orchestrator", None) is None:
        store, _, _, orchestrator = setup_architecture()
        app.state.store = store
        app.state.orchestrator = orchestrator
    log.info("API ready for connections")

    yield

    store = getattr(app.state, "store", None)
    engine = getattr(store, "engine", None)
    if engine is not None:
        engine.dispose()
    log.info("Shutting down Fleet Fraud Engine API")


app = FastAPI(
    title="Fleet Fraud Engine API",
    description="Rule-based fraud detection, risk scoring and alert analytics for vehicle fleets.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("FRAUD_CORS_ORIGINS", "*").split(","),
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)

include_all_routers(app)


@app.get("/health", tags=["Health"])
def health(request: Request) -> Dict[str, Any]:
    """Liveness plus a one-row probe of the record store"""
    status: Dict[str, Any] = {
        "status": "healthy",
        "version": __version__,
        "timestamp": isoformat(utc_now()),
        "database": get_db_config(),
    }
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        status["status"] = "starting"
        return status

    try:
        orchestrator.fleet_repo.store.select("vehicles", limit=1)
        status["store"] = "ok"
    except StoreError as e:
        logger.warning(f"Health check: store unavailable: {e}")
        status["status"] = "degraded"
        status["store"] = str(e)
    return status
