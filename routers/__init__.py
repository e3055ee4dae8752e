"""
Routers package

    fraud_router            /fraud/detect, /fraud/alerts, /fraud/risk-scores,
                            /fraud/patterns, /fraud/predictions, /fraud/webhooks
    fuel_router             /fuel/detect/*, /fuel/baseline/{id}, /fuel/stats
    route_analysis_router   /route-analysis/trips/{id}/efficiency, anomalies, optimizations
    monitoring_router       /monitoring/speed-check
"""

from .fraud_router import router as fraud_router
from .fuel_router import router as fuel_router
from .monitoring_router import router as monitoring_router
from .route_analysis_router import router as route_analysis_router


def include_all_routers(app, prefix: str = ""):
    """Include every router in the FastAPI app"""
    app.include_router(fraud_router, prefix=prefix)
    app.include_router(fuel_router, prefix=prefix)
    app.include_router(route_analysis_router, prefix=prefix)
    app.include_router(monitoring_router, prefix=prefix)


__all__ = [
    "fraud_router",
    "fuel_router",
    "include_all_routers",
    "monitoring_router",
    "route_analysis_router",
]
