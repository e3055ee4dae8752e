"""Orchestrator layer for detection runs and analytics."""

from .fraud_orchestrator import DEFAULT_BATCH_DETECTORS, FraudOrchestrator, OrchestratorConfig

__all__ = [
    "DEFAULT_BATCH_DETECTORS",
    "FraudOrchestrator",
    "OrchestratorConfig",
]
