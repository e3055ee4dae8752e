"""
Fraud engine error taxonomy.

Detectors degrade to "no indicators" on StoreUnavailableError; anything else
raised out of a detector aborts the run.
"""


class FraudEngineError(Exception):
    """Base class for fraud engine errors"""


class StoreError(FraudEngineError):
    """Record store failure"""


class StoreUnavailableError(StoreError):
    """Store unreachable, unknown table or query failed"""


class StoreWriteError(StoreError):
    """A single insert/update was rejected (constraint, bad value)"""


class UnknownDetectorError(FraudEngineError, KeyError):
    def __init__(self, name: str):
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Unknown detector: {self.name}"


class AlertNotFoundError(FraudEngineError, LookupError):
    def __init__(self, alert_id: str):
        super().__init__(alert_id)
        self.alert_id = alert_id

    def __str__(self) -> str:
        return f"Fraud alert not found: {self.alert_id}"


class GeometryError(FraudEngineError):
    """Geometry predicate could not evaluate a point/fence pair"""
