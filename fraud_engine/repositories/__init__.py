"""Repository layer for record store access."""

from .alert_repository import AlertRepository
from .fleet_repository import CompanyScope, FleetRepository
from .fuel_repository import FuelRepository
from .record_store import InMemoryRecordStore, RecordStore, matches_filters
from .sql_store import SQLRecordStore
from .trip_repository import TripRepository

__all__ = [
    "AlertRepository",
    "CompanyScope",
    "FleetRepository",
    "FuelRepository",
    "InMemoryRecordStore",
    "RecordStore",
    "SQLRecordStore",
    "TripRepository",
    "matches_filters",
]
