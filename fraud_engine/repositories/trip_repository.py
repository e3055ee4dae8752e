"""
Trip Repository - trips and GPS tracking reads
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from fraud_engine.models import GPSPosition, Trip
from fraud_engine.repositories.record_store import RecordStore

logger = logging.getLogger(__name__)


class TripRepository:
    """Repository for trip and GPS data access"""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_trips(
        self,
        vehicle_ids: Optional[Iterable[str]] = None,
        statuses: Optional[Iterable[str]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        time_field: str = "start_time",
        driver_id: Optional[str] = None,
        order_by=("start_time", "asc"),
    ) -> List[Trip]:
        """
        Trips filtered by vehicle set, status and a time range on time_field
        (start_time or end_time).
        """
        filters = {}
        if vehicle_ids is not None:
            filters["vehicle_id"] = list(vehicle_ids)
        if statuses is not None:
            filters["status"] = list(statuses)
        if driver_id:
            filters["driver_id"] = driver_id
        if since is not None:
            filters[time_field] = {"operator": "gte", "value": since}
        elif until is not None:
            filters[time_field] = {"operator": "lte", "value": until}

        rows = self.store.select("trips", filters, order_by=order_by)
        trips = [Trip.from_record(r) for r in rows]
        if since is not None and until is not None:
            # One condition per column in a filter spec; upper bound applied here
            trips = [
                t for t in trips
                if getattr(t, time_field) is not None and getattr(t, time_field) <= until
            ]
        logger.debug(f"Fetched {len(trips)} trips")
        return trips

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        row = self.store.get("trips", trip_id)
        return Trip.from_record(row) if row else None

    def get_positions(
        self,
        vehicle_ids: Optional[Iterable[str]] = None,
        since: Optional[datetime] = None,
        min_speed: Optional[float] = None,
        trip_id: Optional[str] = None,
        order_by=("timestamp", "desc"),
    ) -> List[GPSPosition]:
        """GPS rows, newest first by default; min_speed is exclusive"""
        filters = {}
        if vehicle_ids is not None:
            filters["vehicle_id"] = list(vehicle_ids)
        if since is not None:
            filters["timestamp"] = {"operator": "gte", "value": since}
        if min_speed is not None:
            filters["speed"] = {"operator": "gt", "value": min_speed}
        if trip_id:
            filters["trip_id"] = trip_id

        rows = self.store.select("gps_tracking", filters, order_by=order_by)
        return [GPSPosition.from_record(r) for r in rows]

    def get_trips_by_ids(self, trip_ids: Iterable[str]) -> Dict[str, Trip]:
        ids = sorted({t for t in trip_ids if t})
        if not ids:
            return {}
        rows = self.store.select("trips", {"id": ids})
        return {str(r["id"]): Trip.from_record(r) for r in rows}
