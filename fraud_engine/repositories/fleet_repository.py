"""
Fleet Repository - vehicles, drivers, routes and geofences

Also resolves a company into its vehicle/driver sets, which is how every
detector scopes trips, fuel transactions and GPS rows to one company.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from fraud_engine.models import Driver, EntityType, Geofence, Route, Vehicle
from fraud_engine.repositories.record_store import RecordStore

logger = logging.getLogger(__name__)

_ENTITY_TABLES = {
    EntityType.DRIVER: "drivers",
    EntityType.VEHICLE: "vehicles",
}


@dataclass
class CompanyScope:
    """Vehicles and drivers visible to one company (or to all when company_id is None)"""

    company_id: Optional[str]
    vehicles: Dict[str, Vehicle] = field(default_factory=dict)
    drivers: Dict[str, Driver] = field(default_factory=dict)

    @property
    def vehicle_ids(self) -> Optional[List[str]]:
        """Filter value for vehicle_id columns; None means unscoped"""
        if self.company_id is None:
            return None
        return sorted(self.vehicles)

    @property
    def driver_ids(self) -> Optional[List[str]]:
        if self.company_id is None:
            return None
        return sorted(self.drivers)

    def vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        return self.vehicles.get(vehicle_id) if vehicle_id else None

    def driver(self, driver_id: Optional[str]) -> Optional[Driver]:
        return self.drivers.get(driver_id) if driver_id else None


class FleetRepository:
    """Repository for fleet master data"""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_vehicles(self, company_id: Optional[str] = None) -> List[Vehicle]:
        filters = {"company_id": company_id} if company_id else None
        rows = self.store.select("vehicles", filters, order_by=("vehicle_number", "asc"))
        return [Vehicle.from_record(r) for r in rows]

    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        row = self.store.get("vehicles", vehicle_id)
        return Vehicle.from_record(row) if row else None

    def get_drivers(self, company_id: Optional[str] = None) -> List[Driver]:
        filters = {"company_id": company_id} if company_id else None
        rows = self.store.select("drivers", filters, order_by=("last_name", "asc"))
        return [Driver.from_record(r) for r in rows]

    def get_driver(self, driver_id: str) -> Optional[Driver]:
        row = self.store.get("drivers", driver_id)
        return Driver.from_record(row) if row else None

    def get_routes(self, company_id: Optional[str] = None) -> List[Route]:
        filters = {"company_id": company_id} if company_id else None
        rows = self.store.select("routes", filters)
        return [Route.from_record(r) for r in rows]

    def get_route_map(self, company_id: Optional[str] = None) -> Dict[str, Route]:
        return {route.id: route for route in self.get_routes(company_id)}

    def get_active_geofences(self, company_id: Optional[str] = None) -> List[Geofence]:
        filters = {"is_active": True}
        if company_id:
            filters["company_id"] = company_id
        rows = self.store.select("geofences", filters, order_by=("name", "asc"))
        return [Geofence.from_record(r) for r in rows]

    def resolve_scope(self, company_id: Optional[str] = None) -> CompanyScope:
        scope = CompanyScope(
            company_id=company_id,
            vehicles={v.id: v for v in self.get_vehicles(company_id)},
            drivers={d.id: d for d in self.get_drivers(company_id)},
        )
        logger.debug(
            f"Resolved scope for company {company_id}: "
            f"{len(scope.vehicles)} vehicles, {len(scope.drivers)} drivers"
        )
        return scope

    def update_risk_score(self, entity_type: EntityType, entity_id: str, score: float) -> bool:
        """Overwrite the cached risk_score column; returns True if a row changed"""
        table = _ENTITY_TABLES[entity_type]
        updated = self.store.update(table, {"risk_score": score}, {"id": entity_id})
        return bool(updated)
