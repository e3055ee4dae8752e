"""
Fuel Repository - fuel transaction reads
"""

import logging
from datetime import datetime
from typing import Iterable, List, Optional

from fraud_engine.models import FuelTransaction
from fraud_engine.repositories.record_store import RecordStore

logger = logging.getLogger(__name__)


class FuelRepository:
    """Repository for fuel transaction data access"""

    def __init__(self, store: RecordStore):
        self.store = store

    def get_transactions(
        self,
        vehicle_ids: Optional[Iterable[str]] = None,
        since: Optional[datetime] = None,
        driver_id: Optional[str] = None,
        order_by=("transaction_date", "asc"),
    ) -> List[FuelTransaction]:
        filters = {}
        if vehicle_ids is not None:
            filters["vehicle_id"] = list(vehicle_ids)
        if since is not None:
            filters["transaction_date"] = {"operator": "gte", "value": since}
        if driver_id:
            filters["driver_id"] = driver_id

        rows = self.store.select("fuel_transactions", filters, order_by=order_by)
        transactions = [FuelTransaction.from_record(r) for r in rows]
        logger.debug(f"Fetched {len(transactions)} fuel transactions")
        return transactions

    def get_transaction(self, transaction_id: str) -> Optional[FuelTransaction]:
        row = self.store.get("fuel_transactions", transaction_id)
        return FuelTransaction.from_record(row) if row else None
