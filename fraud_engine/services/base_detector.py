"""
Detector base class

A detector fetches candidate records for one company and window through the
repositories, then hands them to a pure rule function that returns
Indicators. Store outages degrade to an empty result with a warning; any
other exception propagates and aborts the caller's run.
"""

import logging
from datetime import datetime
from typing import List, Optional

from fraud_engine.exceptions import StoreUnavailableError
from fraud_engine.models import Indicator
from fraud_engine.repositories import FleetRepository, FuelRepository, TripRepository
from fraud_engine.timezone_utils import utc_now

logger = logging.getLogger(__name__)


class BaseDetector:
    """Common fetch/degrade wrapper around a rule function"""

    name = "base"

    def __init__(
        self,
        fleet_repo: FleetRepository,
        trip_repo: Optional[TripRepository] = None,
        fuel_repo: Optional[FuelRepository] = None,
    ):
        self.fleet_repo = fleet_repo
        self.trip_repo = trip_repo
        self.fuel_repo = fuel_repo

    def detect(self, company_id: Optional[str] = None, now: Optional[datetime] = None) -> List[Indicator]:
        now = now or utc_now()
        try:
            indicators = self._detect(company_id, now)
        except StoreUnavailableError as e:
            logger.warning(f"{self.name} detection skipped, store unavailable: {e}")
            return []

        if indicators:
            logger.info(f"{self.name}: {len(indicators)} indicators for company {company_id}")
        return indicators

    def _detect(self, company_id: Optional[str], now: datetime) -> List[Indicator]:
        raise NotImplementedError
