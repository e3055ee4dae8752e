"""
Tests for SQLRecordStore against in-memory SQLite, plus the retry decorator
"""

import sqlite3
from datetime import datetime
from unittest.mock import MagicMock

import pymysql
import pytest
from sqlalchemy import exc

from fraud_engine.exceptions import StoreUnavailableError, StoreWriteError
from fraud_engine.repositories import SQLRecordStore
from fraud_engine.repositories import db_connection
from fraud_engine.repositories.db_connection import with_retry


@pytest.fixture
def sql_store():
    store = SQLRecordStore(url="sqlite://", create_tables=True, max_retries=0)
    store.insert("vehicles", {"id": "v-1", "company_id": "c-1", "vehicle_number": "TRK-001", "fuel_capacity": 100.0})
    store.insert("vehicles", {"id": "v-2", "company_id": "c-1", "vehicle_number": "TRK-002", "fuel_capacity": 80.0})
    store.insert("vehicles", {"id": "v-3", "company_id": "c-2", "vehicle_number": "TRK-003"})
    yield store
    store.engine.dispose()


class TestSQLRecordStore:
    """Test the SQLAlchemy Core store"""

    def test_select_equality_and_order(self, sql_store):
        rows = sql_store.select("vehicles", {"company_id": "c-1"}, order_by=("vehicle_number", "desc"))
        assert [r["id"] for r in rows] == ["v-2", "v-1"]

    def test_select_membership_range_limit(self, sql_store):
        rows = sql_store.select(
            "vehicles",
            {"id": ["v-1", "v-2"], "fuel_capacity": {"operator": "gte", "value": 80}},
            order_by=("fuel_capacity", "asc"),
            limit=1,
        )
        assert [r["id"] for r in rows] == ["v-2"]

    def test_null_equality(self, sql_store):
        rows = sql_store.select("vehicles", {"fuel_capacity": None})
        assert [r["id"] for r in rows] == ["v-3"]

    def test_insert_defaults_id_and_created_at(self, sql_store):
        row = sql_store.insert(
            "fraud_alerts",
            {"type": "fuel_anomaly", "severity": "high", "details": {"fuel_amount": 95.0}},
        )
        assert row["id"]
        assert isinstance(row["created_at"], datetime)
        assert row["details"] == {"fuel_amount": 95.0}

    def test_insert_unknown_column(self, sql_store):
        with pytest.raises(StoreWriteError):
            sql_store.insert("vehicles", {"id": "v-4", "colour": "red"})

    def test_insert_duplicate_key_is_write_error(self, sql_store):
        with pytest.raises(StoreWriteError):
            sql_store.insert("vehicles", {"id": "v-1"})

    def test_unknown_table_and_column(self, sql_store):
        with pytest.raises(StoreUnavailableError):
            sql_store.select("no_such_table")
        with pytest.raises(StoreUnavailableError):
            sql_store.select("vehicles", {"colour": "red"})

    def test_update(self, sql_store):
        updated = sql_store.update("vehicles", {"risk_score": 0.42}, {"id": "v-1"})
        assert len(updated) == 1
        assert updated[0]["risk_score"] == pytest.approx(0.42)
        assert updated[0]["updated_at"] is not None

    def test_update_no_match(self, sql_store):
        assert sql_store.update("vehicles", {"risk_score": 0.1}, {"id": "missing"}) == []


class TestWithRetry:
    """Test exponential backoff retry"""

    def test_retries_then_succeeds(self):
        func = MagicMock(side_effect=[pymysql.err.OperationalError(2003, "down"), "ok"])
        wrapped = with_retry(max_retries=2, base_delay=0)(func)
        assert wrapped() == "ok"
        assert func.call_count == 2

    def test_gives_up_after_max_retries(self):
        func = MagicMock(side_effect=ConnectionError("down"))
        wrapped = with_retry(max_retries=1, base_delay=0)(func)
        with pytest.raises(ConnectionError):
            wrapped()
        assert func.call_count == 2

    def test_non_retryable_propagates_immediately(self):
        func = MagicMock(side_effect=ValueError("bad"))
        wrapped = with_retry(max_retries=3, base_delay=0)(func)
        with pytest.raises(ValueError):
            wrapped()
        assert func.call_count == 1

    def test_wrapped_driver_disconnect_is_retried(self):
        error = exc.OperationalError("SELECT 1", {}, pymysql.err.OperationalError(2013, "Lost connection"))
        func = MagicMock(side_effect=[error, "ok"])
        wrapped = with_retry(max_retries=2, base_delay=0)(func)
        assert wrapped() == "ok"
        assert func.call_count == 2

    def test_sqlite_operational_error_not_retried(self):
        error = exc.OperationalError("SELECT 1", {}, sqlite3.OperationalError("no such table: vehicles"))
        func = MagicMock(side_effect=error)
        wrapped = with_retry(max_retries=3, base_delay=0)(func)
        with pytest.raises(exc.OperationalError):
            wrapped()
        assert func.call_count == 1

    def test_missing_table_fails_without_backoff(self, monkeypatch):
        sleep = MagicMock()
        monkeypatch.setattr(db_connection.time, "sleep", sleep)
        store = SQLRecordStore(url="sqlite://", create_tables=False, max_retries=3)

        with pytest.raises(StoreUnavailableError):
            store.select("vehicles")
        sleep.assert_not_called()
        store.engine.dispose()
