"""
Tests for timezone utilities
"""

from datetime import datetime, timedelta, timezone

import pytest

from fraud_engine.timezone_utils import isoformat, parse_timestamp, to_fleet_local, utc_now


class TestParseTimestamp:
    """Test timestamp normalization to naive UTC"""

    def test_trailing_z(self):
        assert parse_timestamp("2024-03-13T15:00:00Z") == datetime(2024, 3, 13, 15, 0)

    def test_offset_converted_to_utc(self):
        assert parse_timestamp("2024-03-13T10:00:00-05:00") == datetime(2024, 3, 13, 15, 0)

    def test_aware_datetime(self):
        aware = datetime(2024, 3, 13, 17, 0, tzinfo=timezone(timedelta(hours=2)))
        assert parse_timestamp(aware) == datetime(2024, 3, 13, 15, 0)

    def test_naive_passthrough_and_empty(self):
        naive = datetime(2024, 3, 13, 15, 0)
        assert parse_timestamp(naive) is naive
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            parse_timestamp(1710342000)


class TestFleetLocal:
    def test_new_york_daylight_time(self):
        local = to_fleet_local(datetime(2024, 3, 13, 15, 0), "America/New_York")
        assert local.hour == 11

    def test_utc(self):
        assert to_fleet_local(datetime(2024, 3, 13, 15, 0), "UTC").hour == 15


def test_utc_now_is_naive():
    assert utc_now().tzinfo is None


def test_isoformat_none():
    assert isoformat(None) is None
