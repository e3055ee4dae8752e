"""
SQLAlchemy table definitions for the fleet record store.

The engine only reads trips, fuel transactions, GPS tracking, vehicles,
drivers, routes and geofences; it writes fraud_alerts, webhooks and the
risk_score cache columns.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()
metadata = Base.metadata


class Company(Base):
    __tablename__ = "companies"

    id = Column(String(36), primary_key=True)
    name = Column(String(200), nullable=False)
    created_at = Column(DateTime)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), index=True)
    vehicle_number = Column(String(50))
    make = Column(String(100))
    model = Column(String(100))
    year = Column(Integer)
    fuel_type = Column(String(30))
    fuel_capacity = Column(Float)
    odometer = Column(Float)
    status = Column(String(20), default="active")
    risk_score = Column(Float)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class Driver(Base):
    __tablename__ = "drivers"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), index=True)
    employee_id = Column(String(50))
    first_name = Column(String(100))
    last_name = Column(String(100))
    status = Column(String(20), default="active")
    risk_score = Column(Float)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class Route(Base):
    __tablename__ = "routes"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), index=True)
    name = Column(String(200))
    expected_distance = Column(Float)
    expected_duration = Column(Float)
    waypoints = Column(JSON)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime)


class Trip(Base):
    __tablename__ = "trips"

    id = Column(String(36), primary_key=True)
    vehicle_id = Column(String(36), index=True)
    driver_id = Column(String(36), index=True)
    route_id = Column(String(36))
    start_time = Column(DateTime, index=True)
    end_time = Column(DateTime)
    start_odometer = Column(Float)
    end_odometer = Column(Float)
    distance_traveled = Column(Float)
    fuel_consumed = Column(Float)
    status = Column(String(20), default="planned")
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class GPSTracking(Base):
    __tablename__ = "gps_tracking"

    id = Column(String(36), primary_key=True)
    trip_id = Column(String(36))
    vehicle_id = Column(String(36))
    timestamp = Column(DateTime, nullable=False)
    location = Column(JSON)
    speed = Column(Float)
    heading = Column(Float)
    created_at = Column(DateTime)

    __table_args__ = (Index("idx_gps_vehicle_time", "vehicle_id", "timestamp"),)


class FuelTransaction(Base):
    __tablename__ = "fuel_transactions"

    id = Column(String(36), primary_key=True)
    vehicle_id = Column(String(36), index=True)
    driver_id = Column(String(36))
    trip_id = Column(String(36))
    transaction_date = Column(DateTime, index=True)
    location = Column(JSON)
    fuel_amount = Column(Float)
    fuel_cost = Column(Float)
    odometer_reading = Column(Float)
    vendor = Column(String(200))
    receipt_number = Column(String(100))
    created_at = Column(DateTime)


class Geofence(Base):
    __tablename__ = "geofences"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), index=True)
    name = Column(String(200))
    type = Column(String(20), default="inclusion")
    geometry = Column(JSON)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime)


class FraudAlert(Base):
    __tablename__ = "fraud_alerts"

    id = Column(String(36), primary_key=True)
    type = Column(String(50), nullable=False)
    severity = Column(String(20), nullable=False)
    status = Column(String(20), default="open")
    vehicle_id = Column(String(36), index=True)
    driver_id = Column(String(36), index=True)
    trip_id = Column(String(36))
    fuel_transaction_id = Column(String(36))
    title = Column(String(255))
    description = Column(Text)
    details = Column(JSON)
    risk_score = Column(Float)
    assigned_to = Column(String(36))
    resolution_notes = Column(Text)
    fingerprint = Column(String(64), index=True)
    resolved_at = Column(DateTime)
    created_at = Column(DateTime, index=True)
    updated_at = Column(DateTime)


class FraudAlertWebhook(Base):
    __tablename__ = "fraud_alert_webhooks"

    id = Column(String(36), primary_key=True)
    company_id = Column(String(36), index=True)
    webhook_url = Column(String(500), nullable=False)
    event_types = Column(JSON)
    is_active = Column(Boolean, default=True)
    secret_key = Column(String(128))
    created_by = Column(String(36))
    last_triggered_at = Column(DateTime)
    created_at = Column(DateTime)
