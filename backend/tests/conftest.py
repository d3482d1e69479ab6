from __future__ import annotations

import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from sidur.core.database import Base, get_db, get_session_factory
from sidur.main import app
from sidur.models import Schedule, Shift, Unit, Role, Assignment, Employee


@pytest.fixture()
def session_factory():
    # one shared connection so the worker threads see the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    try:
        # no context manager: the lifespan would touch the configured database
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def seed_north_station(session) -> Schedule:
    """2024-05-01, one morning shift, North Station: Driver (Dana Levi) and an open Paramedic slot"""
    dana = Employee(first_name="Dana", last_name="Levi")
    schedule = Schedule(schedule_date=datetime.date(2024, 5, 1), station="כללי", status="draft")
    session.add_all([dana, schedule])
    session.flush()

    shift = Shift(schedule_id=schedule.id, shift_name="morning", shift_order=0)
    session.add(shift)
    session.flush()
    unit = Unit(shift_id=shift.id, unit_name="North Station", unit_type=None, unit_order=0)
    session.add(unit)
    session.flush()
    driver = Role(unit_id=unit.id, role_name="Driver", ambulance_number="55", role_order=0)
    paramedic = Role(unit_id=unit.id, role_name="Paramedic", ambulance_number="55", role_order=1)
    session.add_all([driver, paramedic])
    session.flush()
    session.add(Assignment(schedule_id=schedule.id, role_id=driver.id, employee_id=dana.id))
    session.commit()
    return schedule


class BrokenSession:
    """Session whose every query fails the way a dropped database connection does"""

    def query(self, *entities):
        raise OperationalError("SELECT 1", {}, Exception("server closed the connection unexpectedly"))

    def close(self):
        pass
