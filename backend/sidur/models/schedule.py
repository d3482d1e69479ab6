from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Date, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base

SCHEDULE_STATUSES = ("draft", "published", "archived")


class Schedule(Base):
    """One day's roster"""
    __tablename__ = "schedules"
    __table_args__ = (
        UniqueConstraint("schedule_date", "station", name="uq_schedules_date_station"),
    )

    id = Column(Integer, primary_key=True, index=True)
    schedule_date = Column(Date, index=True, nullable=False)
    station = Column(String, nullable=False)  # free-text label, "כללי" by default
    status = Column(String, default="draft", nullable=False)  # draft / published / archived
    notes = Column(Text)  # JSON list of free-text notes
    created_by = Column(String)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    # relationships
    shifts = relationship("Shift", back_populates="schedule", cascade="all, delete-orphan")
    assignments = relationship("Assignment", back_populates="schedule", cascade="all, delete-orphan")
    extra_missions = relationship("ExtraMission", back_populates="schedule", cascade="all, delete-orphan")
    extra_ambulances = relationship("ExtraAmbulance", back_populates="schedule", cascade="all, delete-orphan")


class Shift(Base):
    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), index=True, nullable=False)
    shift_name = Column(String, nullable=False)  # לילה / בוקר / ערב
    start_time = Column(String)  # HH:MM
    end_time = Column(String)
    shift_order = Column(Integer, default=0)

    schedule = relationship("Schedule", back_populates="shifts")
    units = relationship("Unit", back_populates="shift", cascade="all, delete-orphan")


class Unit(Base):
    """A station / vehicle post inside a shift"""
    __tablename__ = "units"

    id = Column(Integer, primary_key=True, index=True)
    shift_id = Column(Integer, ForeignKey("shifts.id", ondelete="CASCADE"), index=True, nullable=False)
    unit_name = Column(String, nullable=False)
    unit_type = Column(String)  # "אטן" = all roles share one ambulance number
    unit_order = Column(Integer, default=0)

    shift = relationship("Shift", back_populates="units")
    roles = relationship("Role", back_populates="unit", cascade="all, delete-orphan")


class Role(Base):
    """One fillable slot inside a unit (or a time-range annotation row)"""
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, ForeignKey("units.id", ondelete="CASCADE"), index=True, nullable=False)
    role_name = Column(String, nullable=False)
    ambulance_number = Column(String)
    role_order = Column(Integer, default=0)

    unit = relationship("Unit", back_populates="roles")
    assignments = relationship("Assignment", back_populates="role", cascade="all, delete-orphan")


class Assignment(Base):
    """Occupant of one role in one schedule: an employee or a manual name"""
    __tablename__ = "assignments"
    __table_args__ = (
        UniqueConstraint("schedule_id", "role_id", name="uq_assignments_schedule_role"),
    )

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), index=True, nullable=False)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), index=True, nullable=False)
    employee_id = Column(Integer, ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    manual_employee_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=func.now())

    schedule = relationship("Schedule", back_populates="assignments")
    role = relationship("Role", back_populates="assignments")
    employee = relationship("Employee", back_populates="assignments")
