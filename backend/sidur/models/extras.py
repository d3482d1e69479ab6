from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..core.database import Base


class ExtraMission(Base):
    """Mission outside the regular shifts (משימות מחוץ למשמרת)"""
    __tablename__ = "extra_missions"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), index=True, nullable=False)
    hours = Column(String)
    location = Column(String)
    vehicle = Column(String)
    driver_name = Column(String)
    notes = Column(Text)
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    schedule = relationship("Schedule", back_populates="extra_missions")


class ExtraAmbulance(Base):
    """Ambulance staffed above the standard (מעל התקן)"""
    __tablename__ = "extra_ambulances"

    id = Column(Integer, primary_key=True, index=True)
    schedule_id = Column(Integer, ForeignKey("schedules.id", ondelete="CASCADE"), index=True, nullable=False)
    working_hours = Column(String)
    station = Column(String)
    ambulance_number = Column(String)
    driver_name = Column(String)
    notes = Column(Text)
    display_order = Column(Integer, default=0)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())

    schedule = relationship("Schedule", back_populates="extra_ambulances")
