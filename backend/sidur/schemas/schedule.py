from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime, date

ScheduleStatus = Literal["draft", "published", "archived"]

# Nested payloads accepted when a schedule is created in one request
class RoleDraft(BaseModel):
    role_name: str
    ambulance_number: Optional[str] = None

class UnitDraft(BaseModel):
    unit_name: str
    unit_type: Optional[str] = None
    roles: List[RoleDraft] = []

class ShiftDraft(BaseModel):
    shift_name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    units: List[UnitDraft] = []

# Create a schedule
class ScheduleCreate(BaseModel):
    schedule_date: date
    station: Optional[str] = None
    shifts: List[ShiftDraft] = []

# Update a schedule
class ScheduleUpdate(BaseModel):
    schedule_date: Optional[date] = None
    station: Optional[str] = None
    status: Optional[ScheduleStatus] = None
    notes: Optional[List[str]] = None

# Schedule list item
class Schedule(BaseModel):
    id: int
    schedule_date: date
    station: str
    status: str
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Shift
class ShiftCreate(BaseModel):
    shift_name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    shift_order: int = 0

class Shift(ShiftCreate):
    id: int
    schedule_id: int

    class Config:
        from_attributes = True

# Unit
class UnitCreate(BaseModel):
    unit_name: str
    unit_type: Optional[str] = None
    unit_order: int = 0

class UnitUpdate(BaseModel):
    unit_name: Optional[str] = None
    unit_type: Optional[str] = None
    unit_order: Optional[int] = None

class Unit(UnitCreate):
    id: int
    shift_id: int

    class Config:
        from_attributes = True

# Role
class RoleCreate(BaseModel):
    role_name: str
    ambulance_number: Optional[str] = None
    role_order: int = 0

class RoleUpdate(BaseModel):
    role_name: Optional[str] = None
    ambulance_number: Optional[str] = None

class Role(RoleCreate):
    id: int
    unit_id: int

    class Config:
        from_attributes = True

# Assignment: exactly one of employee_id / manual_employee_name
class AssignmentCreate(BaseModel):
    schedule_id: int
    role_id: int
    employee_id: Optional[int] = None
    manual_employee_name: Optional[str] = None

    @field_validator("manual_employee_name")
    def strip_manual_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        v = v.strip()
        return v or None

class Assignment(BaseModel):
    id: int
    schedule_id: int
    role_id: int
    employee_id: Optional[int] = None
    manual_employee_name: Optional[str] = None

    class Config:
        from_attributes = True

# Extra missions (משימות מחוץ למשמרת)
class ExtraMissionBase(BaseModel):
    hours: Optional[str] = None
    location: Optional[str] = None
    vehicle: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None

class ExtraMissionCreate(ExtraMissionBase):
    display_order: int = 0

class ExtraMission(ExtraMissionBase):
    id: int
    schedule_id: int
    display_order: int = 0

    class Config:
        from_attributes = True

# Extra ambulances (מעל התקן)
class ExtraAmbulanceBase(BaseModel):
    working_hours: Optional[str] = None
    station: Optional[str] = None
    ambulance_number: Optional[str] = None
    driver_name: Optional[str] = None
    notes: Optional[str] = None

class ExtraAmbulanceCreate(ExtraAmbulanceBase):
    display_order: int = 0

class ExtraAmbulance(ExtraAmbulanceBase):
    id: int
    schedule_id: int
    display_order: int = 0

    class Config:
        from_attributes = True

# Generic delete/ack response
class MessageResponse(BaseModel):
    success: bool = True
    message: str = Field("", description="user-facing message")
