"""
Assembled schedule tree

Schedule -> [Shift] -> [Unit] -> [Role (+ optional Assignment)], already in
display order. Built by services.schedule_tree, consumed by the grid layout
and returned as-is by GET /api/schedules/{id}.
"""
from pydantic import BaseModel, computed_field
from typing import Optional, List
from datetime import datetime, date


class EmployeeRef(BaseModel):
    id: int
    first_name: str = ""
    last_name: str = ""
    employee_id: Optional[str] = None

    class Config:
        from_attributes = True


class AssignmentNode(BaseModel):
    id: int
    schedule_id: int
    role_id: int
    employee_id: Optional[int] = None
    manual_employee_name: Optional[str] = None
    employee: Optional[EmployeeRef] = None

    @computed_field
    @property
    def display_name(self) -> str:
        """Linked employee's "first last", else the manual name, else empty"""
        if self.employee is not None:
            return f"{self.employee.first_name or ''} {self.employee.last_name or ''}".strip()
        if self.manual_employee_name:
            return self.manual_employee_name.strip()
        return ""


class RoleNode(BaseModel):
    id: int
    unit_id: int
    role_name: str
    ambulance_number: Optional[str] = None
    role_order: int = 0
    assignment: Optional[AssignmentNode] = None

    @computed_field
    @property
    def occupant_name(self) -> str:
        return self.assignment.display_name if self.assignment else ""

    @computed_field
    @property
    def is_filled(self) -> bool:
        return bool(self.occupant_name)


class UnitNode(BaseModel):
    id: int
    shift_id: int
    unit_name: str
    unit_type: Optional[str] = None
    unit_order: int = 0
    roles: List[RoleNode] = []


class ShiftNode(BaseModel):
    id: int
    schedule_id: int
    shift_name: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    shift_order: int = 0
    units: List[UnitNode] = []


class ScheduleTree(BaseModel):
    id: int
    schedule_date: date
    station: str
    status: str
    notes: List[str] = []
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    shifts: List[ShiftNode] = []
