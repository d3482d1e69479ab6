from pydantic import BaseModel, field_validator
from typing import Optional, List
from datetime import datetime


class EmployeeBase(BaseModel):
    first_name: str
    last_name: str
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    position: Optional[str] = None
    station: Optional[str] = None

    @field_validator("first_name", "last_name")
    def name_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("שם פרטי ושם משפחה נדרשים")
        return v


class EmployeeCreate(EmployeeBase):
    pass


class EmployeeUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    employee_id: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    position: Optional[str] = None
    station: Optional[str] = None


class Employee(EmployeeBase):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EmployeeBulkImport(BaseModel):
    # rows are validated one by one so a bad row does not reject the batch
    employees: List[dict]


class EmployeeBulkImportResult(BaseModel):
    success: bool
    imported: int
    failed: int
    employees: List[Employee]
