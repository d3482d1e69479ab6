from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from pydantic import ValidationError
from typing import List
import logging

from ..core.database import get_db
from ..core.exceptions import commit_or_raise
from ..core.security import get_current_actor, get_client_ip
from ..models.employee import Employee
from ..schemas.employee import (
    EmployeeCreate, EmployeeUpdate, Employee as EmployeeSchema,
    EmployeeBulkImport, EmployeeBulkImportResult,
)
from ..schemas.schedule import MessageResponse
from ..services.activity import log_activity

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_employee(db: Session, employee_id: int) -> Employee:
    employee = db.query(Employee).filter(Employee.id == employee_id).first()
    if not employee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="עובד לא נמצא")
    return employee


@router.get("/employees", response_model=List[EmployeeSchema])
async def list_employees(db: Session = Depends(get_db)):
    """All employees ordered by last name"""
    return db.query(Employee).order_by(Employee.last_name, Employee.first_name, Employee.id).all()


@router.get("/employees/{employee_id}", response_model=EmployeeSchema)
async def get_employee(employee_id: int, db: Session = Depends(get_db)):
    return _get_employee(db, employee_id)


@router.post("/employees", response_model=EmployeeSchema, status_code=status.HTTP_201_CREATED)
async def create_employee(
    payload: EmployeeCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    employee = Employee(**payload.model_dump())
    db.add(employee)
    commit_or_raise(db, "שגיאה ביצירת עובד")
    db.refresh(employee)

    log_activity(
        db, get_current_actor(request), "create", "employee", employee.id,
        f"הוסיף עובד {employee.full_name}", ip_address=get_client_ip(request),
    )
    return employee


@router.put("/employees/{employee_id}", response_model=EmployeeSchema)
async def update_employee(
    employee_id: int,
    payload: EmployeeUpdate,
    request: Request,
    db: Session = Depends(get_db)
):
    employee = _get_employee(db, employee_id)

    update_data = payload.model_dump(exclude_unset=True)
    for field in ("first_name", "last_name"):
        if field in update_data:
            value = (update_data[field] or "").strip()
            if not value:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="שם פרטי ושם משפחה נדרשים")
            update_data[field] = value

    for field, value in update_data.items():
        setattr(employee, field, value)
    commit_or_raise(db, "שגיאה בעדכון עובד")
    db.refresh(employee)

    log_activity(
        db, get_current_actor(request), "update", "employee", employee_id,
        f"עדכן עובד {employee.full_name}", details=update_data, ip_address=get_client_ip(request),
    )
    return employee


@router.delete("/employees/{employee_id}", response_model=MessageResponse)
async def delete_employee(employee_id: int, request: Request, db: Session = Depends(get_db)):
    """Delete an employee; their assignments stay, with the employee link cleared"""
    employee = _get_employee(db, employee_id)
    name = employee.full_name
    db.delete(employee)
    commit_or_raise(db, "שגיאה במחיקת עובד")

    log_activity(
        db, get_current_actor(request), "delete", "employee", employee_id,
        f"מחק עובד {name}", ip_address=get_client_ip(request),
    )
    return MessageResponse(message="עובד נמחק בהצלחה")


@router.post("/employees/bulk-import", response_model=EmployeeBulkImportResult)
async def bulk_import_employees(
    payload: EmployeeBulkImport,
    request: Request,
    db: Session = Depends(get_db)
):
    """Import rows one by one; invalid or failing rows are logged and skipped"""
    imported = []
    failed = 0
    for index, row in enumerate(payload.employees):
        try:
            data = EmployeeCreate.model_validate(row)
        except ValidationError as e:
            failed += 1
            logger.warning(f"Bulk import row {index} rejected: {e.errors()}")
            continue

        employee = Employee(**data.model_dump())
        try:
            db.add(employee)
            db.commit()
            db.refresh(employee)
            imported.append(EmployeeSchema.model_validate(employee))
        except SQLAlchemyError as e:
            db.rollback()
            failed += 1
            logger.error(f"Bulk import row {index} failed: {str(e)}")

    logger.info(f"Bulk import: {len(imported)} imported, {failed} failed")
    log_activity(
        db, get_current_actor(request), "import", "employee", None,
        f"ייבא {len(imported)} עובדים", details={"imported": len(imported), "failed": failed},
        ip_address=get_client_ip(request),
    )
    return EmployeeBulkImportResult(success=True, imported=len(imported), failed=failed, employees=imported)
