from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from typing import List, Optional, Union
from datetime import date
import json
import logging

from ..core.config import settings
from ..core.database import get_db, get_session_factory
from ..core.exceptions import RosterError, MalformedInputError, to_http_exception, commit_or_raise
from ..core.security import get_current_actor, get_client_ip
from ..models.schedule import Schedule, Shift, Unit, Role, Assignment
from ..models.employee import Employee
from ..models.extras import ExtraMission, ExtraAmbulance
from ..schemas.schedule import (
    ScheduleCreate, ScheduleUpdate, Schedule as ScheduleSchema,
    ShiftCreate, Shift as ShiftSchema,
    UnitCreate, UnitUpdate, Unit as UnitSchema,
    RoleCreate, RoleUpdate, Role as RoleSchema,
    AssignmentCreate, Assignment as AssignmentSchema,
    ExtraMissionCreate, ExtraMission as ExtraMissionSchema,
    ExtraAmbulanceCreate, ExtraAmbulance as ExtraAmbulanceSchema,
    MessageResponse,
)
from ..schemas.tree import ScheduleTree
from ..services.activity import log_activity
from ..services.persistence import ScheduleRepository, open_repository
from ..services.schedule_tree import assemble_schedule_tree
from ..websocket.connection_manager import connection_manager

logger = logging.getLogger(__name__)

router = APIRouter()


def _record(db: Session, request: Request, action: str, entity: str, entity_id: Optional[int],
            description: str, details: Optional[dict] = None):
    log_activity(
        db,
        get_current_actor(request),
        action,
        entity_type=entity,
        entity_id=entity_id,
        description=description,
        details=details,
        ip_address=get_client_ip(request),
    )


def _get_or_404(db: Session, model, record_id: int, detail: str):
    record = db.query(model).filter(model.id == record_id).first()
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
    return record


def _schedule_id_of_unit(unit: Unit) -> int:
    return unit.shift.schedule_id


def _schedule_id_of_role(role: Role) -> int:
    return role.unit.shift.schedule_id


# ---------------------------------------------------------------------------
# Schedules
# ---------------------------------------------------------------------------

@router.get("/schedules", response_model=List[ScheduleSchema])
async def list_schedules(
    schedule_date: Optional[date] = Query(None, alias="date"),
    station: Optional[str] = None,
    db: Session = Depends(get_db)
):
    """Schedules, newest date first, optionally filtered by date and station"""
    query = db.query(Schedule)
    if schedule_date:
        query = query.filter(Schedule.schedule_date == schedule_date)
    if station:
        query = query.filter(Schedule.station == station)
    return query.order_by(Schedule.schedule_date.desc(), Schedule.id.desc()).all()


@router.get("/schedules/{schedule_id}", response_model=ScheduleTree)
async def get_schedule(schedule_id: int, session_factory=Depends(get_session_factory)):
    """The full ordered tree: shifts -> units -> roles -> assignment"""
    try:
        return await assemble_schedule_tree(lambda: open_repository(session_factory), schedule_id)
    except RosterError as e:
        logger.warning(f"Loading schedule {schedule_id} failed: {str(e)}")
        raise to_http_exception(e)


@router.post("/schedules", response_model=ScheduleSchema, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    payload: ScheduleCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Create a schedule, optionally with its shifts, units and roles in one go"""
    station = (payload.station or "").strip() or settings.DEFAULT_STATION
    schedule = Schedule(
        schedule_date=payload.schedule_date,
        station=station,
        status="draft",
        created_by=get_current_actor(request),
    )
    db.add(schedule)
    try:
        db.flush()
        if payload.shifts:
            _create_structure(db, schedule, payload)
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Duplicate schedule {payload.schedule_date} / {station}: {str(e.orig)}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="סידור עבודה לתאריך זה כבר קיים במערכת")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Creating schedule failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה ביצירת סידור עבודה")

    db.refresh(schedule)
    _record(db, request, "create", "schedule", schedule.id,
            f"יצר סידור עבודה חדש לתאריך {schedule.schedule_date} בתחנה {station}",
            {"station": station, "date": schedule.schedule_date.isoformat()})
    return schedule


def _create_structure(db: Session, schedule: Schedule, payload: ScheduleCreate):
    """Insert nested shifts, units and roles: one batch per level, order fields follow list position"""
    shifts = [
        Shift(
            schedule_id=schedule.id,
            shift_name=draft.shift_name,
            start_time=draft.start_time,
            end_time=draft.end_time,
            shift_order=index,
        )
        for index, draft in enumerate(payload.shifts)
    ]
    db.add_all(shifts)
    db.flush()

    unit_drafts = []
    for shift, draft in zip(shifts, payload.shifts):
        for index, unit_draft in enumerate(draft.units):
            unit = Unit(
                shift_id=shift.id,
                unit_name=unit_draft.unit_name,
                unit_type=unit_draft.unit_type,
                unit_order=index,
            )
            unit_drafts.append((unit, unit_draft))
    db.add_all([unit for unit, _ in unit_drafts])
    db.flush()

    roles = [
        Role(
            unit_id=unit.id,
            role_name=role_draft.role_name,
            ambulance_number=role_draft.ambulance_number,
            role_order=index,
        )
        for unit, unit_draft in unit_drafts
        for index, role_draft in enumerate(unit_draft.roles)
    ]
    db.add_all(roles)
    db.flush()
    logger.info(
        f"Schedule {schedule.id}: created {len(shifts)} shifts, "
        f"{len(unit_drafts)} units, {len(roles)} roles"
    )


@router.put("/schedules/{schedule_id}", response_model=ScheduleSchema)
async def update_schedule(
    schedule_id: int,
    payload: ScheduleUpdate,
    request: Request,
    db: Session = Depends(get_db)
):
    schedule = _get_or_404(db, Schedule, schedule_id, "סידור עבודה לא נמצא")
    previous_status = schedule.status

    # date, station and status cannot be cleared
    update_data = {
        field: value for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field == "notes"
    }
    if "notes" in update_data:
        update_data["notes"] = json.dumps(update_data["notes"] or [], ensure_ascii=False)
    for field, value in update_data.items():
        setattr(schedule, field, value)

    commit_or_raise(db, "שגיאה בעדכון סידור עבודה", "סידור עבודה לתאריך זה כבר קיים במערכת")
    db.refresh(schedule)

    # only the draft -> published transition counts as publishing
    published = previous_status != "published" and schedule.status == "published"
    _record(
        db, request,
        "publish" if published else "update",
        "schedule", schedule_id,
        f"{'פרסם' if published else 'עדכן'} סידור עבודה לתאריך {schedule.schedule_date}",
        {"station": schedule.station, "status": schedule.status, "date": schedule.schedule_date.isoformat()},
    )
    await connection_manager.broadcast_schedule_change(schedule_id, "schedule", "update", schedule_id)
    return schedule


@router.delete("/schedules/{schedule_id}", response_model=MessageResponse)
async def delete_schedule(schedule_id: int, request: Request, db: Session = Depends(get_db)):
    schedule = _get_or_404(db, Schedule, schedule_id, "סידור עבודה לא נמצא")
    schedule_date = schedule.schedule_date
    db.delete(schedule)
    commit_or_raise(db, "שגיאה במחיקת סידור עבודה")

    _record(db, request, "delete", "schedule", schedule_id,
            f"מחק סידור עבודה לתאריך {schedule_date}")
    await connection_manager.broadcast_schedule_change(schedule_id, "schedule", "delete", schedule_id)
    return MessageResponse(message="סידור עבודה נמחק בהצלחה")


# ---------------------------------------------------------------------------
# Shifts / units / roles
# ---------------------------------------------------------------------------

@router.post("/schedules/{schedule_id}/shifts", response_model=ShiftSchema, status_code=status.HTTP_201_CREATED)
async def add_shift(
    schedule_id: int,
    payload: ShiftCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    _get_or_404(db, Schedule, schedule_id, "סידור עבודה לא נמצא")
    shift = Shift(schedule_id=schedule_id, **payload.model_dump())
    db.add(shift)
    commit_or_raise(db, "שגיאה בהוספת משמרת")
    db.refresh(shift)

    _record(db, request, "create", "shift", shift.id, f"הוסיף משמרת {shift.shift_name}")
    await connection_manager.broadcast_schedule_change(schedule_id, "shift", "create", shift.id)
    return shift


@router.delete("/schedules/shifts/{shift_id}", response_model=MessageResponse)
async def delete_shift(shift_id: int, request: Request, db: Session = Depends(get_db)):
    shift = _get_or_404(db, Shift, shift_id, "משמרת לא נמצאה")
    schedule_id = shift.schedule_id
    db.delete(shift)
    commit_or_raise(db, "שגיאה במחיקת משמרת")

    _record(db, request, "delete", "shift", shift_id, "מחק משמרת")
    await connection_manager.broadcast_schedule_change(schedule_id, "shift", "delete", shift_id)
    return MessageResponse(message="משמרת נמחקה בהצלחה")


@router.post("/schedules/shifts/{shift_id}/units", response_model=UnitSchema, status_code=status.HTTP_201_CREATED)
async def add_unit(
    shift_id: int,
    payload: UnitCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    shift = _get_or_404(db, Shift, shift_id, "משמרת לא נמצאה")
    unit = Unit(shift_id=shift_id, **payload.model_dump())
    db.add(unit)
    commit_or_raise(db, "שגיאה בהוספת יחידה")
    db.refresh(unit)

    _record(db, request, "create", "unit", unit.id, f"הוסיף יחידה {unit.unit_name}")
    await connection_manager.broadcast_schedule_change(shift.schedule_id, "unit", "create", unit.id)
    return unit


@router.put("/schedules/units/{unit_id}", response_model=UnitSchema)
async def update_unit(
    unit_id: int,
    payload: UnitUpdate,
    request: Request,
    db: Session = Depends(get_db)
):
    unit = _get_or_404(db, Unit, unit_id, "יחידה לא נמצאה")
    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="לא סופקו נתונים לעדכון")
    for field, value in update_data.items():
        setattr(unit, field, value)
    commit_or_raise(db, "שגיאה בעדכון יחידה")
    db.refresh(unit)

    _record(db, request, "update", "unit", unit_id, f"עדכן יחידה {unit.unit_name}", update_data)
    await connection_manager.broadcast_schedule_change(_schedule_id_of_unit(unit), "unit", "update", unit_id)
    return unit


@router.delete("/schedules/units/{unit_id}", response_model=MessageResponse)
async def delete_unit(unit_id: int, request: Request, db: Session = Depends(get_db)):
    unit = _get_or_404(db, Unit, unit_id, "יחידה לא נמצאה")
    schedule_id = _schedule_id_of_unit(unit)
    db.delete(unit)
    commit_or_raise(db, "שגיאה במחיקת יחידה")

    _record(db, request, "delete", "unit", unit_id, "מחק יחידה")
    await connection_manager.broadcast_schedule_change(schedule_id, "unit", "delete", unit_id)
    return MessageResponse(message="יחידה נמחקה בהצלחה")


@router.post("/schedules/units/{unit_id}/roles", response_model=RoleSchema, status_code=status.HTTP_201_CREATED)
async def add_role(
    unit_id: int,
    payload: RoleCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    unit = _get_or_404(db, Unit, unit_id, "יחידה לא נמצאה")
    role = Role(unit_id=unit_id, **payload.model_dump())
    db.add(role)
    commit_or_raise(db, "שגיאה בהוספת תפקיד")
    db.refresh(role)

    _record(db, request, "create", "role", role.id, f"הוסיף תפקיד {role.role_name}")
    await connection_manager.broadcast_schedule_change(_schedule_id_of_unit(unit), "role", "create", role.id)
    return role


@router.put("/schedules/roles/{role_id}", response_model=Union[List[RoleSchema], RoleSchema])
async def update_role(
    role_id: int,
    payload: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db)
):
    """
    Rename a role and/or set its ambulance number

    In a unit of the shared-ambulance type the number is written to every
    role of the unit, and all of the unit's roles are returned.
    """
    role = _get_or_404(db, Role, role_id, "תפקיד לא נמצא")
    update_data = payload.model_dump(exclude_unset=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="לא סופקו נתונים לעדכון")

    unit = role.unit
    shared = "ambulance_number" in update_data and unit.unit_type == settings.SHARED_AMBULANCE_UNIT_TYPE
    for field, value in update_data.items():
        setattr(role, field, value)
    if shared:
        db.query(Role).filter(Role.unit_id == unit.id).update(
            {Role.ambulance_number: update_data["ambulance_number"]}, synchronize_session="fetch"
        )
    commit_or_raise(db, "שגיאה בעדכון תפקיד")

    schedule_id = _schedule_id_of_unit(unit)
    _record(db, request, "update", "role", role_id, f"עדכן תפקיד {role.role_name}", update_data)
    await connection_manager.broadcast_schedule_change(schedule_id, "role", "update", role_id)

    if shared:
        logger.info(f"Ambulance number of unit {unit.id} set on all of its roles")
        return db.query(Role).filter(Role.unit_id == unit.id).order_by(Role.role_order, Role.id).all()
    db.refresh(role)
    return role


@router.delete("/schedules/roles/{role_id}", response_model=MessageResponse)
async def delete_role(role_id: int, request: Request, db: Session = Depends(get_db)):
    role = _get_or_404(db, Role, role_id, "תפקיד לא נמצא")
    schedule_id = _schedule_id_of_role(role)
    db.delete(role)
    commit_or_raise(db, "שגיאה במחיקת תפקיד")

    _record(db, request, "delete", "role", role_id, "מחק תפקיד")
    await connection_manager.broadcast_schedule_change(schedule_id, "role", "delete", role_id)
    return MessageResponse(message="תפקיד נמחק בהצלחה")


# ---------------------------------------------------------------------------
# Assignments
# ---------------------------------------------------------------------------

@router.post("/schedules/assignments", response_model=AssignmentSchema)
async def assign_role(
    payload: AssignmentCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    """Put an employee (or a manually typed name) in a role; replaces the current occupant"""
    if (payload.employee_id is None) == (payload.manual_employee_name is None):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="נדרש מזהה עובד או שם עובד ידני (אחד בלבד)"
        )

    _get_or_404(db, Schedule, payload.schedule_id, "סידור עבודה לא נמצא")
    role = _get_or_404(db, Role, payload.role_id, "תפקיד לא נמצא")
    owner_id = _schedule_id_of_role(role)
    if owner_id != payload.schedule_id:
        error = MalformedInputError(
            f"role {role.id} belongs to schedule {owner_id}, not {payload.schedule_id}"
        )
        logger.warning(f"Rejected assignment: {str(error)}")
        raise to_http_exception(error)

    employee = None
    if payload.employee_id is not None:
        employee = _get_or_404(db, Employee, payload.employee_id, "עובד לא נמצא")

    def find_existing():
        return db.query(Assignment).filter(
            Assignment.schedule_id == payload.schedule_id,
            Assignment.role_id == payload.role_id
        ).order_by(Assignment.id).first()

    assignment = find_existing()
    try:
        if assignment is None:
            assignment = Assignment(schedule_id=payload.schedule_id, role_id=payload.role_id)
            db.add(assignment)
        assignment.employee_id = payload.employee_id
        assignment.manual_employee_name = payload.manual_employee_name
        db.commit()
    except IntegrityError:
        # another request inserted the same role first: update that row instead
        db.rollback()
        logger.info(f"Concurrent assignment of role {payload.role_id}, updating the existing row")
        assignment = find_existing()
        if assignment is None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="התפקיד כבר שובץ, רענן ונסה שוב")
        assignment.employee_id = payload.employee_id
        assignment.manual_employee_name = payload.manual_employee_name
        commit_or_raise(db, "שגיאה בשיבוץ עובד")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Assigning role {payload.role_id} failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה בשיבוץ עובד")
    db.refresh(assignment)

    name = employee.full_name if employee else payload.manual_employee_name
    _record(db, request, "assign", "assignment", assignment.id,
            f"שיבץ את {name} לתפקיד {role.role_name}",
            {"schedule_id": payload.schedule_id, "role_id": payload.role_id})
    await connection_manager.broadcast_schedule_change(payload.schedule_id, "assignment", "update", assignment.id)
    return assignment


@router.delete("/schedules/assignments/{assignment_id}", response_model=MessageResponse)
async def remove_assignment(assignment_id: int, request: Request, db: Session = Depends(get_db)):
    assignment = _get_or_404(db, Assignment, assignment_id, "שיבוץ לא נמצא")
    schedule_id = assignment.schedule_id
    db.delete(assignment)
    commit_or_raise(db, "שגיאה בהסרת שיבוץ")

    _record(db, request, "unassign", "assignment", assignment_id, "הסיר שיבוץ")
    await connection_manager.broadcast_schedule_change(schedule_id, "assignment", "delete", assignment_id)
    return MessageResponse(message="שיבוץ הוסר בהצלחה")


# ---------------------------------------------------------------------------
# Extra missions (משימות מחוץ למשמרת) and extra ambulances (מעל התקן)
# ---------------------------------------------------------------------------

@router.get("/schedules/{schedule_id}/extra-missions", response_model=List[ExtraMissionSchema])
async def list_extra_missions(schedule_id: int, db: Session = Depends(get_db)):
    try:
        return ScheduleRepository(db).list_extra_missions(schedule_id)
    except RosterError as e:
        raise to_http_exception(e)


@router.post("/schedules/{schedule_id}/extra-missions", response_model=ExtraMissionSchema,
             status_code=status.HTTP_201_CREATED)
async def add_extra_mission(
    schedule_id: int,
    payload: ExtraMissionCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    _get_or_404(db, Schedule, schedule_id, "סידור עבודה לא נמצא")
    mission = ExtraMission(schedule_id=schedule_id, **payload.model_dump())
    db.add(mission)
    commit_or_raise(db, "שגיאה ביצירת משימה נוספת")
    db.refresh(mission)

    _record(db, request, "create", "extra_mission", mission.id, f"הוסיף משימה נוספת {mission.location or ''}".strip())
    await connection_manager.broadcast_schedule_change(schedule_id, "extra_mission", "create", mission.id)
    return mission


@router.put("/schedules/extra-missions/{mission_id}", response_model=ExtraMissionSchema)
async def update_extra_mission(
    mission_id: int,
    payload: ExtraMissionCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    mission = _get_or_404(db, ExtraMission, mission_id, "משימה נוספת לא נמצאה")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(mission, field, value)
    commit_or_raise(db, "שגיאה בעדכון משימה נוספת")
    db.refresh(mission)

    _record(db, request, "update", "extra_mission", mission_id, "עדכן משימה נוספת")
    await connection_manager.broadcast_schedule_change(mission.schedule_id, "extra_mission", "update", mission_id)
    return mission


@router.delete("/schedules/extra-missions/{mission_id}", response_model=MessageResponse)
async def delete_extra_mission(mission_id: int, request: Request, db: Session = Depends(get_db)):
    mission = _get_or_404(db, ExtraMission, mission_id, "משימה נוספת לא נמצאה")
    schedule_id = mission.schedule_id
    db.delete(mission)
    commit_or_raise(db, "שגיאה במחיקת משימה נוספת")

    _record(db, request, "delete", "extra_mission", mission_id, "מחק משימה נוספת")
    await connection_manager.broadcast_schedule_change(schedule_id, "extra_mission", "delete", mission_id)
    return MessageResponse(message="משימה נוספת נמחקה בהצלחה")


@router.get("/schedules/{schedule_id}/extra-ambulances", response_model=List[ExtraAmbulanceSchema])
async def list_extra_ambulances(schedule_id: int, db: Session = Depends(get_db)):
    try:
        return ScheduleRepository(db).list_extra_ambulances(schedule_id)
    except RosterError as e:
        raise to_http_exception(e)


@router.post("/schedules/{schedule_id}/extra-ambulances", response_model=ExtraAmbulanceSchema,
             status_code=status.HTTP_201_CREATED)
async def add_extra_ambulance(
    schedule_id: int,
    payload: ExtraAmbulanceCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    _get_or_404(db, Schedule, schedule_id, "סידור עבודה לא נמצא")
    ambulance = ExtraAmbulance(schedule_id=schedule_id, **payload.model_dump())
    db.add(ambulance)
    commit_or_raise(db, "שגיאה ביצירת מעל התקן")
    db.refresh(ambulance)

    _record(db, request, "create", "extra_ambulance", ambulance.id,
            f"הוסיף אמבולנס מעל התקן {ambulance.ambulance_number or ''}".strip())
    await connection_manager.broadcast_schedule_change(schedule_id, "extra_ambulance", "create", ambulance.id)
    return ambulance


@router.put("/schedules/extra-ambulances/{ambulance_id}", response_model=ExtraAmbulanceSchema)
async def update_extra_ambulance(
    ambulance_id: int,
    payload: ExtraAmbulanceCreate,
    request: Request,
    db: Session = Depends(get_db)
):
    ambulance = _get_or_404(db, ExtraAmbulance, ambulance_id, "מעל התקן לא נמצא")
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(ambulance, field, value)
    commit_or_raise(db, "שגיאה בעדכון מעל התקן")
    db.refresh(ambulance)

    _record(db, request, "update", "extra_ambulance", ambulance_id, "עדכן אמבולנס מעל התקן")
    await connection_manager.broadcast_schedule_change(ambulance.schedule_id, "extra_ambulance", "update", ambulance_id)
    return ambulance


@router.delete("/schedules/extra-ambulances/{ambulance_id}", response_model=MessageResponse)
async def delete_extra_ambulance(ambulance_id: int, request: Request, db: Session = Depends(get_db)):
    ambulance = _get_or_404(db, ExtraAmbulance, ambulance_id, "מעל התקן לא נמצא")
    schedule_id = ambulance.schedule_id
    db.delete(ambulance)
    commit_or_raise(db, "שגיאה במחיקת מעל התקן")

    _record(db, request, "delete", "extra_ambulance", ambulance_id, "מחק אמבולנס מעל התקן")
    await connection_manager.broadcast_schedule_change(schedule_id, "extra_ambulance", "delete", ambulance_id)
    return MessageResponse(message="מעל התקן נמחק בהצלחה")
