"""
Statistics report over the schedules of a date range
"""
import logging
from collections import Counter, OrderedDict
from datetime import date
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..models.schedule import Schedule, Shift, Unit, Role, Assignment
from ..schemas.report import (
    ReportSummary, TopEmployee, StationStat, ShiftStat, RecentSchedule, StatisticsReport,
)

logger = logging.getLogger(__name__)

TOP_EMPLOYEES = 10
RECENT_SCHEDULES = 10


def _in_range(query, start_date: Optional[date], end_date: Optional[date]):
    if start_date:
        query = query.filter(Schedule.schedule_date >= start_date)
    if end_date:
        query = query.filter(Schedule.schedule_date <= end_date)
    return query


def build_statistics(db: Session, start_date: Optional[date] = None, end_date: Optional[date] = None) -> StatisticsReport:
    """
    Summary counts, busiest occupants, per-station and per-shift-name counts
    and the most recent schedules, all limited to schedule dates in range
    """
    schedules = _in_range(db.query(Schedule), start_date, end_date).all()
    schedule_ids = [s.id for s in schedules]

    assignments = []
    shifts = []
    if schedule_ids:
        assignments = (
            db.query(Assignment)
            .options(joinedload(Assignment.employee))
            .filter(Assignment.schedule_id.in_(schedule_ids))
            .all()
        )
        shifts = db.query(Shift).filter(Shift.schedule_id.in_(schedule_ids)).order_by(Shift.id).all()

    shift_ids = [s.id for s in shifts]
    unit_counts = Counter()
    role_counts = Counter()
    ambulance_numbers = set()
    if shift_ids:
        for shift_id, count in (
            db.query(Unit.shift_id, func.count(Unit.id))
            .filter(Unit.shift_id.in_(shift_ids))
            .group_by(Unit.shift_id)
        ):
            unit_counts[shift_id] = count
        for shift_id, count in (
            db.query(Unit.shift_id, func.count(Role.id))
            .join(Role, Role.unit_id == Unit.id)
            .filter(Unit.shift_id.in_(shift_ids))
            .group_by(Unit.shift_id)
        ):
            role_counts[shift_id] = count
        for (number,) in (
            db.query(Role.ambulance_number)
            .join(Unit, Role.unit_id == Unit.id)
            .filter(Unit.shift_id.in_(shift_ids), Role.ambulance_number.isnot(None))
            .distinct()
        ):
            if number and number.strip():
                ambulance_numbers.add(number.strip())

    # Linked employees and manual names are counted separately
    occupants = Counter()
    names = {}
    for assignment in assignments:
        if assignment.employee is not None:
            key = ("employee", assignment.employee_id)
            names[key] = assignment.employee.full_name
        elif assignment.manual_employee_name and assignment.manual_employee_name.strip():
            key = ("manual", assignment.manual_employee_name.strip())
            names[key] = key[1]
        else:
            continue
        occupants[key] += 1
    top_employees = [
        TopEmployee(employee_name=names[key], assignment_count=count, linked=key[0] == "employee")
        for key, count in sorted(occupants.items(), key=lambda item: (-item[1], names[item[0]]))[:TOP_EMPLOYEES]
    ]

    assignments_per_schedule = Counter(a.schedule_id for a in assignments)
    shifts_per_schedule = Counter(s.schedule_id for s in shifts)

    stations = OrderedDict()
    for schedule in schedules:
        stat = stations.setdefault(schedule.station, StationStat(station=schedule.station))
        stat.schedule_count += 1
        stat.assignment_count += assignments_per_schedule[schedule.id]
    station_stats = sorted(stations.values(), key=lambda s: -s.schedule_count)

    shift_map = OrderedDict()
    for shift in shifts:
        stat = shift_map.setdefault(shift.shift_name, ShiftStat(shift_name=shift.shift_name))
        stat.shift_count += 1
        stat.unit_count += unit_counts[shift.id]
        stat.role_count += role_counts[shift.id]

    recent = sorted(schedules, key=lambda s: (s.schedule_date, s.id), reverse=True)[:RECENT_SCHEDULES]
    recent_schedules = [
        RecentSchedule(
            id=s.id,
            schedule_date=s.schedule_date,
            station=s.station,
            status=s.status,
            shift_count=shifts_per_schedule[s.id],
            assignment_count=assignments_per_schedule[s.id],
        )
        for s in recent
    ]

    logger.info(
        f"Statistics {start_date or '-'}..{end_date or '-'}: {len(schedules)} schedules, "
        f"{len(assignments)} assignments"
    )
    return StatisticsReport(
        start_date=start_date,
        end_date=end_date,
        summary=ReportSummary(
            total_schedules=len(schedules),
            total_assignments=len(assignments),
            unique_ambulances=len(ambulance_numbers),
        ),
        top_employees=top_employees,
        station_stats=station_stats,
        shift_stats=list(shift_map.values()),
        recent_schedules=recent_schedules,
    )
