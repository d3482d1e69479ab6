"""
Schedule tree assembly

Loads one schedule with its shifts, units, roles and assignments (one batched
read per collection) and rebuilds the ordered tree used by the API and by
every export format.
"""
import asyncio
import json
import logging
from collections import defaultdict
from typing import Callable, ContextManager, Dict, Iterable, List, Optional, TypeVar

from starlette.concurrency import run_in_threadpool

from ..core.config import settings
from ..core.exceptions import NotFoundError, DependencyError
from ..schemas.tree import (
    ScheduleTree, ShiftNode, UnitNode, RoleNode, AssignmentNode, EmployeeRef,
)
from .persistence import ScheduleRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")

RepositoryOpener = Callable[[], ContextManager[ScheduleRepository]]

# The three canonical shift columns, in display order
SHIFT_COLUMNS = (
    ("night", "לילה"),
    ("morning", "בוקר"),
    ("evening", "ערב"),
)
SHIFT_ALIASES = {
    "לילה": "night",
    "night": "night",
    "בוקר": "morning",
    "morning": "morning",
    "ערב": "evening",
    "evening": "evening",
}
SHIFT_PRIORITY = {key: index for index, (key, _) in enumerate(SHIFT_COLUMNS)}
UNKNOWN_SHIFT_PRIORITY = 999


def canonical_shift_key(shift_name: Optional[str]) -> Optional[str]:
    """'night' / 'morning' / 'evening' for a recognised shift name, else None"""
    return SHIFT_ALIASES.get((shift_name or "").strip().lower())


def shift_priority(shift_name: Optional[str]) -> int:
    key = canonical_shift_key(shift_name)
    return SHIFT_PRIORITY[key] if key else UNKNOWN_SHIFT_PRIORITY


def parse_notes(raw: Optional[str]) -> List[str]:
    """Schedule notes are stored as a JSON list; older rows hold one plain string"""
    if not raw or not raw.strip():
        return []
    try:
        notes = json.loads(raw)
    except (TypeError, ValueError):
        return [raw]
    if isinstance(notes, list):
        return [str(note) for note in notes]
    return [raw]


def _order(value: Optional[int]) -> int:
    return value if value is not None else 0


class ScheduleTreeAssembler:
    """Builds a ScheduleTree from the rows a ScheduleRepository returns"""

    def __init__(self, repository: ScheduleRepository):
        self.repository = repository

    def assemble(self, schedule_id: int) -> ScheduleTree:
        schedule = self.repository.get_schedule(schedule_id)
        if schedule is None:
            raise NotFoundError(f"schedule {schedule_id} not found")

        tree = ScheduleTree(
            id=schedule.id,
            schedule_date=schedule.schedule_date,
            station=schedule.station,
            status=schedule.status,
            notes=parse_notes(schedule.notes),
            created_by=schedule.created_by,
            created_at=schedule.created_at,
            updated_at=schedule.updated_at,
            shifts=[],
        )

        shifts = self.repository.list_shifts(schedule_id)
        if not shifts:
            return tree

        units = self.repository.list_units([shift.id for shift in shifts])
        roles = self.repository.list_roles([unit.id for unit in units])
        assignments = self.repository.list_assignments(schedule_id)

        assignment_by_role = self._index_assignments(
            schedule_id, assignments, {role.id for role in roles}
        )

        roles_by_unit: Dict[int, List[RoleNode]] = defaultdict(list)
        for role in roles:
            roles_by_unit[role.unit_id].append(RoleNode(
                id=role.id,
                unit_id=role.unit_id,
                role_name=role.role_name or "",
                ambulance_number=role.ambulance_number,
                role_order=_order(role.role_order),
                assignment=assignment_by_role.get(role.id),
            ))

        units_by_shift: Dict[int, List[UnitNode]] = defaultdict(list)
        for unit in units:
            # sorted() is stable, so equal order hints keep id order
            unit_roles = sorted(roles_by_unit.get(unit.id, []), key=lambda r: r.role_order)
            units_by_shift[unit.shift_id].append(UnitNode(
                id=unit.id,
                shift_id=unit.shift_id,
                unit_name=unit.unit_name or "",
                unit_type=unit.unit_type,
                unit_order=_order(unit.unit_order),
                roles=unit_roles,
            ))

        shift_nodes = []
        for position, shift in enumerate(shifts):
            shift_units = sorted(units_by_shift.get(shift.id, []), key=lambda u: u.unit_order)
            node = ShiftNode(
                id=shift.id,
                schedule_id=shift.schedule_id,
                shift_name=shift.shift_name or "",
                start_time=shift.start_time,
                end_time=shift.end_time,
                shift_order=_order(shift.shift_order),
                units=shift_units,
            )
            shift_nodes.append((shift_priority(node.shift_name), node.shift_order, position, node))

        shift_nodes.sort(key=lambda item: item[:3])
        tree.shifts = [item[3] for item in shift_nodes]
        return tree

    def _index_assignments(
        self, schedule_id: int, assignments: Iterable, role_ids: set
    ) -> Dict[int, AssignmentNode]:
        """At most one assignment per role; the lowest assignment id wins"""
        by_role: Dict[int, AssignmentNode] = {}
        for assignment in sorted(assignments, key=lambda a: a.id):
            if assignment.schedule_id != schedule_id:
                logger.warning(
                    f"Skipping assignment {assignment.id}: belongs to schedule "
                    f"{assignment.schedule_id}, not {schedule_id}"
                )
                continue
            if assignment.role_id not in role_ids:
                logger.warning(
                    f"Skipping assignment {assignment.id}: role {assignment.role_id} "
                    f"is not part of schedule {schedule_id}"
                )
                continue
            if assignment.role_id in by_role:
                logger.warning(
                    f"Role {assignment.role_id} has more than one assignment; keeping "
                    f"{by_role[assignment.role_id].id}, ignoring {assignment.id}"
                )
                continue

            employee = None
            if assignment.employee is not None:
                employee = EmployeeRef(
                    id=assignment.employee.id,
                    first_name=assignment.employee.first_name or "",
                    last_name=assignment.employee.last_name or "",
                    employee_id=assignment.employee.employee_id,
                )
            by_role[assignment.role_id] = AssignmentNode(
                id=assignment.id,
                schedule_id=assignment.schedule_id,
                role_id=assignment.role_id,
                employee_id=assignment.employee_id,
                manual_employee_name=assignment.manual_employee_name,
                employee=employee,
            )
        return by_role


async def run_with_timeout(work: Callable[[], T], description: str, timeout: Optional[float] = None) -> T:
    """
    Run a blocking load in the worker thread pool under a caller-level timeout

    On timeout the call fails as a whole; the abandoned worker finishes on the
    session it opened itself and closes it.
    """
    if timeout is None:
        timeout = settings.PERSISTENCE_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(run_in_threadpool(work), timeout=timeout)
    except asyncio.TimeoutError as e:
        logger.error(f"Loading {description} timed out after {timeout}s")
        raise DependencyError(f"loading {description} timed out") from e


async def assemble_schedule_tree(
    open_repository: RepositoryOpener,
    schedule_id: int,
    timeout: Optional[float] = None,
) -> ScheduleTree:
    """
    Assemble one schedule tree in the worker thread pool

    Args:
        open_repository: returns a context manager yielding a repository
            over a session owned by the load
        schedule_id: schedule to load
        timeout: seconds; defaults to settings.PERSISTENCE_TIMEOUT_SECONDS

    Raises:
        NotFoundError: no such schedule
        DependencyError: a read failed or the timeout expired
    """
    def load() -> ScheduleTree:
        with open_repository() as repository:
            return ScheduleTreeAssembler(repository).assemble(schedule_id)

    return await run_with_timeout(load, f"schedule {schedule_id}", timeout)
