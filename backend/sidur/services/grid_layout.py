"""
Station grid layout

Turns an assembled ScheduleTree into the station-major Grid shared by every
export format. All merge, padding and highlight decisions are made here so
the renderers only have to encode them.
"""
import logging
from typing import Dict, List, Optional

from ..schemas.tree import ScheduleTree, RoleNode
from ..schemas.grid import (
    CellKind, AmbulanceCell, ShiftCell, GridRow, StationGroup, ShiftColumn, Grid,
)
from .schedule_tree import SHIFT_COLUMNS, canonical_shift_key

logger = logging.getLogger(__name__)

# "standard regular slot N" roles always keep their own ambulance cell
STANDALONE_TOKEN = "רגיל תקן"


def is_time_range_label(role_name: Optional[str]) -> bool:
    """Role names such as "07:00-15:00" are labels, not fillable slots"""
    name = role_name or ""
    return ":" in name and "-" in name


def is_standalone_slot(role_name: Optional[str]) -> bool:
    return STANDALONE_TOKEN in (role_name or "")


def classify_role(role_name: Optional[str]) -> CellKind:
    if is_time_range_label(role_name):
        return "annotation"
    if is_standalone_slot(role_name):
        return "standalone"
    return "crew"


def _ambulance_value(role: RoleNode) -> str:
    return (role.ambulance_number or "").strip()


def _first_crew_run(cells: List[ShiftCell]) -> Optional[tuple]:
    """(start, end) of the first contiguous run of crew rows, end inclusive"""
    start = end = None
    for index, cell in enumerate(cells):
        if cell.kind == "crew":
            if start is None:
                start = index
            end = index
        elif start is not None:
            break
    if start is None:
        return None
    return start, end


def layout_shift_column(roles: List[RoleNode], row_count: int) -> List[ShiftCell]:
    """Cells of one shift column of one station, padded to row_count"""
    cells = []
    for role in roles:
        kind = classify_role(role.role_name)
        if kind == "annotation":
            cells.append(ShiftCell(kind=kind, role_name=role.role_name))
            continue
        occupant = role.occupant_name
        cells.append(ShiftCell(
            kind=kind,
            role_name=role.role_name,
            occupant_name=occupant,
            unfilled=not occupant,
        ))

    run = _first_crew_run(cells)
    if run is not None:
        start, end = run
        value = next(
            (_ambulance_value(r) for r in roles[start:end + 1] if _ambulance_value(r)),
            "",
        )
        cells[start].ambulance = AmbulanceCell(value=value, rowspan=end - start + 1)
        for index in range(start + 1, end + 1):
            cells[index].ambulance_covered = True
        after_run = end + 1
    else:
        after_run = len(cells)

    for index, (cell, role) in enumerate(zip(cells, roles)):
        if cell.kind == "standalone" or (cell.kind == "crew" and index >= after_run):
            cell.ambulance = AmbulanceCell(value=_ambulance_value(role))

    while len(cells) < row_count:
        cells.append(ShiftCell())
    return cells


def build_grid(tree: ScheduleTree) -> Grid:
    """Group the tree's roles by station name across the three shift columns"""
    buckets: Dict[str, Dict[str, List[RoleNode]]] = {}
    for shift in tree.shifts or []:
        column = canonical_shift_key(shift.shift_name)
        if column is None:
            logger.debug(
                f"Schedule {tree.id}: shift {shift.id} '{shift.shift_name}' "
                f"has no grid column, skipped"
            )
            continue
        for unit in shift.units or []:
            station = buckets.setdefault(unit.unit_name, {key: [] for key, _ in SHIFT_COLUMNS})
            station[column].extend(unit.roles or [])

    stations = []
    for station_name, by_column in buckets.items():
        row_count = max(len(roles) for roles in by_column.values())
        if row_count == 0:
            continue
        columns = [layout_shift_column(by_column[key], row_count) for key, _ in SHIFT_COLUMNS]
        rows = [GridRow(cells=[column[i] for column in columns]) for i in range(row_count)]
        stations.append(StationGroup(
            station_name=station_name,
            row_count=row_count,
            station_rowspan=row_count if row_count > 1 else 1,
            rows=rows,
        ))

    return Grid(
        schedule_id=tree.id,
        schedule_date=tree.schedule_date,
        station=tree.station,
        status=tree.status,
        columns=[ShiftColumn(key=key, label=label) for key, label in SHIFT_COLUMNS],
        stations=stations,
        notes=list(tree.notes or []),
    )
