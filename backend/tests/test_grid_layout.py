from __future__ import annotations

import datetime
from typing import List, Optional

from sidur.schemas.tree import (
    AssignmentNode, RoleNode, ScheduleTree, ShiftNode, UnitNode,
)
from sidur.services.grid_layout import (
    build_grid, classify_role, layout_shift_column,
)

_ids = iter(range(1, 100000))


def _role(name: str, occupant: str = "", ambulance: Optional[str] = None) -> RoleNode:
    role_id = next(_ids)
    assignment = None
    if occupant:
        assignment = AssignmentNode(id=next(_ids), schedule_id=1, role_id=role_id,
                                    manual_employee_name=occupant)
    return RoleNode(id=role_id, unit_id=0, role_name=name, ambulance_number=ambulance,
                    assignment=assignment)


def _unit(name: str, roles: List[RoleNode]) -> UnitNode:
    return UnitNode(id=next(_ids), shift_id=0, unit_name=name, roles=roles)


def _shift(name: str, units: List[UnitNode]) -> ShiftNode:
    return ShiftNode(id=next(_ids), schedule_id=1, shift_name=name, units=units)


def _tree(shifts: List[ShiftNode], notes=None) -> ScheduleTree:
    return ScheduleTree(id=1, schedule_date=datetime.date(2024, 5, 1), station="כללי",
                        status="draft", notes=notes or [], shifts=shifts)


def test_role_classification():
    assert classify_role("07:00-15:00") == "annotation"
    assert classify_role("רגיל תקן 2") == "standalone"
    assert classify_role("נהג") == "crew"
    # both ":" and "-" are needed for an annotation
    assert classify_role("נהג-חונך") == "crew"
    assert classify_role("הערה: נהג") == "crew"


def test_north_station_end_to_end():
    tree = _tree([
        _shift("morning", [
            _unit("North Station", [
                _role("Driver", "Dana Levi", "55"),
                _role("Paramedic", "", "55"),
            ]),
        ]),
    ])
    grid = build_grid(tree)

    assert [c.key for c in grid.columns] == ["night", "morning", "evening"]
    [station] = grid.stations
    assert station.station_name == "North Station"
    assert station.row_count == 2
    assert station.station_rowspan == 2

    night, morning, evening = station.rows[0].cells
    assert (morning.role_name, morning.occupant_name, morning.unfilled) == ("Driver", "Dana Levi", False)
    assert morning.ambulance.value == "55"
    assert morning.ambulance.rowspan == 2
    assert night.kind == "blank" and evening.kind == "blank"

    night, morning, evening = station.rows[1].cells
    assert (morning.role_name, morning.occupant_name, morning.unfilled) == ("Paramedic", "", True)
    assert morning.ambulance is None
    assert morning.ambulance_covered
    assert night.kind == "blank" and evening.kind == "blank"


def test_crew_run_merges_and_standalone_keeps_its_own_cell():
    cells = layout_shift_column([
        _role("נהג", "א", "101"),
        _role("חובש", "ב", "101"),
        _role("חונך", "ג", None),
        _role("רגיל תקן 2", "ד", "204"),
    ], 4)

    assert cells[0].ambulance.value == "101"
    assert cells[0].ambulance.rowspan == 3
    assert cells[1].ambulance_covered and cells[2].ambulance_covered
    assert cells[3].kind == "standalone"
    assert cells[3].ambulance.value == "204"
    assert cells[3].ambulance.rowspan == 1
    assert not cells[3].ambulance_covered


def test_run_takes_first_non_empty_ambulance_number():
    cells = layout_shift_column([
        _role("נהג", "א", None),
        _role("חובש", "ב", " 330 "),
        _role("חונך", "ג", "999"),
    ], 3)

    assert cells[0].ambulance.value == "330"
    assert cells[0].ambulance.rowspan == 3


def test_only_the_first_crew_run_is_merged():
    cells = layout_shift_column([
        _role("07:00-11:00"),
        _role("נהג", "א", "12"),
        _role("חובש", "ב", "12"),
        _role("11:00-15:00"),
        _role("נהג", "ג", "13"),
        _role("חובש", "", "14"),
    ], 7)

    assert cells[0].kind == "annotation"
    assert cells[0].ambulance is None
    assert not cells[0].unfilled
    assert (cells[1].ambulance.value, cells[1].ambulance.rowspan) == ("12", 2)
    assert cells[2].ambulance_covered
    # rows after the run keep individual cells
    assert (cells[4].ambulance.value, cells[4].ambulance.rowspan) == ("13", 1)
    assert (cells[5].ambulance.value, cells[5].ambulance.rowspan) == ("14", 1)
    assert cells[5].unfilled
    assert cells[6].kind == "blank"


def test_station_merged_across_shifts_and_padded():
    tree = _tree([
        _shift("ערב", [_unit("מרכז", [_role("נהג", "ד", "7")])]),
        _shift("לילה", [_unit("מרכז", [_role("נהג", "א", "5"), _role("חובש", "ב", "5")])]),
        _shift("בוקר", [_unit("צפון", [_role("נהג", "", "9")])]),
    ])
    grid = build_grid(tree)

    assert [s.station_name for s in grid.stations] == ["מרכז", "צפון"]
    center, north = grid.stations
    assert center.row_count == 2
    night, morning, evening = center.rows[1].cells
    assert night.role_name == "חובש"
    assert morning.kind == "blank"
    assert evening.kind == "blank"
    assert center.rows[0].cells[2].ambulance.value == "7"

    assert north.row_count == 1
    assert north.station_rowspan == 1
    assert north.rows[0].cells[1].unfilled


def test_unknown_shift_names_and_empty_units_are_left_out():
    tree = _tree([
        _shift("תגבור", [_unit("דרום", [_role("נהג", "א", "1")])]),
        _shift("בוקר", [_unit("ריק", [])]),
    ])
    grid = build_grid(tree)

    assert grid.stations == []


def test_empty_schedule_gives_empty_grid_with_notes():
    grid = build_grid(_tree([], notes=["אין משמרות"]))

    assert grid.stations == []
    assert grid.notes == ["אין משמרות"]
    assert len(grid.columns) == 3


def test_same_tree_gives_identical_grid():
    tree = _tree([
        _shift("בוקר", [_unit("צפון", [_role("נהג", "א", "1"), _role("רגיל תקן", "", "2")])]),
    ])

    assert build_grid(tree).model_dump_json() == build_grid(tree).model_dump_json()


def test_central_station_padded_to_longest_shift():
    tree = _tree([
        _shift("morning", [_unit("Central", [_role("Driver", "A", "3"), _role("Medic", "B", "3")])]),
        _shift("evening", [_unit("Central", [
            _role("Driver", "C", "4"), _role("Medic", "D", "4"), _role("Trainee", "E", "4"),
        ])]),
    ])
    [central] = build_grid(tree).stations

    assert central.row_count == 3
    morning = [row.cells[1] for row in central.rows]
    assert [c.occupant_name for c in morning[:2]] == ["A", "B"]
    assert morning[2].kind == "blank"
    assert all(row.cells[0].kind == "blank" for row in central.rows)


def test_ambulance_number_on_middle_crew_role_spans_the_run():
    cells = layout_shift_column([
        _role("R1", "א"),
        _role("R2", "ב", "101"),
        _role("R3", "ג"),
        _role("R4 רגיל תקן", "ד"),
    ], 4)

    assert (cells[0].ambulance.value, cells[0].ambulance.rowspan) == ("101", 3)
    assert cells[1].ambulance is None and cells[2].ambulance is None
    assert (cells[3].ambulance.value, cells[3].ambulance.rowspan) == ("", 1)
