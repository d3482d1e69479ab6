"""
Station grid

The single layout every export format encodes: one StationGroup per unique
station name, each row holding exactly three ShiftCells (night, morning,
evening) with their merge and highlight decisions already made.
"""
from pydantic import BaseModel
from typing import Optional, List, Literal
from datetime import date

from .schedule import ExtraMission, ExtraAmbulance

CellKind = Literal["blank", "annotation", "crew", "standalone"]


class AmbulanceCell(BaseModel):
    value: str = ""
    rowspan: int = 1


class ShiftCell(BaseModel):
    """role / occupant / ambulance sub-columns of one shift in one row"""
    kind: CellKind = "blank"
    role_name: str = ""
    occupant_name: str = ""
    unfilled: bool = False
    # the ambulance cell that starts on this row, if any
    ambulance: Optional[AmbulanceCell] = None
    # True when an ambulance cell from an earlier row spans over this one
    ambulance_covered: bool = False


class GridRow(BaseModel):
    cells: List[ShiftCell]


class StationGroup(BaseModel):
    station_name: str
    row_count: int
    station_rowspan: int
    rows: List[GridRow]


class ShiftColumn(BaseModel):
    key: str
    label: str


class Grid(BaseModel):
    schedule_id: int
    schedule_date: date
    station: str
    status: str
    columns: List[ShiftColumn]
    stations: List[StationGroup] = []
    notes: List[str] = []


class ExportBundle(BaseModel):
    """Grid plus the ancillary records appended after it"""
    grid: Grid
    extra_missions: List[ExtraMission] = []
    extra_ambulances: List[ExtraAmbulance] = []
