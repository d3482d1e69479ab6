"""
Spreadsheet export (openpyxl)

Column A is a narrow margin, B holds the station name and C..K hold the
three shift columns (role, name, ambulance each). Sheet direction is RTL.
"""
import io
import logging
from typing import List, Tuple

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..schemas.grid import ExportBundle, ShiftCell
from .export_common import (
    STATION_HEADER, SUB_COLUMN_HEADERS, NOTES_TITLE,
    EXTRA_MISSIONS_TITLE, EXTRA_MISSION_HEADERS,
    EXTRA_AMBULANCES_TITLE, EXTRA_AMBULANCE_HEADERS,
    export_title, extra_mission_row, extra_ambulance_row,
)

logger = logging.getLogger(__name__)

STATION_COL = 2
FIRST_SHIFT_COL = 3
LAST_COL = FIRST_SHIFT_COL + 3 * 3 - 1
COLUMN_WIDTHS = [9, 20] + [20, 25, 10] * 3

HEADER_FILL = PatternFill("solid", fgColor="D9D9D9")
STATION_FILL = PatternFill("solid", fgColor="F5F5F5")
ANNOTATION_FILL = PatternFill("solid", fgColor="E0E0E0")
UNFILLED_FILL = PatternFill("solid", fgColor="FF0000")
MISSIONS_FILL = PatternFill("solid", fgColor="2196F3")
AMBULANCES_FILL = PatternFill("solid", fgColor="FF9800")

THIN = Side(style="thin", color="000000")
BORDER = Border(left=THIN, right=THIN, top=THIN, bottom=THIN)
CENTER = Alignment(horizontal="center", vertical="center", wrap_text=True)

Merge = Tuple[int, int, int, int]


def _style(cell, bold=False, size=10, fill=None):
    cell.font = Font(name="Arial", bold=bold, size=size)
    cell.alignment = CENTER
    cell.border = BORDER
    if fill is not None:
        cell.fill = fill


def _write_shift_cell(ws, row: int, col: int, cell: ShiftCell, merges: List[Merge]):
    for offset in range(3):
        _style(ws.cell(row, col + offset))

    if cell.kind == "blank":
        return
    if cell.kind == "annotation":
        target = ws.cell(row, col, cell.role_name)
        _style(target, bold=True, fill=ANNOTATION_FILL)
        merges.append((row, col, row, col + 2))
        return

    ws.cell(row, col, cell.role_name)
    name_cell = ws.cell(row, col + 1, cell.occupant_name)
    if cell.unfilled:
        name_cell.fill = UNFILLED_FILL

    if cell.ambulance is not None:
        ambulance_cell = ws.cell(row, col + 2, cell.ambulance.value)
        _style(ambulance_cell, bold=True)
        if cell.ambulance.rowspan > 1:
            merges.append((row, col + 2, row + cell.ambulance.rowspan - 1, col + 2))


def _write_table(ws, row: int, title: str, headers, rows, fill) -> int:
    """Appends a titled five-column table from column B; returns the next free row"""
    last_col = STATION_COL + len(headers) - 1
    ws.merge_cells(start_row=row, start_column=STATION_COL, end_row=row, end_column=last_col)
    ws.cell(row, STATION_COL, title).font = Font(name="Arial", bold=True, size=12)
    ws.cell(row, STATION_COL).alignment = CENTER
    row += 1
    for offset, header in enumerate(headers):
        cell = ws.cell(row, STATION_COL + offset, header)
        _style(cell, bold=True, fill=fill)
        cell.font = Font(name="Arial", bold=True, color="FFFFFF")
    row += 1
    for values in rows:
        for offset, value in enumerate(values):
            _style(ws.cell(row, STATION_COL + offset, value))
        row += 1
    return row + 1


def render_excel(bundle: ExportBundle) -> bytes:
    grid = bundle.grid
    wb = Workbook()
    ws = wb.active
    ws.title = "סידור"
    ws.sheet_view.rightToLeft = True

    for index, width in enumerate(COLUMN_WIDTHS, start=1):
        ws.column_dimensions[get_column_letter(index)].width = width

    # Title
    ws.merge_cells(start_row=1, start_column=STATION_COL, end_row=1, end_column=LAST_COL)
    ws.cell(1, STATION_COL, export_title(grid))
    _style(ws.cell(1, STATION_COL), bold=True, size=14)
    ws.row_dimensions[1].height = 25

    # Headers: station, three shifts, then role/name/ambulance under each shift
    ws.merge_cells(start_row=2, start_column=STATION_COL, end_row=3, end_column=STATION_COL)
    ws.cell(2, STATION_COL, STATION_HEADER)
    _style(ws.cell(2, STATION_COL), bold=True, size=12, fill=HEADER_FILL)
    for index, column in enumerate(grid.columns):
        col = FIRST_SHIFT_COL + 3 * index
        ws.merge_cells(start_row=2, start_column=col, end_row=2, end_column=col + 2)
        ws.cell(2, col, column.label)
        _style(ws.cell(2, col), bold=True, size=12, fill=HEADER_FILL)
        for offset, header in enumerate(SUB_COLUMN_HEADERS):
            _style(ws.cell(3, col + offset, header), bold=True, fill=HEADER_FILL)
    ws.row_dimensions[2].height = 25

    row = 4
    merges: List[Merge] = []
    for group in grid.stations:
        start_row = row
        ws.cell(start_row, STATION_COL, group.station_name)
        for grid_row in group.rows:
            _style(ws.cell(row, STATION_COL), bold=True, size=11, fill=STATION_FILL)
            for index, cell in enumerate(grid_row.cells):
                _write_shift_cell(ws, row, FIRST_SHIFT_COL + 3 * index, cell, merges)
            row += 1
        if group.station_rowspan > 1:
            merges.append((start_row, STATION_COL, start_row + group.station_rowspan - 1, STATION_COL))

    # Merged after styling so every covered cell keeps its border
    for start_row, start_col, end_row, end_col in merges:
        ws.merge_cells(start_row=start_row, start_column=start_col, end_row=end_row, end_column=end_col)

    row += 1
    if grid.notes:
        ws.cell(row, STATION_COL, NOTES_TITLE).font = Font(name="Arial", bold=True, size=12)
        row += 1
        for note in grid.notes:
            ws.merge_cells(start_row=row, start_column=STATION_COL, end_row=row, end_column=LAST_COL)
            ws.cell(row, STATION_COL, f"• {note}").font = Font(name="Arial", size=11)
            row += 1
        row += 1

    if bundle.extra_missions:
        row = _write_table(
            ws, row, EXTRA_MISSIONS_TITLE, EXTRA_MISSION_HEADERS,
            [extra_mission_row(m) for m in bundle.extra_missions], MISSIONS_FILL,
        )
    if bundle.extra_ambulances:
        row = _write_table(
            ws, row, EXTRA_AMBULANCES_TITLE, EXTRA_AMBULANCE_HEADERS,
            [extra_ambulance_row(a) for a in bundle.extra_ambulances], AMBULANCES_FILL,
        )

    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info(f"Rendered spreadsheet for schedule {grid.schedule_id} ({row - 1} rows)")
    return buffer.getvalue()
