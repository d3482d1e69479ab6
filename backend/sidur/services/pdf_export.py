"""
PDF export (ReportLab)

PDF has no table merges, so every merged cell of the grid is drawn as one
explicit box. Columns run right to left like the spreadsheet and HTML
exports; Hebrew strings are reordered for display with python-bidi and drawn
with a TTF that has Hebrew glyphs (the bundled DejaVu Sans unless
PDF_FONT_PATH names another one).
"""
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from bidi.algorithm import get_display
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont, TTFError
from reportlab.pdfgen import canvas

from ..core.config import settings
from ..core.exceptions import RenderError
from ..schemas.grid import ExportBundle, Grid, ShiftCell, StationGroup
from .export_common import (
    STATION_HEADER, SUB_COLUMN_HEADERS, NOTES_TITLE,
    EXTRA_MISSIONS_TITLE, EXTRA_MISSION_HEADERS,
    EXTRA_AMBULANCES_TITLE, EXTRA_AMBULANCE_HEADERS,
    export_title, extra_mission_row, extra_ambulance_row,
)

logger = logging.getLogger(__name__)

PAGE_SIZE = landscape(A4)
MARGIN = 30
ROW_HEIGHT = 18
TITLE_HEIGHT = 28
# station, then role / name / ambulance for each of the three shifts
WIDTH_UNITS = [20] + [20, 25, 10] * 3

HEADER_FILL = colors.HexColor("#D9D9D9")
SHIFT_HEADER_FILL = colors.HexColor("#808080")
STATION_FILL = colors.HexColor("#F5F5F5")
ANNOTATION_FILL = colors.HexColor("#E0E0E0")
UNFILLED_FILL = colors.HexColor("#FF0000")
MISSIONS_FILL = colors.HexColor("#2196F3")
AMBULANCES_FILL = colors.HexColor("#FF9800")

FONT_DIR = Path(__file__).resolve().parent.parent / "fonts"
BUNDLED_FONTS = (FONT_DIR / "DejaVuSans.ttf", FONT_DIR / "DejaVuSans-Bold.ttf")
HEBREW_LETTERS = "אבגדהוזחטיכךלמםנןסעפףצץקרשת"

# (regular path, bold path) -> registered (regular, bold) font names
_registered_fonts: Dict[Tuple[str, str], Tuple[str, str]] = {}


def _font_files() -> Tuple[str, str]:
    if settings.PDF_FONT_PATH:
        return settings.PDF_FONT_PATH, settings.PDF_FONT_PATH
    return str(BUNDLED_FONTS[0]), str(BUNDLED_FONTS[1])


def _load_font(name: str, path: str) -> TTFont:
    try:
        font = TTFont(name, path)
    except (OSError, TTFError) as e:
        logger.error(f"Could not load PDF font {path}: {str(e)}")
        raise RenderError(f"could not load PDF font {path}: {e}") from e
    missing = [letter for letter in HEBREW_LETTERS if ord(letter) not in font.face.charToGlyph]
    if missing:
        logger.error(f"PDF font {path} has no glyphs for {''.join(missing)}")
        raise RenderError(f"PDF font {path} cannot draw Hebrew")
    return font


def _fonts() -> Tuple[str, str]:
    """(regular, bold) font names, registered with ReportLab on first use"""
    files = _font_files()
    if files not in _registered_fonts:
        index = len(_registered_fonts)
        names = (f"SidurFont{index}", f"SidurFont{index}-Bold")
        for name, path in zip(names, files):
            pdfmetrics.registerFont(_load_font(name, path))
        _registered_fonts[files] = names
    return _registered_fonts[files]


def _visual(text: Optional[str]) -> str:
    return get_display(text) if text else ""


class PdfPage:
    """Canvas plus a cursor that moves down the page and breaks when full"""

    def __init__(self, buffer: io.BytesIO):
        self.canvas = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
        self.width, self.height = PAGE_SIZE
        self.regular, self.bold = _fonts()
        self.top = self.height - MARGIN
        unit = (self.width - 2 * MARGIN) / sum(WIDTH_UNITS)
        self.columns = []
        right = self.width - MARGIN
        for units in WIDTH_UNITS:
            width = units * unit
            self.columns.append((right - width, width))
            right -= width

    def fits(self, height: float) -> bool:
        return self.top - height >= MARGIN

    def new_page(self):
        self.canvas.showPage()
        self.top = self.height - MARGIN

    def box(self, x, top, width, height, text="", fill=None, bold=False, size=9, text_color=colors.black):
        c = self.canvas
        c.setStrokeColor(colors.black)
        if fill is not None:
            c.setFillColor(fill)
        c.rect(x, top - height, width, height, stroke=1, fill=1 if fill is not None else 0)
        if text:
            c.setFillColor(text_color)
            c.setFont(self.bold if bold else self.regular, size)
            c.drawCentredString(x + width / 2, top - height / 2 - size / 3, _visual(text))

    def span(self, first: int, last: int) -> Tuple[float, float]:
        """x and width of logical columns first..last (right to left)"""
        x = self.columns[last][0]
        width = sum(self.columns[i][1] for i in range(first, last + 1))
        return x, width

    def save(self):
        self.canvas.save()


def _draw_title(page: PdfPage, grid: Grid):
    x, width = page.span(0, len(WIDTH_UNITS) - 1)
    page.box(x, page.top, width, TITLE_HEIGHT, export_title(grid), fill=HEADER_FILL, bold=True, size=14)
    page.top -= TITLE_HEIGHT


def _draw_grid_header(page: PdfPage, grid: Grid):
    x, width = page.columns[0]
    page.box(x, page.top, width, ROW_HEIGHT * 2, STATION_HEADER,
             fill=SHIFT_HEADER_FILL, bold=True, size=10, text_color=colors.white)
    for index, column in enumerate(grid.columns):
        first = 1 + 3 * index
        x, width = page.span(first, first + 2)
        page.box(x, page.top, width, ROW_HEIGHT, column.label,
                 fill=SHIFT_HEADER_FILL, bold=True, size=10, text_color=colors.white)
        for offset, header in enumerate(SUB_COLUMN_HEADERS):
            x, width = page.columns[first + offset]
            page.box(x, page.top - ROW_HEIGHT, width, ROW_HEIGHT, header, fill=HEADER_FILL, bold=True)
    page.top -= ROW_HEIGHT * 2


def _draw_shift_cell(page: PdfPage, first: int, row_top: float, cell: ShiftCell):
    if cell.kind == "annotation":
        x, width = page.span(first, first + 2)
        page.box(x, row_top, width, ROW_HEIGHT, cell.role_name, fill=ANNOTATION_FILL, bold=True)
        return

    role_x, role_width = page.columns[first]
    name_x, name_width = page.columns[first + 1]
    ambulance_x, ambulance_width = page.columns[first + 2]
    page.box(role_x, row_top, role_width, ROW_HEIGHT, cell.role_name)
    page.box(name_x, row_top, name_width, ROW_HEIGHT, cell.occupant_name,
             fill=UNFILLED_FILL if cell.unfilled else None)
    if cell.ambulance is not None:
        page.box(ambulance_x, row_top, ambulance_width, ROW_HEIGHT * cell.ambulance.rowspan,
                 cell.ambulance.value, bold=True)
    elif not cell.ambulance_covered:
        page.box(ambulance_x, row_top, ambulance_width, ROW_HEIGHT)


def _draw_station(page: PdfPage, group: StationGroup):
    x, width = page.columns[0]
    page.box(x, page.top, width, ROW_HEIGHT * group.station_rowspan, group.station_name,
             fill=STATION_FILL, bold=True, size=10)
    for row_index, row in enumerate(group.rows):
        row_top = page.top - row_index * ROW_HEIGHT
        for index, cell in enumerate(row.cells):
            _draw_shift_cell(page, 1 + 3 * index, row_top, cell)
    page.top -= ROW_HEIGHT * group.row_count


def _draw_table(page: PdfPage, title: str, headers: Sequence[str], rows: List[List[str]], fill):
    if not page.fits(ROW_HEIGHT * 3):
        page.new_page()
    page.top -= ROW_HEIGHT
    page.canvas.setFillColor(colors.black)
    page.canvas.setFont(page.bold, 12)
    page.canvas.drawCentredString(page.width / 2, page.top, _visual(title))
    page.top -= ROW_HEIGHT / 2

    full_x, full_width = page.span(0, len(WIDTH_UNITS) - 1)
    width = full_width / len(headers)

    def draw_row(values, header=False):
        if not page.fits(ROW_HEIGHT):
            page.new_page()
        for offset, value in enumerate(values):
            x = full_x + full_width - (offset + 1) * width
            if header:
                page.box(x, page.top, width, ROW_HEIGHT, value, fill=fill, bold=True, text_color=colors.white)
            else:
                page.box(x, page.top, width, ROW_HEIGHT, value)
        page.top -= ROW_HEIGHT

    draw_row(headers, header=True)
    for values in rows:
        draw_row(values)


def render_pdf(bundle: ExportBundle) -> bytes:
    grid = bundle.grid
    buffer = io.BytesIO()
    page = PdfPage(buffer)

    _draw_title(page, grid)
    _draw_grid_header(page, grid)
    for group in grid.stations:
        height = ROW_HEIGHT * group.row_count
        if not page.fits(height):
            page.new_page()
            _draw_grid_header(page, grid)
        _draw_station(page, group)

    if grid.notes:
        if not page.fits(ROW_HEIGHT * 2):
            page.new_page()
        page.top -= ROW_HEIGHT
        page.canvas.setFillColor(colors.black)
        page.canvas.setFont(page.bold, 12)
        page.canvas.drawRightString(page.width - MARGIN, page.top, _visual(NOTES_TITLE))
        page.canvas.setFont(page.regular, 11)
        for note in grid.notes:
            if not page.fits(ROW_HEIGHT):
                page.new_page()
            page.top -= ROW_HEIGHT
            page.canvas.drawRightString(page.width - MARGIN, page.top, _visual(f"• {note}"))

    if bundle.extra_missions:
        _draw_table(page, EXTRA_MISSIONS_TITLE, EXTRA_MISSION_HEADERS,
                    [extra_mission_row(m) for m in bundle.extra_missions], MISSIONS_FILL)
    if bundle.extra_ambulances:
        _draw_table(page, EXTRA_AMBULANCES_TITLE, EXTRA_AMBULANCE_HEADERS,
                    [extra_ambulance_row(a) for a in bundle.extra_ambulances], AMBULANCES_FILL)

    page.save()
    logger.info(f"Rendered PDF for schedule {grid.schedule_id}")
    return buffer.getvalue()
