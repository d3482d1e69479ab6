"""
Printable HTML export (Jinja2)
"""
import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from ..schemas.grid import ExportBundle
from .export_common import (
    STATION_HEADER, SUB_COLUMN_HEADERS, NOTES_TITLE,
    EXTRA_MISSIONS_TITLE, EXTRA_MISSION_HEADERS,
    EXTRA_AMBULANCES_TITLE, EXTRA_AMBULANCE_HEADERS,
    export_title, format_hebrew_date, extra_mission_row, extra_ambulance_row,
)

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_html(bundle: ExportBundle) -> str:
    grid = bundle.grid
    template = env.get_template("schedule_export.html")
    html = template.render(
        grid=grid,
        title=export_title(grid),
        date_label=format_hebrew_date(grid.schedule_date),
        station_header=STATION_HEADER,
        sub_headers=SUB_COLUMN_HEADERS,
        notes_title=NOTES_TITLE,
        missions_title=EXTRA_MISSIONS_TITLE,
        mission_headers=EXTRA_MISSION_HEADERS,
        extra_missions=[extra_mission_row(m) for m in bundle.extra_missions],
        ambulances_title=EXTRA_AMBULANCES_TITLE,
        ambulance_headers=EXTRA_AMBULANCE_HEADERS,
        extra_ambulances=[extra_ambulance_row(a) for a in bundle.extra_ambulances],
    )
    logger.info(f"Rendered HTML for schedule {grid.schedule_id}")
    return html
