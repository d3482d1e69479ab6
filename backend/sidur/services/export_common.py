"""
Helpers shared by the spreadsheet, HTML and PDF exports
"""
import logging
from datetime import date
from typing import List, Optional

from ..schemas.grid import Grid, ExportBundle
from ..schemas.schedule import ExtraMission, ExtraAmbulance
from .schedule_tree import RepositoryOpener, ScheduleTreeAssembler, run_with_timeout
from .grid_layout import build_grid

logger = logging.getLogger(__name__)

# Sunday first, as on a Hebrew calendar
HEBREW_WEEKDAYS = ['ראשון', 'שני', 'שלישי', 'רביעי', 'חמישי', 'שישי', 'שבת']

STATION_HEADER = "תחנה"
SUB_COLUMN_HEADERS = ("משימה", "שם", "אמבולנס")
NOTES_TITLE = "הערות:"
EXTRA_MISSIONS_TITLE = "משימות מחוץ למשמרת"
EXTRA_MISSION_HEADERS = ("שעות", "מיקום", "רכב", "שם נהג", "הערות")
EXTRA_AMBULANCES_TITLE = "מעל התקן"
EXTRA_AMBULANCE_HEADERS = ("שעות", "תחנה", "מספר אמבולנס", "שם נהג", "הערות")


def format_hebrew_date(value: date) -> str:
    """'<weekday> תאריך : d.m.yy'"""
    weekday = HEBREW_WEEKDAYS[(value.weekday() + 1) % 7]
    return f"{weekday} תאריך : {value.day}.{value.month}.{str(value.year)[-2:]}"


def export_title(grid: Grid) -> str:
    return f"סידור-עבודה כללי : {format_hebrew_date(grid.schedule_date)}"


def export_filename(grid: Grid, extension: str) -> str:
    return f"sidur-{grid.schedule_date.isoformat()}.{extension}"


def extra_mission_row(mission: ExtraMission) -> List[str]:
    return [
        mission.hours or "",
        mission.location or "",
        mission.vehicle or "-",
        mission.driver_name or "-",
        mission.notes or "-",
    ]


def extra_ambulance_row(ambulance: ExtraAmbulance) -> List[str]:
    return [
        ambulance.working_hours or "",
        ambulance.station or "",
        ambulance.ambulance_number or "-",
        ambulance.driver_name or "-",
        ambulance.notes or "-",
    ]


async def load_export_bundle(
    open_repository: RepositoryOpener,
    schedule_id: int,
    timeout: Optional[float] = None,
) -> ExportBundle:
    """Grid of the schedule plus its extra missions and extra ambulances, under one timeout"""
    def load() -> ExportBundle:
        with open_repository() as repository:
            tree = ScheduleTreeAssembler(repository).assemble(schedule_id)
            missions = repository.list_extra_missions(schedule_id)
            ambulances = repository.list_extra_ambulances(schedule_id)
            return ExportBundle(
                grid=build_grid(tree),
                extra_missions=[ExtraMission.model_validate(m) for m in missions],
                extra_ambulances=[ExtraAmbulance.model_validate(a) for a in ambulances],
            )

    bundle = await run_with_timeout(load, f"export of schedule {schedule_id}", timeout)
    logger.info(
        f"Export bundle for schedule {schedule_id}: {len(bundle.grid.stations)} stations, "
        f"{len(bundle.extra_missions)} extra missions, {len(bundle.extra_ambulances)} extra ambulances"
    )
    return bundle
