from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import HTMLResponse, StreamingResponse
from sqlalchemy.orm import Session
from io import BytesIO
import logging

from ..core.database import get_db, get_session_factory
from ..core.exceptions import RosterError, to_http_exception
from ..core.security import get_current_actor, get_client_ip
from ..schemas.grid import Grid, ExportBundle
from ..services.activity import log_activity
from ..services.persistence import open_repository
from ..services.export_common import load_export_bundle, export_filename
from ..services.excel_export import render_excel
from ..services.html_export import render_html
from ..services.pdf_export import render_pdf

logger = logging.getLogger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


async def _load(session_factory, schedule_id: int) -> ExportBundle:
    try:
        return await load_export_bundle(lambda: open_repository(session_factory), schedule_id)
    except RosterError as e:
        logger.warning(f"Export of schedule {schedule_id} failed: {str(e)}")
        raise to_http_exception(e)


def _attachment(content: bytes, filename: str, media_type: str) -> StreamingResponse:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    return StreamingResponse(BytesIO(content), headers=headers, media_type=media_type)


@router.get("/export/grid/{schedule_id}", response_model=Grid)
async def export_grid(schedule_id: int, session_factory=Depends(get_session_factory)):
    """The station grid every export format is rendered from"""
    bundle = await _load(session_factory, schedule_id)
    return bundle.grid


@router.get("/export/excel/{schedule_id}")
async def export_excel(
    schedule_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory)
):
    bundle = await _load(session_factory, schedule_id)
    try:
        content = render_excel(bundle)
    except Exception as e:
        logger.error(f"Rendering spreadsheet for schedule {schedule_id} failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה בייצוא לאקסל")

    log_activity(db, get_current_actor(request), "export", "schedule", schedule_id,
                 "ייצא סידור עבודה לאקסל", ip_address=get_client_ip(request))
    return _attachment(content, export_filename(bundle.grid, "xlsx"), XLSX_MEDIA_TYPE)


@router.get("/export/html/{schedule_id}", response_class=HTMLResponse)
async def export_html(schedule_id: int, session_factory=Depends(get_session_factory)):
    bundle = await _load(session_factory, schedule_id)
    try:
        return HTMLResponse(render_html(bundle))
    except Exception as e:
        logger.error(f"Rendering HTML for schedule {schedule_id} failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה בייצוא ל-HTML")


@router.get("/export/pdf/{schedule_id}")
async def export_pdf(
    schedule_id: int,
    request: Request,
    db: Session = Depends(get_db),
    session_factory=Depends(get_session_factory)
):
    bundle = await _load(session_factory, schedule_id)
    try:
        content = render_pdf(bundle)
    except RosterError as e:
        logger.error(f"Rendering PDF for schedule {schedule_id} failed: {str(e)}")
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Rendering PDF for schedule {schedule_id} failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה בייצוא ל-PDF")

    log_activity(db, get_current_actor(request), "export", "schedule", schedule_id,
                 "ייצא סידור עבודה ל-PDF", ip_address=get_client_ip(request))
    return _attachment(content, export_filename(bundle.grid, "pdf"), "application/pdf")
