from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
from datetime import date
import logging

from ..core.database import get_db
from ..schemas.report import StatisticsReport
from ..services.reports import build_statistics

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/reports/statistics", response_model=StatisticsReport)
async def get_statistics(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db)
):
    if start_date and end_date and start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="תאריך התחלה מאוחר מתאריך הסיום")
    try:
        return build_statistics(db, start_date, end_date)
    except SQLAlchemyError as e:
        logger.error(f"Building statistics failed: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="שגיאה בטעינת סטטיסטיקות")
