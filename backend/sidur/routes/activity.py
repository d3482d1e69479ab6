from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
import math

from ..core.database import get_db
from ..models.log import ActivityLog
from ..schemas.activity import ActivityLogPage, Pagination

router = APIRouter()


def _page(query, page: int, limit: int):
    return (
        query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )


@router.get("/activity/logs", response_model=ActivityLogPage)
async def get_activity_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Activity log, newest first, with pagination metadata"""
    query = db.query(ActivityLog)
    total_count = query.count()
    return ActivityLogPage(
        logs=_page(query, page, limit),
        pagination=Pagination(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=math.ceil(total_count / limit),
        ),
    )


@router.get("/activity/recent", response_model=ActivityLogPage)
async def get_recent_activity(
    since: Optional[datetime] = None,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db)
):
    """Latest entries, optionally only those after `since` (notification polling)"""
    query = db.query(ActivityLog)
    if since:
        query = query.filter(ActivityLog.created_at > since)
    return ActivityLogPage(logs=_page(query, 1, limit))


@router.get("/activity/logs/user/{username}", response_model=ActivityLogPage)
async def get_user_activity(
    username: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    query = db.query(ActivityLog).filter(ActivityLog.username == username)
    return ActivityLogPage(logs=_page(query, page, limit))


@router.get("/activity/logs/entity/{entity_type}", response_model=ActivityLogPage)
async def get_entity_activity(
    entity_type: str,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db)
):
    query = db.query(ActivityLog).filter(ActivityLog.entity_type == entity_type)
    return ActivityLogPage(logs=_page(query, page, limit))
