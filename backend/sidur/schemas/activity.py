from pydantic import BaseModel
from typing import Optional, List, Any
from datetime import datetime


class ActivityLog(BaseModel):
    id: int
    username: str
    action_type: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    description: Optional[str] = None
    details: Optional[Any] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    page: int
    limit: int
    total_count: int
    total_pages: int


class ActivityLogPage(BaseModel):
    logs: List[ActivityLog]
    pagination: Optional[Pagination] = None
