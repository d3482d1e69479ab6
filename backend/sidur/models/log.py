from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func
from ..core.database import Base


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    username = Column(String, nullable=False)
    action_type = Column(String(50), nullable=False)  # create, update, delete, publish, assign, ...
    entity_type = Column(String(50), index=True)  # schedule, shift, unit, role, assignment, employee, ...
    entity_id = Column(Integer)
    description = Column(Text)
    details = Column(JSON)
    ip_address = Column(String)
    created_at = Column(DateTime, default=func.now(), index=True)
