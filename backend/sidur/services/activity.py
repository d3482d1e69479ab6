import logging
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.log import ActivityLog

logger = logging.getLogger(__name__)

ACTION_TYPES = ("create", "update", "delete", "publish", "assign", "unassign", "import", "export")


def log_activity(
    db: Session,
    username: str,
    action_type: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    description: Optional[str] = None,
    details: Optional[Any] = None,
    ip_address: Optional[str] = None,
) -> Optional[ActivityLog]:
    """
    Record one user action in activity_logs

    A failure here never fails the request that triggered it: the error is
    logged, the session rolled back and None returned.
    """
    try:
        log = ActivityLog(
            username=username or "Unknown",
            action_type=action_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            details=details,
            ip_address=ip_address,
        )
        db.add(log)
        db.commit()
        return log
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record activity {action_type} on {entity_type} {entity_id}: {str(e)}")
        return None
