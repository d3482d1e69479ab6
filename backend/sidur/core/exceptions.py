"""
Roster error taxonomy

NotFoundError       - no schedule (or other record) for the given identifier
DependencyError     - the persistence layer failed or timed out
MalformedInputError - data that does not fit the schedule tree
RenderError         - an export format cannot be produced (e.g. no Hebrew font)
"""
import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class RosterError(Exception):
    """Base class for errors raised by the roster core"""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "שגיאת שרת פנימית"

    def __init__(self, message: str = "", detail: str = None):
        super().__init__(message or self.default_detail)
        # user-facing text, kept apart from the log message
        self.detail = detail or self.default_detail


class NotFoundError(RosterError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "סידור עבודה לא נמצא"


class DependencyError(RosterError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "שגיאה בגישה למסד הנתונים, נסה שוב"


class MalformedInputError(RosterError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "נתונים לא תקינים"


class RenderError(RosterError):
    default_detail = "שגיאה ביצירת קובץ הייצוא"


def to_http_exception(exc: RosterError) -> HTTPException:
    """Translate a core error into the HTTP error the client sees"""
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


def commit_or_raise(db, error_detail: str, conflict_detail: str = None):
    """
    Commit the session; on failure roll back, log and raise the HTTP error

    Args:
        db: SQLAlchemy session
        error_detail: message for an unexpected database error (500)
        conflict_detail: message for a unique-constraint violation (409);
            without it an IntegrityError is treated as a 500 as well
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        if conflict_detail:
            logger.warning(f"Integrity conflict: {str(e.orig)}")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=conflict_detail)
        logger.error(f"{error_detail}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"{error_detail}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=error_detail)
