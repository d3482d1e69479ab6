import logging
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.database import SessionLocal
from ..core.exceptions import DependencyError
from ..models.schedule import Schedule, Shift, Unit, Role, Assignment
from ..models.extras import ExtraMission, ExtraAmbulance

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScheduleRepository:
    """Batched reads of one schedule's rows: one query per collection, never per parent"""

    def __init__(self, db: Session):
        self.db = db

    def _run(self, description: str, query: Callable[[], T]) -> T:
        try:
            return query()
        except SQLAlchemyError as e:
            logger.error(f"Failed to load {description}: {str(e)}")
            raise DependencyError(f"failed to load {description}: {e}") from e

    def get_schedule(self, schedule_id: int) -> Optional[Schedule]:
        return self._run(
            f"schedule {schedule_id}",
            lambda: self.db.query(Schedule).filter(Schedule.id == schedule_id).first(),
        )

    def list_shifts(self, schedule_id: int) -> List[Shift]:
        return self._run(
            f"shifts of schedule {schedule_id}",
            lambda: self.db.query(Shift)
            .filter(Shift.schedule_id == schedule_id)
            .order_by(Shift.id)
            .all(),
        )

    def list_units(self, shift_ids: Sequence[int]) -> List[Unit]:
        if not shift_ids:
            return []
        return self._run(
            "units",
            lambda: self.db.query(Unit)
            .filter(Unit.shift_id.in_(list(shift_ids)))
            .order_by(Unit.id)
            .all(),
        )

    def list_roles(self, unit_ids: Sequence[int]) -> List[Role]:
        if not unit_ids:
            return []
        return self._run(
            "roles",
            lambda: self.db.query(Role)
            .filter(Role.unit_id.in_(list(unit_ids)))
            .order_by(Role.id)
            .all(),
        )

    def list_assignments(self, schedule_id: int) -> List[Assignment]:
        return self._run(
            f"assignments of schedule {schedule_id}",
            lambda: self.db.query(Assignment)
            .options(joinedload(Assignment.employee))
            .filter(Assignment.schedule_id == schedule_id)
            .order_by(Assignment.id)
            .all(),
        )

    def list_extra_missions(self, schedule_id: int) -> List[ExtraMission]:
        return self._run(
            f"extra missions of schedule {schedule_id}",
            lambda: self.db.query(ExtraMission)
            .filter(ExtraMission.schedule_id == schedule_id)
            .order_by(ExtraMission.display_order, ExtraMission.id)
            .all(),
        )

    def list_extra_ambulances(self, schedule_id: int) -> List[ExtraAmbulance]:
        return self._run(
            f"extra ambulances of schedule {schedule_id}",
            lambda: self.db.query(ExtraAmbulance)
            .filter(ExtraAmbulance.schedule_id == schedule_id)
            .order_by(ExtraAmbulance.display_order, ExtraAmbulance.id)
            .all(),
        )


@contextmanager
def open_repository(session_factory: Optional[Callable[[], Session]] = None) -> Iterator[ScheduleRepository]:
    """
    Repository over a session of its own, closed when the block exits

    Loads run in the worker thread pool and may outlive a request that timed
    out, so they never borrow the request's session.
    """
    db = (session_factory or SessionLocal)()
    try:
        yield ScheduleRepository(db)
    finally:
        db.close()
