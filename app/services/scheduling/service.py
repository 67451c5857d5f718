"""
Schedule service: runs conflict detection and status transitions under
transactional discipline and publishes change events after commit.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
import logging

from sqlalchemy.orm import Query, Session

from app.core.exceptions import (
    ConflictError, IllegalTransitionError, NotFoundError, PersistenceError, ValidationError,
)
from app.db.session import Database
from app.models.audit_log import AuditLog
from app.models.location import Location as LocationModel
from app.models.schedule import Schedule as ScheduleModel, ScheduleStatus, utcnow
from app.models.train import Train as TrainModel
from app.schemas.schedule import ScheduleCreate, ScheduleEvent, ScheduleUpdate, StatusUpdate
from app.services.broadcast import UpdateBroadcaster
from app.services.scheduling.conflicts import detect_conflicts
from app.services.scheduling.models import (
    ScheduleState, ScheduleWindow, check_schedule_fields, decode_running_days, encode_running_days,
)
from app.services.scheduling.status import ScheduleStatusMachine

logger = logging.getLogger(__name__)

# Fields whose change requires a fresh conflict check
CONFLICT_FIELDS = (
    "train_id",
    "scheduled_departure",
    "scheduled_arrival",
    "running_days",
    "effective_start_date",
    "effective_end_date",
)

EDITABLE_FIELDS = CONFLICT_FIELDS + ("departure_location_id", "arrival_location_id")


class ScheduleService:
    """
    Orchestrates schedule writes.

    Every write is one atomic unit: lock the train, check, persist, audit,
    commit. The unit is retried as a whole on PersistenceError only; events
    are published after the commit succeeded.
    """

    def __init__(
        self,
        database: Database,
        broadcaster: Optional[UpdateBroadcaster] = None,
        status_machine: Optional[ScheduleStatusMachine] = None,
        max_attempts: int = 3,
    ):
        self.database = database
        self.broadcaster = broadcaster
        self.status_machine = status_machine or ScheduleStatusMachine()
        self.max_attempts = max(1, max_attempts)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def create(self, payload: ScheduleCreate) -> ScheduleModel:
        check_schedule_fields(
            payload.scheduled_departure,
            payload.scheduled_arrival,
            payload.effective_start_date,
            payload.effective_end_date,
            payload.running_days,
        )
        record = self._run_atomic(self._insert_schedule, payload)
        logger.info(f"Created schedule {record.id} for train {record.train_id}")
        await self._publish(ScheduleEvent.created(record))
        return record

    async def update_status(self, schedule_id: int, request: StatusUpdate) -> ScheduleModel:
        record = self._run_atomic(self._transition_schedule, schedule_id, request)
        logger.info(f"Schedule {schedule_id} moved to {record.status.value}")
        await self._publish(ScheduleEvent.state_changed(record))
        return record

    async def update_schedule(self, schedule_id: int, patch: ScheduleUpdate) -> ScheduleModel:
        record = self._run_atomic(self._edit_schedule, schedule_id, patch.changes())
        logger.info(f"Edited schedule {schedule_id}")
        await self._publish(ScheduleEvent.edited(record))
        return record

    async def delete(self, schedule_id: int) -> None:
        self._run_atomic(self._delete_schedule, schedule_id)
        logger.info(f"Deleted schedule {schedule_id}")
        await self._publish(ScheduleEvent.deleted(schedule_id))

    def get(self, schedule_id: int) -> ScheduleModel:
        with self.database.transaction() as db:
            return self._load_schedule(db, schedule_id)

    def list_schedules(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ScheduleModel]:
        """List schedules, filtered by scheduled departure when both bounds are given."""
        with self.database.transaction() as db:
            query = db.query(ScheduleModel)
            if start is not None and end is not None:
                query = query.filter(
                    ScheduleModel.scheduled_departure >= start,
                    ScheduleModel.scheduled_departure <= end,
                )
            return query.order_by(ScheduleModel.id).all()

    # ------------------------------------------------------------------
    # Atomic units, each executed inside a single transaction
    # ------------------------------------------------------------------

    def _insert_schedule(self, db: Session, payload: ScheduleCreate) -> ScheduleModel:
        self._lock_train(db, payload.train_id)
        self._require_location(db, payload.departure_location_id)
        self._require_location(db, payload.arrival_location_id)

        window = ScheduleWindow(
            train_id=payload.train_id,
            scheduled_departure=payload.scheduled_departure,
            scheduled_arrival=payload.scheduled_arrival,
            running_days=encode_running_days(payload.running_days),
            effective_start_date=payload.effective_start_date,
            effective_end_date=payload.effective_end_date,
        )
        self._raise_on_conflicts(db, window)

        record = ScheduleModel(
            train_id=window.train_id,
            departure_location_id=payload.departure_location_id,
            arrival_location_id=payload.arrival_location_id,
            scheduled_departure=window.scheduled_departure,
            scheduled_arrival=window.scheduled_arrival,
            running_days=window.running_days,
            effective_start_date=window.effective_start_date,
            effective_end_date=window.effective_end_date,
            status=ScheduleStatus.SCHEDULED,
            is_cancelled=False,
            created_at=utcnow(),
        )
        db.add(record)
        db.flush()  # Use flush to get the ID before commit
        self._audit(db, "create", record.id, payload.model_dump(mode="json", by_alias=True))
        return record

    def _transition_schedule(self, db: Session, schedule_id: int, request: StatusUpdate) -> ScheduleModel:
        record = self._load_schedule(db, schedule_id, for_update=True)
        previous = record.status
        try:
            change = self.status_machine.apply_transition(
                ScheduleState.from_record(record),
                request.status,
                actual_departure=request.actual_departure,
                actual_arrival=request.actual_arrival,
            )
        except (IllegalTransitionError, ValidationError) as e:
            logger.warning(f"Rejected status change for schedule {schedule_id}: {str(e)}")
            raise

        change.apply_to(record)
        record.updated_at = utcnow()
        self._audit(db, "status", record.id, {
            "from": previous.value,
            "to": change.status.value,
            "actualDeparture": change.actual_departure.isoformat() if change.actual_departure else None,
            "actualArrival": change.actual_arrival.isoformat() if change.actual_arrival else None,
        })
        return record

    def _edit_schedule(self, db: Session, schedule_id: int, changes: Dict[str, Any]) -> ScheduleModel:
        record = self._load_schedule(db, schedule_id, for_update=True)

        # The same patch is replayed on retry, so encode into a copy
        changes = dict(changes)
        if "running_days" in changes:
            changes["running_days"] = encode_running_days(changes["running_days"])
        merged = {field: changes.get(field, getattr(record, field)) for field in EDITABLE_FIELDS}
        check_schedule_fields(
            merged["scheduled_departure"],
            merged["scheduled_arrival"],
            merged["effective_start_date"],
            merged["effective_end_date"],
            decode_running_days(merged["running_days"]),
        )

        self._lock_train(db, merged["train_id"])
        for location_field in ("departure_location_id", "arrival_location_id"):
            if merged[location_field] != getattr(record, location_field):
                self._require_location(db, merged[location_field])

        changed = {field for field in EDITABLE_FIELDS if merged[field] != getattr(record, field)}
        if changed & set(CONFLICT_FIELDS) and not record.is_cancelled:
            window = ScheduleWindow(
                id=record.id,
                train_id=merged["train_id"],
                scheduled_departure=merged["scheduled_departure"],
                scheduled_arrival=merged["scheduled_arrival"],
                running_days=merged["running_days"],
                effective_start_date=merged["effective_start_date"],
                effective_end_date=merged["effective_end_date"],
            )
            self._raise_on_conflicts(db, window, exclude_id=record.id)

        for field in changed:
            setattr(record, field, merged[field])
        record.updated_at = utcnow()
        self._audit(db, "update", record.id, {"fields": sorted(changed)})
        return record

    def _delete_schedule(self, db: Session, schedule_id: int) -> None:
        record = self._load_schedule(db, schedule_id, for_update=True)
        self._audit(db, "delete", record.id, {"trainId": record.train_id})
        db.delete(record)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _run_atomic(self, operation: Callable[..., Any], *args: Any) -> Any:
        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.database.transaction() as db:
                    return operation(db, *args)
            except PersistenceError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    f"{operation.__name__} failed on attempt {attempt}/{self.max_attempts}, retrying"
                )

    def _raise_on_conflicts(self, db: Session, window: ScheduleWindow, exclude_id: Optional[int] = None) -> None:
        conflicts = detect_conflicts(db, window, exclude_id=exclude_id)
        if conflicts:
            logger.warning(
                f"Train {window.train_id} schedule conflicts with "
                f"{[c.id for c in conflicts]}"
            )
            raise ConflictError(conflicts)

    def _lock_train(self, db: Session, train_id: int) -> TrainModel:
        train = train_lock_query(db, train_id).first()
        if not train:
            raise NotFoundError("Train", train_id)
        return train

    def _require_location(self, db: Session, location_id: int) -> LocationModel:
        location = db.query(LocationModel).filter(LocationModel.id == location_id).first()
        if not location:
            raise NotFoundError("Location", location_id)
        return location

    def _load_schedule(self, db: Session, schedule_id: int, for_update: bool = False) -> ScheduleModel:
        query = db.query(ScheduleModel).filter(ScheduleModel.id == schedule_id)
        if for_update:
            query = query.with_for_update()
        record = query.first()
        if not record:
            raise NotFoundError("Schedule", schedule_id)
        return record

    def _audit(self, db: Session, action: str, record_id: int, details: Dict[str, Any]) -> None:
        db.add(AuditLog(
            action=action,
            table_name=ScheduleModel.__tablename__,
            record_id=record_id,
            details=details,
            timestamp=utcnow(),
        ))

    async def _publish(self, event: ScheduleEvent) -> None:
        if self.broadcaster is None:
            return
        await self.broadcaster.publish(event)


def build_status_machine(settings) -> ScheduleStatusMachine:
    return ScheduleStatusMachine(timedelta(minutes=settings.departure_tolerance_minutes))


def train_lock_query(db: Session, train_id: int) -> Query:
    """Row lock that serialises writers of the same train for the rest of the transaction."""
    return db.query(TrainModel).filter(TrainModel.id == train_id).with_for_update()
