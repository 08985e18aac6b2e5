"""
DTR Repositories (``attendance_modules.dtr.repository``).

Responsibility:
    SQLAlchemy implementations of the ``PunchSource``, ``AssignmentSource``
    and ``DtrStore`` ports, plus ``StaticAssignmentSource`` for assignments
    loaded from YAML.

Architecture position:
    **Modules layer** -- adapters between the ORM models in ``orm.py`` and
    the domain dataclasses consumed by ``DtrCalculationService``.

Invariants enforced:
    - Session ownership: repositories accept a Session from the caller and
      never commit.  ``SqlAlchemyDtrStore.upsert`` flushes so constraint
      violations surface inside the caller's ``session_scope()``.
    - DTO return convention: reads return frozen dataclasses, never ORM rows.
    - Upsert replaces: a recomputed record overwrites every field and the
      full punch list of the previous record for the same (employee, date).

Failure modes:
    - Malformed schedule JSON: the assignment is skipped and
      ``schedule_config_invalid`` is logged at WARNING.  Never raised.
    - IntegrityError from ``flush()`` propagates to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from attendance_kernel.domain.punches import RawPunch
from attendance_kernel.domain.records import DailyTimeRecord
from attendance_kernel.domain.schedules import ScheduleAssignment, WorkScheduleConfig
from attendance_kernel.exceptions import InvalidScheduleConfigError
from attendance_kernel.logging_config import get_logger
from attendance_modules.dtr.orm import (
    AttendanceLogModel,
    DailyTimeRecordModel,
    EmployeeScheduleAssignmentModel,
    WorkScheduleModel,
)

logger = get_logger("modules.dtr.repository")


class SqlAlchemyPunchSource:
    """Raw punches from ``attendance_logs``."""

    def __init__(self, session: Session):
        self.session = session

    def fetch_punches(
        self, employee_id: UUID, start: datetime, end: datetime,
    ) -> list[RawPunch]:
        rows = self.session.execute(
            select(AttendanceLogModel)
            .where(AttendanceLogModel.employee_id == employee_id)
            .where(AttendanceLogModel.timestamp >= start)
            .where(AttendanceLogModel.timestamp < end)
            .order_by(AttendanceLogModel.timestamp, AttendanceLogModel.id)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def add(self, employee_id: UUID, punches: Iterable[RawPunch]) -> None:
        """Stage raw punches for insert (feed ingestion and fixtures)."""
        for punch in punches:
            self.session.add(AttendanceLogModel.from_dto(punch, employee_id))
        self.session.flush()


class SqlAlchemyAssignmentSource:
    """Effective-dated schedule assignments with their parsed schedules."""

    def __init__(self, session: Session):
        self.session = session

    def assignments_for(
        self, employee_id: UUID, work_date: date,
    ) -> list[ScheduleAssignment]:
        rows = self.session.execute(
            select(EmployeeScheduleAssignmentModel)
            .join(EmployeeScheduleAssignmentModel.schedule)
            .where(EmployeeScheduleAssignmentModel.employee_id == employee_id)
            .where(EmployeeScheduleAssignmentModel.effective_date <= work_date)
            .where(or_(
                EmployeeScheduleAssignmentModel.end_date.is_(None),
                EmployeeScheduleAssignmentModel.end_date >= work_date,
            ))
            .where(WorkScheduleModel.is_active.is_(True))
            .order_by(EmployeeScheduleAssignmentModel.effective_date)
        ).scalars().all()

        parsed: dict[UUID, WorkScheduleConfig] = {}
        assignments: list[ScheduleAssignment] = []
        for row in rows:
            schedule = parsed.get(row.schedule_id)
            if schedule is None:
                try:
                    schedule = row.schedule.to_dto()
                except InvalidScheduleConfigError as exc:
                    logger.warning("schedule_config_invalid", extra={
                        "employee_id": str(employee_id),
                        "work_date": work_date,
                        "schedule_id": str(row.schedule_id),
                        "assignment_id": str(row.id),
                        "reason": exc.reason,
                    })
                    continue
                parsed[row.schedule_id] = schedule
            assignments.append(row.to_dto(schedule))
        return assignments

    def add_schedule(self, config: WorkScheduleConfig) -> WorkScheduleConfig:
        """Persist a schedule; returns it carrying its database id."""
        model = WorkScheduleModel.from_dto(config)
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def add_assignment(self, assignment: ScheduleAssignment) -> ScheduleAssignment:
        model = EmployeeScheduleAssignmentModel.from_dto(assignment)
        self.session.add(model)
        self.session.flush()
        return model.to_dto(assignment.schedule)


class StaticAssignmentSource:
    """Assignments held in memory, e.g. from ``load_schedule_assignments``."""

    def __init__(self, assignments: Iterable[ScheduleAssignment] = ()):
        self._assignments: list[ScheduleAssignment] = list(assignments)

    def add(self, assignment: ScheduleAssignment) -> None:
        self._assignments.append(assignment)

    def assignments_for(
        self, employee_id: UUID, work_date: date,
    ) -> Sequence[ScheduleAssignment]:
        return [
            a for a in self._assignments
            if a.employee_id == employee_id and a.is_active_on(work_date)
        ]


class SqlAlchemyDtrStore:
    """Computed records in ``daily_time_records`` / ``time_record_punches``."""

    def __init__(self, session: Session):
        self.session = session

    def _find(self, employee_id: UUID, work_date: date) -> DailyTimeRecordModel | None:
        return self.session.execute(
            select(DailyTimeRecordModel)
            .where(DailyTimeRecordModel.employee_id == employee_id)
            .where(DailyTimeRecordModel.work_date == work_date)
        ).scalar_one_or_none()

    def upsert(self, record: DailyTimeRecord) -> None:
        model = self._find(record.employee_id, record.work_date)
        if model is None:
            self.session.add(DailyTimeRecordModel.from_dto(record))
            action = "inserted"
        else:
            model.apply(record)
            action = "updated"
        self.session.flush()
        logger.debug("dtr_record_upserted", extra={
            "employee_id": str(record.employee_id),
            "work_date": record.work_date,
            "action": action,
            "punch_count": len(record.punches),
        })

    def get(self, employee_id: UUID, work_date: date) -> DailyTimeRecord | None:
        model = self._find(employee_id, work_date)
        return model.to_dto() if model is not None else None

    def list_for_period(
        self, employee_id: UUID, start_date: date, end_date: date,
    ) -> list[DailyTimeRecord]:
        rows = self.session.execute(
            select(DailyTimeRecordModel)
            .where(DailyTimeRecordModel.employee_id == employee_id)
            .where(DailyTimeRecordModel.work_date >= start_date)
            .where(DailyTimeRecordModel.work_date <= end_date)
            .order_by(DailyTimeRecordModel.work_date)
        ).scalars().all()
        return [row.to_dto() for row in rows]
