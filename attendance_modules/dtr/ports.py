"""
Collaborator protocols for DTR computation.

Contract:
    PunchSource.fetch_punches() returns punches in [start, end), any order.
    AssignmentSource.assignments_for() returns every assignment of the
    employee that could be active on the date; the resolver filters them.
    DtrStore.upsert() replaces any prior record for (employee_id, work_date).

Architecture: attendance_modules/dtr.  The SQLAlchemy implementations live in
repository.py; tests use in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date, datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from attendance_kernel.domain.punches import RawPunch
from attendance_kernel.domain.records import DailyTimeRecord
from attendance_kernel.domain.schedules import ScheduleAssignment


@runtime_checkable
class PunchSource(Protocol):
    """Raw punch feed, already parsed from devices/kiosks."""

    def fetch_punches(
        self, employee_id: UUID, start: datetime, end: datetime,
    ) -> Sequence[RawPunch]:
        ...


@runtime_checkable
class AssignmentSource(Protocol):
    """Effective-dated schedule assignments."""

    def assignments_for(
        self, employee_id: UUID, work_date: date,
    ) -> Sequence[ScheduleAssignment]:
        ...


@runtime_checkable
class DtrStore(Protocol):
    """Persistence for computed Daily Time Records."""

    def upsert(self, record: DailyTimeRecord) -> None:
        ...

    def get(self, employee_id: UUID, work_date: date) -> DailyTimeRecord | None:
        ...
