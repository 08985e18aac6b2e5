"""
Schedule Resolver (``attendance_modules.dtr.schedule_resolver``).

Responsibility
--------------
Map ``(employee, date)`` to the effective work schedule and shift, expand
it into date-anchored ScheduleEvents, and decide which punches each work
date owns, including the late-night tail that belongs to yesterday's
cross-midnight shift.

Architecture position
---------------------
**Modules layer** -- reads assignments through the ``AssignmentSource``
port and delegates all date arithmetic to
``attendance_engines.schedule_expansion``.

Invariants enforced
-------------------
* At most one assignment wins: the active assignment with the most recent
  effective date.  A tie on that date is a data error.
* A punch is owned by exactly one work date: a next-day punch inside the
  previous date's cross-midnight capture window is never claimed by the
  next date.
* The previous date's overnight window stops halfway to the next date's
  own shift start, and at midnight once that shift has a closing punch.

Failure modes
-------------
* ``InvalidWorkDateError`` -- a ``datetime`` was passed as the work date.
* ``ScheduleAmbiguityError`` -- two active assignments share the most
  recent effective date.  Not retried; the assignment data must be fixed.
* No active assignment -- ``resolve`` returns ``None`` (not an error).
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from uuid import UUID

from attendance_engines.schedule_expansion import (
    build_schedule_events,
    build_shift_window,
    claims_punch,
    close_shift_window,
    is_cross_midnight,
    is_work_day,
)
from attendance_kernel.domain.punches import RawPunch, ScheduleEvent
from attendance_kernel.domain.schedules import ResolvedSchedule, ShiftWindow
from attendance_kernel.exceptions import InvalidWorkDateError, ScheduleAmbiguityError
from attendance_kernel.logging_config import get_logger
from attendance_modules.dtr.config import DtrConfig
from attendance_modules.dtr.ports import AssignmentSource

logger = get_logger("modules.dtr.schedule_resolver")

_ONE_DAY = timedelta(days=1)


def require_work_date(value: object) -> date:
    """Reject anything that is not a plain calendar date."""
    if isinstance(value, datetime) or not isinstance(value, date):
        raise InvalidWorkDateError(value)
    return value


class ScheduleResolver:
    """
    Resolve effective schedules and shift windows.

    Contract:
        Stateless apart from its injected assignment source and config.
    Guarantees:
        - ``resolve`` returns ``None`` when no assignment is active.
        - ``shift_window(d + 1).capture_start >= shift_window(d).capture_end``.
    Non-goals:
        - Holiday and leave overrides are applied downstream, not here.
    """

    def __init__(
        self,
        assignments: AssignmentSource,
        config: DtrConfig | None = None,
    ) -> None:
        self._assignments = assignments
        self._config = config or DtrConfig.with_defaults()

    def resolve(self, employee_id: UUID, work_date: date) -> ResolvedSchedule | None:
        require_work_date(work_date)
        candidates = self._assignments.assignments_for(employee_id, work_date)
        active = [a for a in candidates if a.is_active_on(work_date)]

        if not active:
            logger.debug("schedule_not_found", extra={
                "employee_id": str(employee_id),
                "work_date": work_date,
            })
            return None

        latest = max(a.effective_date for a in active)
        winners = [a for a in active if a.effective_date == latest]
        if len(winners) > 1:
            logger.error("schedule_assignment_ambiguous", extra={
                "employee_id": str(employee_id),
                "work_date": work_date,
                "effective_date": latest,
                "assignment_count": len(winners),
            })
            raise ScheduleAmbiguityError(
                employee_id, work_date, [a.assignment_id for a in winners],
            )

        assignment = winners[0]
        return ResolvedSchedule(
            work_date=work_date,
            config=assignment.schedule,
            shift_name=assignment.shift_name,
            assignment_id=assignment.assignment_id,
        )

    def schedule_events(self, resolved: ResolvedSchedule) -> tuple[ScheduleEvent, ...]:
        return build_schedule_events(resolved)

    def build_window(
        self,
        employee_id: UUID,
        work_date: date,
        resolved: ResolvedSchedule | None,
        previous: ShiftWindow | None = None,
    ) -> ShiftWindow:
        """Capture window for an already-resolved (or absent) schedule.

        ``previous`` defaults to the schedule-only window of the preceding
        date; pass a window narrowed by ``close_window`` to hand back the
        tail of a shift that was already closed.
        """
        rostered = resolved if resolved is not None and is_work_day(resolved) else None
        if previous is None:
            previous = self.previous_window(employee_id, work_date, resolved)
        next_start = None
        if rostered is not None and is_cross_midnight(rostered):
            next_start = self._shift_start(self.resolve(employee_id, work_date + _ONE_DAY))
        return build_shift_window(
            work_date,
            rostered,
            previous,
            overnight_grace_minutes=self._config.overnight_grace_minutes,
            next_start=next_start,
        )

    def shift_window(self, employee_id: UUID, work_date: date) -> ShiftWindow:
        return self.build_window(employee_id, work_date, self.resolve(employee_id, work_date))

    def close_window(self, window: ShiftWindow, punches: Iterable[RawPunch]) -> ShiftWindow:
        """Narrow an overnight window once its shift has a closing punch."""
        closed = close_shift_window(
            window,
            punches,
            closing_tolerance_minutes=self._config.closing_punch_tolerance_minutes,
            arrival_tolerance_minutes=self._config.match_tolerance_minutes,
            rescan_minutes=self._config.duplicate_scan_threshold_minutes,
        )
        if closed.capture_end != window.capture_end:
            logger.debug("overnight_window_closed", extra={
                "work_date": window.work_date,
                "capture_end": closed.capture_end,
            })
        return closed

    def belongs_to_previous_shift(
        self,
        employee_id: UUID,
        timestamp: datetime,
        punches: Iterable[RawPunch] = (),
    ) -> bool:
        """True when the punch falls to the previous date's cross-midnight shift.

        ``punches`` are the previous date's punches; when one of them closes
        that shift, later next-day punches no longer belong to it.
        """
        today = timestamp.date()
        previous = self.previous_window(employee_id, today, self.resolve(employee_id, today))
        if previous is None:
            return False
        previous = self.close_window(previous, punches)
        return claims_punch(previous, RawPunch(timestamp))

    def previous_window(
        self,
        employee_id: UUID,
        work_date: date,
        resolved: ResolvedSchedule | None,
    ) -> ShiftWindow | None:
        """Schedule-only window of the date before ``work_date``.

        ``resolved`` is the schedule of ``work_date`` itself; its shift
        start bounds how far the previous overnight window reaches.
        """
        previous_date = work_date - _ONE_DAY
        previous = self.resolve(employee_id, previous_date)
        if previous is None or not is_work_day(previous):
            return None
        return build_shift_window(
            previous_date,
            previous,
            overnight_grace_minutes=self._config.overnight_grace_minutes,
            next_start=self._shift_start(resolved),
        )

    @staticmethod
    def _shift_start(resolved: ResolvedSchedule | None) -> datetime | None:
        if resolved is None or not is_work_day(resolved):
            return None
        events = build_schedule_events(resolved)
        return events[0].timestamp if events else None
