"""
Typed Exception Hierarchy for the Attendance Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Attendance anomalies (duplicate scans, unmatched punches, missing time-outs)
are NOT exceptions: they degrade a Daily Time Record to ``needs_review`` and
computation continues. The exceptions below are reserved for conditions the
caller must correct before a record can be computed at all, such as
conflicting schedule assignments.

Every exception:
  1. Is a TYPED class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (not just a message string)

Example:
    try:
        service.calculate_for_date(employee_id, work_date)
    except ScheduleAmbiguityError as e:
        log.error("fix assignments", extra={"assignment_ids": e.assignment_ids})
        api_response(code=e.code, employee=e.employee_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AttendanceKernelError (base)
    |
    +-- ScheduleError
    |   +-- ScheduleAmbiguityError
    |   +-- InvalidScheduleConfigError
    |
    +-- InvalidWorkDateError
    |
    +-- ConcurrencyError
        +-- RecomputeLockTimeoutError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Schedule        | SCHEDULE_AMBIGUOUS          | >1 assignment active on the same footing
                | INVALID_SCHEDULE_CONFIG     | Schedule data cannot be parsed
----------------|-----------------------------|-----------------------------------------
Input           | INVALID_WORK_DATE           | Work date carries a time component
----------------|-----------------------------|-----------------------------------------
Concurrency     | RECOMPUTE_LOCK_TIMEOUT      | (employee, date) lock not acquired in time
"""

from collections.abc import Sequence
from datetime import date
from typing import Any
from uuid import UUID


class AttendanceKernelError(Exception):
    """
    Base exception for all attendance kernel errors.

    All subclasses must have a `code` class attribute for
    machine-readable error identification.
    """

    code: str = "ATTENDANCE_KERNEL_ERROR"


# Schedule-related exceptions


class ScheduleError(AttendanceKernelError):
    """Base exception for schedule resolution errors."""

    code: str = "SCHEDULE_ERROR"


class ScheduleAmbiguityError(ScheduleError):
    """
    More than one schedule assignment is active for the same date with the
    same effective date, so "most recent wins" cannot pick one.

    This is a configuration-data error. It is surfaced to the caller and
    never retried automatically.
    """

    code: str = "SCHEDULE_AMBIGUOUS"

    def __init__(
        self,
        employee_id: UUID | str,
        work_date: date,
        assignment_ids: Sequence[Any],
    ):
        self.employee_id = str(employee_id)
        self.work_date = work_date.isoformat()
        self.assignment_ids = [str(a) for a in assignment_ids]
        super().__init__(
            f"Employee {employee_id} has {len(self.assignment_ids)} schedule "
            f"assignments effective on the same date for {work_date}"
        )


class InvalidScheduleConfigError(ScheduleError):
    """Schedule configuration data is malformed."""

    code: str = "INVALID_SCHEDULE_CONFIG"

    def __init__(self, schedule_name: str | None, reason: str):
        self.schedule_name = schedule_name
        self.reason = reason
        super().__init__(
            f"Invalid schedule configuration {schedule_name!r}: {reason}"
        )


# Input validation


class InvalidWorkDateError(AttendanceKernelError):
    """A work date was given with a time component."""

    code: str = "INVALID_WORK_DATE"

    def __init__(self, value: Any):
        self.value = repr(value)
        super().__init__(
            f"Work date must be a calendar date without time, got {value!r}"
        )


# Concurrency-related exceptions


class ConcurrencyError(AttendanceKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class RecomputeLockTimeoutError(ConcurrencyError):
    """The per-(employee, date) recomputation lock was not acquired in time."""

    code: str = "RECOMPUTE_LOCK_TIMEOUT"

    def __init__(self, employee_id: UUID | str, work_date: date, timeout_seconds: float):
        self.employee_id = str(employee_id)
        self.work_date = work_date.isoformat()
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting to recompute "
            f"DTR for employee {employee_id} on {work_date}"
        )
