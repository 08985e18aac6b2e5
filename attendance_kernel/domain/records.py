"""
Records -- Daily Time Record and period summary value objects.

Responsibility:
    The output artifacts of DTR computation: one DailyTimeRecord per
    employee per calendar date, and the period summary aggregated over a
    run of those records for payroll consumers.

Architecture position:
    Kernel > Domain -- pure value objects, zero I/O.

Invariants enforced:
    - All minute fields are non-negative integers.
    - ``punches`` are in strictly non-decreasing timestamp order and
      alternate IN/OUT starting with IN.  A lone punch may be either
      direction (an OUT with no time-in is still recorded).
    - ``needs_review`` is True exactly when ``review_reason`` is set.
    - The record carries no wall-clock computation timestamp, so identical
      inputs produce equal records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from attendance_kernel.domain.punches import Direction, LabeledPunch

_MINUTE_FIELDS = (
    "total_work_minutes",
    "total_break_minutes",
    "late_minutes",
    "undertime_minutes",
    "overtime_minutes",
    "night_diff_minutes",
    "dropped_punch_count",
)


class DtrStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    REST_DAY = "rest_day"
    NO_SCHEDULE = "no_schedule"


@dataclass(frozen=True)
class DailyTimeRecord:
    """Computed attendance summary for one employee on one calendar date."""

    employee_id: UUID
    work_date: date
    status: DtrStatus
    first_in: datetime | None = None
    last_out: datetime | None = None
    punches: tuple[LabeledPunch, ...] = ()
    total_work_minutes: int = 0
    total_break_minutes: int = 0
    late_minutes: int = 0
    undertime_minutes: int = 0
    overtime_minutes: int = 0
    night_diff_minutes: int = 0
    needs_review: bool = False
    review_reason: str | None = None
    dropped_punch_count: int = 0
    schedule_id: UUID | None = None
    shift_name: str | None = None

    def __post_init__(self) -> None:
        for name in _MINUTE_FIELDS:
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.needs_review != (self.review_reason is not None):
            raise ValueError("review_reason must be set exactly when needs_review is True")

        if len(self.punches) == 1:
            return
        expected = Direction.IN
        previous: datetime | None = None
        for punch in self.punches:
            if previous is not None and punch.timestamp < previous:
                raise ValueError("record punches must be in timestamp order")
            if punch.direction is not expected:
                raise ValueError("record punches must alternate IN/OUT starting with IN")
            expected = Direction.OUT if expected is Direction.IN else Direction.IN
            previous = punch.timestamp


@dataclass(frozen=True)
class DtrPeriodSummary:
    """Attendance totals over an inclusive date range."""

    start_date: date
    end_date: date
    total_days: int
    present_days: int
    absent_days: int
    rest_days: int
    no_schedule_days: int
    attendance_rate: float
    total_work_minutes: int
    total_break_minutes: int
    total_late_minutes: int
    total_undertime_minutes: int
    total_overtime_minutes: int
    total_night_diff_minutes: int
    late_days: int
    undertime_days: int
    overtime_days: int
    needs_review_count: int

    @property
    def average_daily_work_minutes(self) -> int:
        if self.present_days == 0:
            return 0
        return round(self.total_work_minutes / self.present_days)
